"""Shared FastAPI dependencies pulled from application state"""
from fastapi import Request

from mixflow.config import Settings
from mixflow.services.file_store import FileStore
from mixflow.services.stream_service import AnalyticsRecorder


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_file_store(request: Request) -> FileStore:
    return request.app.state.file_store


def get_analytics(request: Request) -> AnalyticsRecorder:
    return request.app.state.analytics
