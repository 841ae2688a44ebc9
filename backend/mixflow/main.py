"""Main FastAPI application"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging

from mixflow.config import Settings, get_settings
from mixflow.database import build_engine, build_session_factory, check_db, init_db
from mixflow.errors import register_exception_handlers
from mixflow.api import artists, media, tracks
from mixflow.services.file_store import FileStore
from mixflow.services.stream_service import AnalyticsRecorder

logger = logging.getLogger(__name__)

API_VERSION = "2.0.0"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    settings: Settings = app.state.settings

    # Startup
    logger.info("Starting MixFlow API...")

    app.state.file_store.ensure_directories()
    logger.info(f"Upload directory: {settings.upload_root.resolve()}")

    init_db(app.state.engine)
    logger.info("Database initialized")

    logger.info(f"Application startup complete ({settings.environment})")

    yield

    # Shutdown
    logger.info("Shutting down...")
    if not app.state.analytics.drain(timeout=settings.analytics_drain_timeout):
        logger.warning("Analytics tasks still pending after drain timeout")
    app.state.analytics.shutdown(wait=True)
    app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one immutable settings object"""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="MixFlow API",
        description="Audio upload and range-aware streaming",
        version=API_VERSION,
        lifespan=lifespan
    )

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.file_store = FileStore(settings)
    app.state.analytics = AnalyticsRecorder(session_factory, max_workers=settings.analytics_workers)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Range"],
        expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
    )

    register_exception_handlers(app)

    # Register routers
    app.include_router(tracks.router, prefix=settings.api_prefix)
    app.include_router(artists.router, prefix=settings.api_prefix)
    app.include_router(media.router, prefix=settings.upload_url_prefix)

    @app.get(settings.api_prefix)
    def api_index():
        """List the endpoints served by this API"""
        prefix = settings.api_prefix
        return {
            "message": "Welcome to MixFlow API!",
            "version": API_VERSION,
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "endpoints": {
                "artist": [
                    f"POST {prefix}/artist/create",
                    f"GET {prefix}/artist/tracks",
                    f"GET {prefix}/artist/:id",
                ],
                "tracks": [
                    f"POST {prefix}/tracks/upload",
                    f"GET {prefix}/tracks",
                    f"GET {prefix}/tracks/:id",
                    f"GET {prefix}/tracks/:id/stream",
                    f"DELETE {prefix}/tracks/:id",
                ],
            },
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        db_ok = check_db(app.state.engine)
        return JSONResponse(
            status_code=200 if db_ok else 503,
            content={
                "status": "healthy" if db_ok else "unhealthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "version": API_VERSION,
                "environment": settings.environment,
                "database": "connected" if db_ok else "disconnected",
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mixflow.main:app",
        host=get_settings().api_host,
        port=get_settings().api_port,
        reload=get_settings().is_development
    )
