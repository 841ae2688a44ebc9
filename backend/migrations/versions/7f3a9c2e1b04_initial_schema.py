"""initial_schema

Revision ID: 7f3a9c2e1b04
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '7f3a9c2e1b04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_type = sa.Enum('LISTENER', 'ARTIST', 'ADMIN', name='usertype')
track_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='trackstatus')
upload_status = sa.Enum('PENDING', 'COMPLETED', 'FAILED', name='uploadstatus')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('username', sa.String(), nullable=True),
        sa.Column('user_type', user_type, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'artists',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('stage_name', sa.String(), nullable=False),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('genres', sa.JSON(), nullable=True),
        sa.Column('profile_image_url', sa.String(), nullable=True),
        sa.Column('cover_image_url', sa.String(), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('total_streams', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_artists_user_id', 'artists', ['user_id'], unique=True)

    op.create_table(
        'tracks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('artist_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('file_url', sa.String(), nullable=False),
        sa.Column('artwork_url', sa.String(), nullable=True),
        sa.Column('genre', sa.String(), nullable=False),
        sa.Column('sub_genre', sa.String(), nullable=True),
        sa.Column('bpm', sa.Integer(), nullable=True),
        sa.Column('key_signature', sa.String(), nullable=True),
        sa.Column('is_explicit', sa.Boolean(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('status', track_status, nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('stream_count', sa.Integer(), nullable=False),
        sa.Column('download_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['artist_id'], ['artists.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('file_url'),
    )
    op.create_index('ix_tracks_artist_id', 'tracks', ['artist_id'])
    op.create_index('ix_tracks_genre', 'tracks', ['genre'])
    op.create_index('ix_tracks_status', 'tracks', ['status'])
    op.create_index('ix_tracks_created_at', 'tracks', ['created_at'])

    op.create_table(
        'track_uploads',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('track_id', sa.String(), nullable=False),
        sa.Column('filename', sa.String(), nullable=False),
        sa.Column('original_name', sa.String(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(), nullable=True),
        sa.Column('upload_url', sa.String(), nullable=False),
        sa.Column('status', upload_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['track_id'], ['tracks.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_track_uploads_track_id', 'track_uploads', ['track_id'])
    op.create_index('ix_track_uploads_user_id', 'track_uploads', ['user_id'])

    op.create_table(
        'streams',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('track_id', sa.String(), nullable=False),
        sa.Column('duration_played', sa.Integer(), nullable=False),
        sa.Column('device_type', sa.String(), nullable=True),
        sa.Column('platform', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['track_id'], ['tracks.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_streams_track_id', 'streams', ['track_id'])
    op.create_index('ix_streams_user_id', 'streams', ['user_id'])


def downgrade() -> None:
    op.drop_table('streams')
    op.drop_table('track_uploads')
    op.drop_table('tracks')
    op.drop_table('artists')
    op.drop_table('users')
