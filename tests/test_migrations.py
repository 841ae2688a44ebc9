from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "backend" / "alembic.ini"


def alembic_config(url):
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("sqlalchemy.url", url)
    config.attributes["url_from_caller"] = True
    config.attributes["configure_logger"] = False
    return config


def test_upgrade_creates_schema(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    command.upgrade(alembic_config(url), "head")

    engine = create_engine(url)
    inspector = inspect(engine)
    assert {"users", "artists", "tracks", "track_uploads", "streams"} <= set(inspector.get_table_names())
    track_columns = {c["name"] for c in inspector.get_columns("tracks")}
    assert {"file_url", "artwork_url", "stream_count", "status", "is_public"} <= track_columns
    engine.dispose()


def test_downgrade_drops_schema(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    config = alembic_config(url)
    command.upgrade(config, "head")
    command.downgrade(config, "base")

    engine = create_engine(url)
    assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
    engine.dispose()
