"""Run the task store migrations programmatically."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from bgi_panel.storage.common import sqlite_url

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]


def build_alembic_config(db_path: Path) -> Config:
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", sqlite_url(db_path))
    return config


def upgrade_head(db_path: Path) -> None:
    """Bring the SQLite task store at ``db_path`` up to the latest revision."""

    db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug("Upgrading task store schema at %s", db_path)
    command.upgrade(build_alembic_config(db_path), "head")
