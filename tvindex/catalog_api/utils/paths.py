"""Filesystem helpers for catalog data paths."""
from __future__ import annotations

from pathlib import Path

from platformdirs import user_data_dir


APP_NAME = "tvindex"
APP_AUTHOR = "tvindex"


def default_data_dir() -> Path:
    """Return the platform-appropriate directory for catalog data."""

    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


def default_database_url() -> str:
    """SQLite URL of the catalog database inside the data directory."""

    return f"sqlite:///{(default_data_dir() / 'catalog.db').as_posix()}"
