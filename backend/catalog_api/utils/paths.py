"""Filesystem helpers for catalog storage paths."""
from __future__ import annotations

from pathlib import Path

from platformdirs import user_data_dir


APP_NAME = "Reelvault"
APP_AUTHOR = "Reelvault"


def default_database_path() -> str:
    """Return the platform-appropriate default SQLite database file."""

    base_dir = Path(user_data_dir(APP_NAME, APP_AUTHOR))
    return str(base_dir / "catalog.db")


def default_database_url() -> str:
    """Return a SQLite URL pointing at the default database file."""

    return f"sqlite:///{default_database_path()}"


def ensure_sqlite_parent(database_url: str) -> None:
    """Create parent directories when using a file-backed SQLite URL."""

    if database_url.startswith("sqlite:///"):
        path_part = database_url.removeprefix("sqlite:///").split("?")[0]
        if path_part and path_part != ":memory:":
            Path(path_part).expanduser().parent.mkdir(parents=True, exist_ok=True)
