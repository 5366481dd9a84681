"""Database helpers for the Catalog API."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select

from .models import SyncJobRecord
from .settings import CatalogSettings
from .utils.paths import ensure_sqlite_parent


DEFAULT_SYNC_JOBS: tuple[dict[str, Any], ...] = (
    {
        "id": "movies-sync",
        "name": "Movies Sync",
        "type": "movies",
        "description": "Sync movies from TMDB API",
        "estimated_time": "5-10 minutes",
        "config": {"pageLimit": 100, "includeAdult": False, "sortBy": "popularity.desc"},
    },
    {
        "id": "tvshows-sync",
        "name": "TV Shows Sync",
        "type": "tvshows",
        "description": "Sync TV shows from TMDB API",
        "estimated_time": "10-15 minutes",
        "config": {"pageLimit": 100, "includeAdult": False, "sortBy": "popularity.desc"},
    },
    {
        "id": "genres-sync",
        "name": "Genres Sync",
        "type": "genres",
        "description": "Sync genres from TMDB API",
        "estimated_time": "1-2 minutes",
        "config": {"includeMovieGenres": True, "includeTvGenres": True},
    },
    {
        "id": "users-sync",
        "name": "Users Sync",
        "type": "users",
        "description": "Sync user data and preferences",
        "estimated_time": "2-3 minutes",
        "config": {"syncPreferences": True, "syncWatchHistory": True},
    },
    {
        "id": "full-sync",
        "name": "Full Sync",
        "type": "all",
        "description": "Complete data synchronization",
        "estimated_time": "30-45 minutes",
        "config": {
            "includeMovies": True,
            "includeTvShows": True,
            "includeGenres": True,
            "includeUsers": True,
        },
    },
)


def create_engine_from_settings(settings: CatalogSettings) -> Engine:
    """Create a SQLModel engine using catalog settings."""

    ensure_sqlite_parent(settings.database_url)
    connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
    return create_engine(settings.database_url, echo=settings.database_echo, connect_args=connect_args)


def init_database(engine: Engine) -> None:
    """Create tables and seed the default sync jobs."""

    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        existing = set(session.exec(select(SyncJobRecord.name)).all())
        for job in DEFAULT_SYNC_JOBS:
            if job["name"] in existing:
                continue
            session.add(SyncJobRecord(**{**job, "config": dict(job["config"])}))
        session.commit()


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Yield a SQLModel session that commits on success and closes automatically."""

    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:  # pragma: no cover - re-raise after rollback
        session.rollback()
        raise
    finally:
        session.close()
