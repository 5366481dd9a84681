"""Database models for the catalog store."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from .utils.clock import utcnow


class MovieRecord(SQLModel, table=True):
    """Movie metadata mirrored from TMDB or created by an admin."""

    __tablename__ = "catalog_movies"
    __table_args__ = (
        Index("ix_catalog_movies_available_rating", "is_available", "vote_average"),
        Index("ix_catalog_movies_available_popularity", "is_available", "popularity"),
    )

    id: str = Field(primary_key=True)
    tmdb_id: int | None = Field(default=None, unique=True, index=True)
    imdb_id: str | None = Field(default=None, index=True)
    title: str = Field(index=True)
    original_title: str | None = None
    overview: str = ""
    release_date: date | None = Field(default=None, index=True)
    poster_path: str | None = None
    backdrop_path: str | None = None
    runtime: int | None = None
    vote_average: float = Field(default=0.0)
    vote_count: int = Field(default=0)
    popularity: float = Field(default=0.0)
    adult: bool = Field(default=False)
    original_language: str = Field(default="en")
    is_available: bool = Field(default=True)
    embed_url: str | None = None
    created_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


class TvShowRecord(SQLModel, table=True):
    """TV show metadata including denormalized season summaries."""

    __tablename__ = "catalog_tvshows"
    __table_args__ = (
        Index("ix_catalog_tvshows_available_rating", "is_available", "vote_average"),
        Index("ix_catalog_tvshows_available_popularity", "is_available", "popularity"),
    )

    id: str = Field(primary_key=True)
    tmdb_id: int | None = Field(default=None, unique=True, index=True)
    imdb_id: str | None = Field(default=None, index=True)
    name: str = Field(index=True)
    original_name: str | None = None
    overview: str = ""
    first_air_date: date | None = Field(default=None, index=True)
    last_air_date: date | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    number_of_seasons: int = Field(default=1)
    number_of_episodes: int = Field(default=0)
    vote_average: float = Field(default=0.0)
    vote_count: int = Field(default=0)
    popularity: float = Field(default=0.0)
    adult: bool = Field(default=False)
    original_language: str = Field(default="en")
    status: str = Field(default="Returning Series", index=True)
    show_type: str = Field(default="Scripted", index=True)
    seasons: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    networks: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    created_by: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    is_available: bool = Field(default=True)
    embed_url: str | None = None
    created_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


class EpisodeRecord(SQLModel, table=True):
    """Single episode owned by a TV show."""

    __tablename__ = "catalog_episodes"
    __table_args__ = (
        UniqueConstraint(
            "tv_show_id", "season_number", "episode_number", name="uq_catalog_episode_position"
        ),
    )

    id: str = Field(primary_key=True)
    tv_show_id: str = Field(foreign_key="catalog_tvshows.id", index=True)
    tmdb_id: int | None = Field(default=None, index=True)
    season_number: int
    episode_number: int
    name: str
    overview: str = ""
    air_date: date | None = None
    still_path: str | None = None
    vote_average: float = Field(default=0.0)
    vote_count: int = Field(default=0)
    runtime: int | None = None
    embed_url: str | None = None
    is_available: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


class GenreRecord(SQLModel, table=True):
    """Genre taxonomy entry referenced by movies and shows."""

    __tablename__ = "catalog_genres"

    id: str = Field(primary_key=True)
    tmdb_id: int | None = Field(default=None, unique=True, index=True)
    name: str = Field(index=True)
    media_type: str = Field(default="movie")
    created_at: datetime = Field(default_factory=utcnow, nullable=False)


class GenreLinkRecord(SQLModel, table=True):
    """Ordered genre reference held by a movie or TV show."""

    __tablename__ = "catalog_genre_links"
    __table_args__ = (
        Index("ix_catalog_genre_links_media_genre", "media_type", "genre_id"),
    )

    media_type: str = Field(primary_key=True)
    media_id: str = Field(primary_key=True)
    genre_id: str = Field(primary_key=True, foreign_key="catalog_genres.id")
    position: int = Field(default=0)


class WatchProviderRecord(SQLModel, table=True):
    """Streaming offer attached to a movie or TV show."""

    __tablename__ = "catalog_watch_providers"
    __table_args__ = (
        Index("ix_catalog_watch_providers_media", "media_type", "media_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    media_type: str
    media_id: str
    provider_id: int = Field(index=True)
    provider_name: str
    offer_type: str = Field(default="flatrate")
    logo_path: str | None = None


class WatchlistRecord(SQLModel, table=True):
    """Watchlist entry pairing a user with a movie or TV show."""

    __tablename__ = "catalog_watchlist"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_catalog_watchlist_user_movie"),
        UniqueConstraint("user_id", "tv_show_id", name="uq_catalog_watchlist_user_show"),
    )

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    movie_id: str | None = Field(default=None, foreign_key="catalog_movies.id")
    tv_show_id: str | None = Field(default=None, foreign_key="catalog_tvshows.id")
    item_type: str
    status: str = Field(default="plan_to_watch")
    rating: int | None = None
    review: str | None = None
    current_season: int = Field(default=1)
    current_episode: int = Field(default=0)
    added_at: datetime = Field(default_factory=utcnow, nullable=False)
    watched_at: datetime | None = None


class WatchHistoryRecord(SQLModel, table=True):
    """Playback progress for a user on a movie or an episode of a show."""

    __tablename__ = "catalog_watch_history"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "movie_id",
            "tv_show_id",
            "season",
            "episode",
            name="uq_catalog_watch_history_position",
        ),
        Index("ix_catalog_watch_history_user_watched", "user_id", "watched_at"),
    )

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    movie_id: str | None = Field(default=None, foreign_key="catalog_movies.id")
    tv_show_id: str | None = Field(default=None, foreign_key="catalog_tvshows.id")
    season: int = Field(default=0)
    episode: int = Field(default=0)
    duration: int
    last_position: int = Field(default=0)
    completed: bool = Field(default=False)
    watched_at: datetime = Field(default_factory=utcnow, nullable=False)


class SyncJobRecord(SQLModel, table=True):
    """Named sync job mutated in place by the sync engine."""

    __tablename__ = "sync_jobs"
    __table_args__ = (Index("ix_sync_jobs_type_status", "type", "status"),)

    id: str = Field(primary_key=True)
    name: str = Field(unique=True)
    type: str = Field(index=True)
    status: str = Field(default="idle")
    progress: int = Field(default=0)
    description: str = ""
    estimated_time: str = Field(default="Unknown")
    is_enabled: bool = Field(default=True, index=True)
    items_processed: int = Field(default=0)
    total_items: int = Field(default=0)
    success_count: int = Field(default=0)
    failure_count: int = Field(default=0)
    error_message: str | None = None
    last_error: datetime | None = None
    last_run: datetime | None = None
    next_run: datetime | None = None
    worker_id: str | None = None
    lease_token: str | None = None
    lease_expires_at: datetime | None = None
    config: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


class SyncJobLogRecord(SQLModel, table=True):
    """Structured log event associated with a sync job."""

    __tablename__ = "sync_job_logs"

    id: int | None = Field(default=None, primary_key=True)
    job_id: str = Field(index=True)
    level: str = Field(default="info", index=True)
    message: str
    context: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    created_at: datetime = Field(default_factory=utcnow, index=True)


class AdminActivityRecord(SQLModel, table=True):
    """Append-only audit trail entry for an admin mutation."""

    __tablename__ = "admin_activity"
    __table_args__ = (
        Index("ix_admin_activity_action_created", "action", "created_at"),
        Index("ix_admin_activity_resource_created", "resource", "created_at"),
    )

    id: int | None = Field(default=None, primary_key=True)
    admin_id: str = Field(index=True)
    admin_name: str | None = None
    action: str
    resource: str
    resource_id: str | None = None
    description: str
    details: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    success: bool = Field(default=True)
    error_message: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
