"""Shared state container for the Catalog API."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlmodel import Session

from .db import create_engine_from_settings, init_database
from .services.catalog_query import CatalogQueryService
from .services.query_cache import TTLCache
from .services.queue import SyncQueueService
from .services.scheduler import SyncScheduler
from .services.sync_engine import SyncEngine, SyncOptions
from .services.tmdb_client import create_tmdb_client
from .settings import CatalogSettings
from .stores.activity_store import ActivityStore
from .stores.catalog_store import EpisodeStore, MovieStore, TvShowStore
from .stores.genre_store import GenreStore
from .stores.sync_job_log_store import SyncJobLogStore
from .stores.sync_job_store import SyncJobStore
from .stores.watchlist_store import WatchlistStore


@dataclass(slots=True)
class AppState:
    """Encapsulates mutable application state shared across routers."""

    settings: CatalogSettings
    engine: Engine
    movie_store: MovieStore
    tv_store: TvShowStore
    episode_store: EpisodeStore
    genre_store: GenreStore
    watchlist_store: WatchlistStore
    job_store: SyncJobStore
    job_log_store: SyncJobLogStore
    activity_store: ActivityStore
    catalog: CatalogQueryService
    sync_engine: SyncEngine
    scheduler: SyncScheduler
    job_queue: SyncQueueService

    def __init__(self, settings: CatalogSettings) -> None:
        self.settings = settings
        self.engine = create_engine_from_settings(settings)
        init_database(self.engine)
        self.movie_store = MovieStore(self.engine)
        self.tv_store = TvShowStore(self.engine)
        self.episode_store = EpisodeStore(self.engine)
        self.genre_store = GenreStore(self.engine)
        self.watchlist_store = WatchlistStore(self.engine)
        self.job_store = SyncJobStore(self.engine, lease_seconds=settings.sync_job_lease_seconds)
        self.job_log_store = SyncJobLogStore(self.engine)
        self.activity_store = ActivityStore(self.engine)
        self.catalog = CatalogQueryService(
            self.movie_store,
            self.tv_store,
            self.genre_store,
            TTLCache(ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries),
        )
        self.sync_engine = SyncEngine(
            movie_store=self.movie_store,
            tv_store=self.tv_store,
            episode_store=self.episode_store,
            genre_store=self.genre_store,
            job_store=self.job_store,
            log_store=self.job_log_store,
            client_factory=lambda: create_tmdb_client(settings),
            defaults=SyncOptions.from_settings(settings),
            worker_id="api",
        )
        self.scheduler = SyncScheduler(self.sync_engine)
        self.job_queue = SyncQueueService(settings)

    def session(self) -> Session:
        """Instantiate a SQLModel session for dependencies."""

        return Session(self.engine)
