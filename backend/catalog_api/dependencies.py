"""FastAPI dependencies for the Catalog API."""
from fastapi import Depends, Request

from .services.catalog_query import CatalogQueryService
from .services.queue import SyncQueueService
from .services.scheduler import SyncScheduler
from .services.sync_engine import SyncEngine
from .state import AppState
from .stores.activity_store import ActivityStore
from .stores.catalog_store import EpisodeStore, MovieStore, TvShowStore
from .stores.genre_store import GenreStore
from .stores.sync_job_log_store import SyncJobLogStore
from .stores.sync_job_store import SyncJobStore
from .stores.watchlist_store import WatchlistStore


def get_app_state(request: Request) -> AppState:
    """Resolve the shared application state from the FastAPI request."""
    return request.app.state.app_state


def get_movie_store(app_state: AppState = Depends(get_app_state)) -> MovieStore:
    return app_state.movie_store


def get_tv_store(app_state: AppState = Depends(get_app_state)) -> TvShowStore:
    return app_state.tv_store


def get_episode_store(app_state: AppState = Depends(get_app_state)) -> EpisodeStore:
    return app_state.episode_store


def get_genre_store(app_state: AppState = Depends(get_app_state)) -> GenreStore:
    return app_state.genre_store


def get_watchlist_store(app_state: AppState = Depends(get_app_state)) -> WatchlistStore:
    return app_state.watchlist_store


def get_job_store(app_state: AppState = Depends(get_app_state)) -> SyncJobStore:
    """Return the sync job store dependency."""
    return app_state.job_store


def get_job_log_store(app_state: AppState = Depends(get_app_state)) -> SyncJobLogStore:
    """Return the sync job log store dependency."""
    return app_state.job_log_store


def get_activity_store(app_state: AppState = Depends(get_app_state)) -> ActivityStore:
    return app_state.activity_store


def get_catalog(app_state: AppState = Depends(get_app_state)) -> CatalogQueryService:
    """Return the cached catalog query service."""
    return app_state.catalog


def get_sync_engine(app_state: AppState = Depends(get_app_state)) -> SyncEngine:
    return app_state.sync_engine


def get_scheduler(app_state: AppState = Depends(get_app_state)) -> SyncScheduler:
    return app_state.scheduler


def get_job_queue(app_state: AppState = Depends(get_app_state)) -> SyncQueueService:
    """Return the Redis-backed sync queue."""
    return app_state.job_queue
