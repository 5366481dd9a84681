"""Service layer helpers for external integrations."""

from .query_cache import TTLCache
from .sync_engine import SyncEngine, SyncOptions
from .tmdb_client import TMDBClient, create_tmdb_client

__all__ = [
    "SyncEngine",
    "SyncOptions",
    "TMDBClient",
    "TTLCache",
    "create_tmdb_client",
]
