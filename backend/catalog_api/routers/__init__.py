"""Router exports for the Catalog API."""
from . import admin, catalog, health, streaming, sync, watchlist

__all__ = ["admin", "catalog", "health", "streaming", "sync", "watchlist"]
