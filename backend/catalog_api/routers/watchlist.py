"""Per-user watchlist and playback history endpoints."""
from typing import Literal

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_watchlist_store
from ..schemas import (
    HistoryCreate,
    WatchHistoryModel,
    WatchlistCreate,
    WatchlistEntryModel,
    WatchlistUpdate,
    WatchStatus,
)
from ..security import CurrentUser, require_user
from ..stores.watchlist_store import WatchlistStore

router = APIRouter(tags=["watchlist"])


@router.get("/watchlist", response_model=list[WatchlistEntryModel])
def list_watchlist(
    status: WatchStatus | None = Query(default=None),
    item_type: Literal["movie", "tvshow"] | None = Query(default=None, alias="type"),
    user: CurrentUser = Depends(require_user),
    store: WatchlistStore = Depends(get_watchlist_store),
) -> list[WatchlistEntryModel]:
    """Return the caller's watchlist, newest first."""

    return store.list_entries(user.id, status=status, item_type=item_type)


@router.post("/watchlist", response_model=WatchlistEntryModel, status_code=201)
def add_to_watchlist(
    payload: WatchlistCreate,
    user: CurrentUser = Depends(require_user),
    store: WatchlistStore = Depends(get_watchlist_store),
) -> WatchlistEntryModel:
    return store.add(user.id, payload)


@router.put("/watchlist/{entry_id}", response_model=WatchlistEntryModel)
def update_watchlist_entry(
    entry_id: str,
    payload: WatchlistUpdate,
    user: CurrentUser = Depends(require_user),
    store: WatchlistStore = Depends(get_watchlist_store),
) -> WatchlistEntryModel:
    return store.update(user.id, entry_id, payload)


@router.delete("/watchlist/{entry_id}", response_model=WatchlistEntryModel)
def remove_from_watchlist(
    entry_id: str,
    user: CurrentUser = Depends(require_user),
    store: WatchlistStore = Depends(get_watchlist_store),
) -> WatchlistEntryModel:
    return store.remove(user.id, entry_id)


@router.get("/history", response_model=list[WatchHistoryModel])
def list_history(
    limit: int = Query(default=50, ge=1, le=200),
    user: CurrentUser = Depends(require_user),
    store: WatchlistStore = Depends(get_watchlist_store),
) -> list[WatchHistoryModel]:
    return store.list_history(user.id, limit=limit)


@router.post("/history", response_model=WatchHistoryModel)
def record_history(
    payload: HistoryCreate,
    user: CurrentUser = Depends(require_user),
    store: WatchlistStore = Depends(get_watchlist_store),
) -> WatchHistoryModel:
    """Report playback progress; 90% of the duration marks the item completed."""

    return store.record_progress(user.id, payload)


@router.get("/history/continue", response_model=list[WatchHistoryModel])
def continue_watching(
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(require_user),
    store: WatchlistStore = Depends(get_watchlist_store),
) -> list[WatchHistoryModel]:
    return store.continue_watching(user.id, limit=limit)
