"""Admin catalog management endpoints."""
from math import ceil

from fastapi import APIRouter, Depends, Query

from ..dependencies import (
    get_activity_store,
    get_episode_store,
    get_genre_store,
    get_movie_store,
    get_sync_engine,
    get_tv_store,
    get_watchlist_store,
)
from ..errors import CatalogValidationError
from ..schemas import (
    ActivityAction,
    AdminResponse,
    AvailabilityUpdate,
    CatalogQueryParams,
    DashboardStatsModel,
    GenreCreate,
    GenreUpdate,
    MovieCreate,
    MovieListModel,
    MovieUpdate,
    SortOrder,
    TvShowCreate,
    TvShowListModel,
    TvShowUpdate,
)
from ..security import require_admin
from ..services.activity import ActivityContext, activity_logger
from ..services.sync_engine import SyncEngine
from ..stores.activity_store import ActivityStore
from ..stores.catalog_store import EpisodeStore, MovieStore, TvShowStore
from ..stores.genre_store import GenreStore
from ..stores.watchlist_store import WatchlistStore

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _admin_params(
    page: int, limit: int, search: str | None, sort_by: str, order: str, store
) -> CatalogQueryParams:
    if sort_by not in store.sort_columns:
        raise CatalogValidationError(f"Unsupported sortBy value: {sort_by}")
    return CatalogQueryParams(
        page=page, limit=limit, search=search, sort_by=sort_by, order=order
    ).normalized()


@router.get("/dashboard/stats", response_model=AdminResponse)
def dashboard_stats(
    movies: MovieStore = Depends(get_movie_store),
    tv_shows: TvShowStore = Depends(get_tv_store),
    episodes: EpisodeStore = Depends(get_episode_store),
    genres: GenreStore = Depends(get_genre_store),
    watchlist: WatchlistStore = Depends(get_watchlist_store),
    activity: ActivityStore = Depends(get_activity_store),
) -> AdminResponse:
    """Headline counts plus the newest movies and audit entries."""

    stats = DashboardStatsModel(
        total_movies=movies.count(),
        available_movies=movies.count(available_only=True),
        total_tv_shows=tv_shows.count(),
        available_tv_shows=tv_shows.count(available_only=True),
        total_genres=genres.count(),
        total_episodes=episodes.count(),
        watchlist_entries=watchlist.count(),
        recent_movies=movies.recent(5),
        recent_activity=activity.recent(10),
    )
    return AdminResponse.ok("Dashboard statistics", stats)


@router.get("/movies", response_model=AdminResponse)
def list_movies(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    order: SortOrder = Query(default="desc"),
    store: MovieStore = Depends(get_movie_store),
) -> AdminResponse:
    """List every movie, including unavailable ones, without caching."""

    params = _admin_params(page, limit, search, sort_by, order, store)
    items, total = store.find(params, available_only=False)
    listing = MovieListModel(
        items=items, total_pages=ceil(total / limit) if total else 0, current_page=page, total=total
    )
    return AdminResponse.ok("Movies retrieved", listing)


@router.post("/movies", response_model=AdminResponse, status_code=201)
def create_movie(
    payload: MovieCreate,
    store: MovieStore = Depends(get_movie_store),
    activity: ActivityContext = Depends(activity_logger("movie_create", "movie")),
) -> AdminResponse:
    movie = store.create(payload)
    activity.resource_id = movie.id
    activity.description = f"Created movie: {movie.title}"
    return AdminResponse.ok("Movie created successfully", movie)


@router.put("/movies/{movie_id}", response_model=AdminResponse)
def update_movie(
    movie_id: str,
    payload: MovieUpdate,
    store: MovieStore = Depends(get_movie_store),
    activity: ActivityContext = Depends(activity_logger("movie_update", "movie")),
) -> AdminResponse:
    activity.resource_id = movie_id
    activity.details = {"fields": sorted(payload.model_dump(exclude_unset=True))}
    movie = store.update(movie_id, payload)
    activity.description = f"Updated movie: {movie.title}"
    return AdminResponse.ok("Movie updated successfully", movie)


@router.delete("/movies/{movie_id}", response_model=AdminResponse)
def delete_movie(
    movie_id: str,
    store: MovieStore = Depends(get_movie_store),
    activity: ActivityContext = Depends(activity_logger("movie_delete", "movie")),
) -> AdminResponse:
    """Delete a movie together with its watchlist, history and genre links."""

    activity.resource_id = movie_id
    movie = store.delete(movie_id)
    activity.description = f"Deleted movie: {movie.title}"
    return AdminResponse.ok("Movie deleted successfully", movie)


@router.put("/movies/{movie_id}/availability", response_model=AdminResponse)
def set_movie_availability(
    movie_id: str,
    payload: AvailabilityUpdate,
    store: MovieStore = Depends(get_movie_store),
    activity: ActivityContext = Depends(activity_logger("movie_availability", "movie")),
) -> AdminResponse:
    activity.resource_id = movie_id
    activity.details = {"isAvailable": payload.is_available}
    movie = store.set_availability(movie_id, payload.is_available)
    state = "available" if movie.is_available else "unavailable"
    activity.description = f"Marked movie {movie.title} {state}"
    return AdminResponse.ok(f"Movie marked {state}", movie)


@router.get("/tvshows", response_model=AdminResponse)
def list_tv_shows(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    order: SortOrder = Query(default="desc"),
    store: TvShowStore = Depends(get_tv_store),
) -> AdminResponse:
    params = _admin_params(page, limit, search, sort_by, order, store)
    items, total = store.find(params, available_only=False)
    listing = TvShowListModel(
        items=items, total_pages=ceil(total / limit) if total else 0, current_page=page, total=total
    )
    return AdminResponse.ok("TV shows retrieved", listing)


@router.post("/tvshows", response_model=AdminResponse, status_code=201)
def create_tv_show(
    payload: TvShowCreate,
    store: TvShowStore = Depends(get_tv_store),
    activity: ActivityContext = Depends(activity_logger("tvshow_create", "tvshow")),
) -> AdminResponse:
    show = store.create(payload)
    activity.resource_id = show.id
    activity.description = f"Created TV show: {show.name}"
    return AdminResponse.ok("TV show created successfully", show)


@router.put("/tvshows/{tv_show_id}", response_model=AdminResponse)
def update_tv_show(
    tv_show_id: str,
    payload: TvShowUpdate,
    store: TvShowStore = Depends(get_tv_store),
    activity: ActivityContext = Depends(activity_logger("tvshow_update", "tvshow")),
) -> AdminResponse:
    activity.resource_id = tv_show_id
    activity.details = {"fields": sorted(payload.model_dump(exclude_unset=True))}
    show = store.update(tv_show_id, payload)
    activity.description = f"Updated TV show: {show.name}"
    return AdminResponse.ok("TV show updated successfully", show)


@router.delete("/tvshows/{tv_show_id}", response_model=AdminResponse)
def delete_tv_show(
    tv_show_id: str,
    store: TvShowStore = Depends(get_tv_store),
    activity: ActivityContext = Depends(activity_logger("tvshow_delete", "tvshow")),
) -> AdminResponse:
    """Delete a show with its episodes, watchlist, history and genre links."""

    activity.resource_id = tv_show_id
    show = store.delete(tv_show_id)
    activity.description = f"Deleted TV show: {show.name}"
    return AdminResponse.ok("TV show deleted successfully", show)


@router.put("/tvshows/{tv_show_id}/availability", response_model=AdminResponse)
def set_tv_show_availability(
    tv_show_id: str,
    payload: AvailabilityUpdate,
    store: TvShowStore = Depends(get_tv_store),
    activity: ActivityContext = Depends(activity_logger("tvshow_availability", "tvshow")),
) -> AdminResponse:
    activity.resource_id = tv_show_id
    activity.details = {"isAvailable": payload.is_available}
    show = store.set_availability(tv_show_id, payload.is_available)
    state = "available" if show.is_available else "unavailable"
    activity.description = f"Marked TV show {show.name} {state}"
    return AdminResponse.ok(f"TV show marked {state}", show)


@router.post("/tvshows/{tv_show_id}/seasons/{season_number}/sync", response_model=AdminResponse)
async def sync_season(
    tv_show_id: str,
    season_number: int,
    engine: SyncEngine = Depends(get_sync_engine),
    activity: ActivityContext = Depends(activity_logger("tvshow_season_sync", "tvshow")),
) -> AdminResponse:
    """Fetch one season from TMDB and store its episodes."""

    activity.resource_id = tv_show_id
    activity.details = {"season": season_number}
    summary = await engine.sync_season(tv_show_id, season_number)
    activity.description = f"Synced season {season_number} of TV show {tv_show_id}"
    return AdminResponse.ok(f"Season {season_number} synced", summary)


@router.post("/genres", response_model=AdminResponse, status_code=201)
def create_genre(
    payload: GenreCreate,
    store: GenreStore = Depends(get_genre_store),
    activity: ActivityContext = Depends(activity_logger("genre_create", "genre")),
) -> AdminResponse:
    genre = store.create(payload)
    activity.resource_id = genre.id
    activity.description = f"Created genre: {genre.name}"
    return AdminResponse.ok("Genre created successfully", genre)


@router.put("/genres/{genre_id}", response_model=AdminResponse)
def update_genre(
    genre_id: str,
    payload: GenreUpdate,
    store: GenreStore = Depends(get_genre_store),
    activity: ActivityContext = Depends(activity_logger("genre_update", "genre")),
) -> AdminResponse:
    activity.resource_id = genre_id
    genre = store.update(genre_id, payload)
    activity.description = f"Updated genre: {genre.name}"
    return AdminResponse.ok("Genre updated successfully", genre)


@router.delete("/genres/{genre_id}", response_model=AdminResponse)
def delete_genre(
    genre_id: str,
    store: GenreStore = Depends(get_genre_store),
    activity: ActivityContext = Depends(activity_logger("genre_delete", "genre")),
) -> AdminResponse:
    """Delete a genre; refused while any movie or show still uses it."""

    activity.resource_id = genre_id
    genre = store.delete(genre_id)
    activity.description = f"Deleted genre: {genre.name}"
    return AdminResponse.ok("Genre deleted successfully", genre)


@router.get("/activity", response_model=AdminResponse)
def list_activity(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    action: ActivityAction | None = Query(default=None),
    resource: str | None = Query(default=None),
    admin_id: str | None = Query(default=None, alias="adminId"),
    success: bool | None = Query(default=None),
    store: ActivityStore = Depends(get_activity_store),
) -> AdminResponse:
    """Return the audit trail, newest first."""

    listing = store.list(
        page=page, limit=limit, action=action, resource=resource, admin_id=admin_id, success=success
    )
    return AdminResponse.ok("Activity retrieved", listing)
