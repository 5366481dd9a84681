"""Public catalog browsing endpoints."""
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_catalog, get_episode_store, get_genre_store, get_movie_store, get_tv_store
from ..errors import NotFoundError
from ..schemas import (
    CatalogQueryParams,
    EpisodeModel,
    GenreModel,
    MovieListModel,
    MovieModel,
    SearchResultsModel,
    SearchSuggestionsModel,
    SeasonModel,
    SortOrder,
    TrendingSearchesModel,
    TvShowListModel,
    TvShowModel,
)
from ..services.catalog_query import CatalogQueryService
from ..stores.catalog_store import EpisodeStore, MovieStore, TvShowStore
from ..stores.genre_store import GenreStore

router = APIRouter(tags=["catalog"])

GenreFilter = Annotated[
    list[str] | None,
    Query(
        alias="genre",
        description=(
            "Filter by genre id or name. Repeat the query parameter to match any of "
            "several genres."
        ),
    ),
]
Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=100)]


def _list_params(
    page: int,
    limit: int,
    genres: list[str] | None,
    year: int | None,
    sort_by: str,
    order: SortOrder,
    search: str | None,
    min_rating: float | None,
    provider: str | None,
    **extra: str | None,
) -> CatalogQueryParams:
    return CatalogQueryParams(
        page=page,
        limit=limit,
        genres=tuple(genres or ()),
        year=year,
        sort_by=sort_by,
        order=order,
        search=search,
        min_rating=min_rating,
        provider=provider,
        **extra,
    )


@router.get("/movies", response_model=MovieListModel)
def list_movies(
    page: Page = 1,
    limit: Limit = 20,
    genres: GenreFilter = None,
    year: int | None = Query(default=None, description="Release year."),
    sort_by: str = Query(default="popularity", alias="sortBy"),
    order: SortOrder = Query(default="desc"),
    search: str | None = Query(default=None, description="Substring of title or overview."),
    min_rating: float | None = Query(default=None, alias="minRating", ge=0, le=10),
    provider: str | None = Query(default=None, description="Watch provider id or name."),
    catalog: CatalogQueryService = Depends(get_catalog),
) -> MovieListModel:
    """Return available movies matching the filters."""

    params = _list_params(page, limit, genres, year, sort_by, order, search, min_rating, provider)
    return catalog.list_movies(params)


@router.get("/movies/popular", response_model=MovieListModel)
def popular_movies(
    page: Page = 1, limit: Limit = 20, catalog: CatalogQueryService = Depends(get_catalog)
) -> MovieListModel:
    return catalog.popular_movies(page=page, limit=limit)


@router.get("/movies/trending", response_model=MovieListModel)
def trending_movies(
    page: Page = 1, limit: Limit = 20, catalog: CatalogQueryService = Depends(get_catalog)
) -> MovieListModel:
    return catalog.trending_movies(page=page, limit=limit)


@router.get("/movies/top-rated", response_model=MovieListModel)
def top_rated_movies(
    page: Page = 1, limit: Limit = 20, catalog: CatalogQueryService = Depends(get_catalog)
) -> MovieListModel:
    return catalog.top_rated_movies(page=page, limit=limit)


@router.get("/movies/upcoming", response_model=MovieListModel)
def upcoming_movies(
    page: Page = 1, limit: Limit = 20, catalog: CatalogQueryService = Depends(get_catalog)
) -> MovieListModel:
    """Movies released within the next six months, soonest first."""

    return catalog.upcoming_movies(page=page, limit=limit)


@router.get("/movies/{movie_id}", response_model=MovieModel)
def get_movie(movie_id: str, store: MovieStore = Depends(get_movie_store)) -> MovieModel:
    movie = store.get(movie_id)
    if movie is None or not movie.is_available:
        raise NotFoundError("Movie not found")
    return movie


@router.get("/tvshows", response_model=TvShowListModel)
def list_tv_shows(
    page: Page = 1,
    limit: Limit = 20,
    genres: GenreFilter = None,
    year: int | None = Query(default=None, description="First air year."),
    sort_by: str = Query(default="popularity", alias="sortBy"),
    order: SortOrder = Query(default="desc"),
    search: str | None = Query(default=None, description="Substring of name or overview."),
    min_rating: float | None = Query(default=None, alias="minRating", ge=0, le=10),
    provider: str | None = Query(default=None, description="Watch provider id or name."),
    status: str | None = Query(default=None, description="Show status, e.g. Ended."),
    show_type: str | None = Query(default=None, alias="type", description="Show type, e.g. Scripted."),
    catalog: CatalogQueryService = Depends(get_catalog),
) -> TvShowListModel:
    """Return available TV shows matching the filters."""

    params = _list_params(
        page,
        limit,
        genres,
        year,
        sort_by,
        order,
        search,
        min_rating,
        provider,
        status=status,
        show_type=show_type,
    )
    return catalog.list_tv_shows(params)


@router.get("/tvshows/popular", response_model=TvShowListModel)
def popular_tv_shows(
    page: Page = 1, limit: Limit = 20, catalog: CatalogQueryService = Depends(get_catalog)
) -> TvShowListModel:
    return catalog.popular_tv_shows(page=page, limit=limit)


@router.get("/tvshows/trending", response_model=TvShowListModel)
def trending_tv_shows(
    page: Page = 1, limit: Limit = 20, catalog: CatalogQueryService = Depends(get_catalog)
) -> TvShowListModel:
    return catalog.trending_tv_shows(page=page, limit=limit)


@router.get("/tvshows/top-rated", response_model=TvShowListModel)
def top_rated_tv_shows(
    page: Page = 1, limit: Limit = 20, catalog: CatalogQueryService = Depends(get_catalog)
) -> TvShowListModel:
    return catalog.top_rated_tv_shows(page=page, limit=limit)


def _available_show(store: TvShowStore, tv_show_id: str) -> TvShowModel:
    show = store.get(tv_show_id)
    if show is None or not show.is_available:
        raise NotFoundError("TV show not found")
    return show


@router.get("/tvshows/{tv_show_id}", response_model=TvShowModel)
def get_tv_show(tv_show_id: str, store: TvShowStore = Depends(get_tv_store)) -> TvShowModel:
    return _available_show(store, tv_show_id)


@router.get("/tvshows/{tv_show_id}/seasons", response_model=list[SeasonModel])
def list_seasons(
    tv_show_id: str,
    store: TvShowStore = Depends(get_tv_store),
    episodes: EpisodeStore = Depends(get_episode_store),
) -> list[SeasonModel]:
    """Return the show's seasons with the number of episodes stored for each."""

    show = _available_show(store, tv_show_id)
    stored = episodes.counts_by_season(tv_show_id)
    seasons = {
        season.season_number: SeasonModel(
            **season.model_dump(), stored_episodes=stored.get(season.season_number, 0)
        )
        for season in show.seasons
    }
    for number, count in stored.items():
        seasons.setdefault(number, SeasonModel(season_number=number, episode_count=count, stored_episodes=count))
    return [seasons[number] for number in sorted(seasons)]


@router.get("/tvshows/{tv_show_id}/seasons/{season_number}/episodes", response_model=list[EpisodeModel])
def list_episodes(
    tv_show_id: str,
    season_number: int,
    store: TvShowStore = Depends(get_tv_store),
    episodes: EpisodeStore = Depends(get_episode_store),
) -> list[EpisodeModel]:
    _available_show(store, tv_show_id)
    return episodes.list_for_season(tv_show_id, season_number)


@router.get("/genres", response_model=list[GenreModel])
def list_genres(
    media_type: Literal["movie", "tv"] | None = Query(default=None, alias="mediaType"),
    store: GenreStore = Depends(get_genre_store),
) -> list[GenreModel]:
    """Return the genre taxonomy with usage counts."""

    return store.list(media_type=media_type)


@router.get("/genres/{genre_id}", response_model=GenreModel)
def get_genre(genre_id: str, store: GenreStore = Depends(get_genre_store)) -> GenreModel:
    genre = store.get(genre_id)
    if genre is None:
        raise NotFoundError("Genre not found")
    return genre


@router.get("/search", response_model=SearchResultsModel)
def search(
    q: str = Query(..., min_length=1, description="Literal text matched against titles and overviews."),
    limit: Limit = 20,
    catalog: CatalogQueryService = Depends(get_catalog),
) -> SearchResultsModel:
    return catalog.search(q, limit=limit)


@router.get("/search/suggestions", response_model=SearchSuggestionsModel)
def search_suggestions(
    q: str = Query(default="", description="Partial query; at least two characters."),
    catalog: CatalogQueryService = Depends(get_catalog),
) -> SearchSuggestionsModel:
    """Movie titles and genres to offer while the user types."""

    return catalog.suggestions(q)


@router.get("/search/trending", response_model=TrendingSearchesModel)
def trending_searches(catalog: CatalogQueryService = Depends(get_catalog)) -> TrendingSearchesModel:
    return catalog.trending_searches()
