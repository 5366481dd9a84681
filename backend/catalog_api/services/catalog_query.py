"""Cached, filtered and paginated reads over the catalog store."""
from __future__ import annotations

from datetime import date, timedelta
from math import ceil
from typing import Any

from ..errors import CatalogValidationError
from ..schemas import (
    CatalogQueryParams,
    MovieListModel,
    SearchResultsModel,
    SearchSuggestion,
    SearchSuggestionsModel,
    TrendingSearchesModel,
    TvShowListModel,
)
from ..stores.catalog_store import MovieStore, TvShowStore
from ..stores.genre_store import GenreStore
from .query_cache import TTLCache, cache_key

TOP_RATED_MIN_RATING = 7.0
TOP_RATED_MIN_VOTES = 100
UPCOMING_WINDOW = timedelta(days=183)
SUGGESTION_MIN_LENGTH = 2
SUGGESTED_TITLES = 5
SUGGESTED_GENRES = 3
TRENDING_GENRES = 5
TRENDING_TITLES = 3


class CatalogQueryService:
    """Serves list endpoints through a read-through TTL cache.

    A genre filter value may be a store id or a genre name (matched
    case-insensitively); several values are OR-combined. When none of them
    resolve the result is an empty page.
    """

    def __init__(
        self,
        movie_store: MovieStore,
        tv_store: TvShowStore,
        genre_store: GenreStore,
        cache: TTLCache[Any],
    ) -> None:
        self._movies = movie_store
        self._tv_shows = tv_store
        self._genres = genre_store
        self.cache = cache

    def list_movies(self, params: CatalogQueryParams) -> MovieListModel:
        return self._page("movies", self._movies, params, MovieListModel)

    def list_tv_shows(self, params: CatalogQueryParams) -> TvShowListModel:
        return self._page("tvshows", self._tv_shows, params, TvShowListModel)

    def popular_movies(self, *, page: int = 1, limit: int = 20) -> MovieListModel:
        params = CatalogQueryParams(page=page, limit=limit, sort_by="popularity", order="desc")
        return self._page("movies:popular", self._movies, params, MovieListModel)

    def trending_movies(self, *, page: int = 1, limit: int = 20) -> MovieListModel:
        params = CatalogQueryParams(page=page, limit=limit, sort_by="voteAverage", order="desc")
        return self._page("movies:trending", self._movies, params, MovieListModel)

    def top_rated_movies(self, *, page: int = 1, limit: int = 20) -> MovieListModel:
        params = CatalogQueryParams(
            page=page,
            limit=limit,
            min_rating=TOP_RATED_MIN_RATING,
            min_votes=TOP_RATED_MIN_VOTES,
            sort_by="voteAverage",
            order="desc",
        )
        return self._page("movies:top-rated", self._movies, params, MovieListModel)

    def upcoming_movies(
        self, *, page: int = 1, limit: int = 20, today: date | None = None
    ) -> MovieListModel:
        start = today or date.today()
        params = CatalogQueryParams(
            page=page,
            limit=limit,
            released_after=start,
            released_before=start + UPCOMING_WINDOW,
            sort_by="releaseDate",
            order="asc",
        )
        return self._page("movies:upcoming", self._movies, params, MovieListModel)

    def popular_tv_shows(self, *, page: int = 1, limit: int = 20) -> TvShowListModel:
        params = CatalogQueryParams(page=page, limit=limit, sort_by="popularity", order="desc")
        return self._page("tvshows:popular", self._tv_shows, params, TvShowListModel)

    def trending_tv_shows(self, *, page: int = 1, limit: int = 20) -> TvShowListModel:
        params = CatalogQueryParams(page=page, limit=limit, sort_by="voteAverage", order="desc")
        return self._page("tvshows:trending", self._tv_shows, params, TvShowListModel)

    def top_rated_tv_shows(self, *, page: int = 1, limit: int = 20) -> TvShowListModel:
        params = CatalogQueryParams(
            page=page,
            limit=limit,
            min_rating=TOP_RATED_MIN_RATING,
            min_votes=TOP_RATED_MIN_VOTES,
            sort_by="voteAverage",
            order="desc",
        )
        return self._page("tvshows:top-rated", self._tv_shows, params, TvShowListModel)

    def search(self, query: str, *, limit: int = 20) -> SearchResultsModel:
        """Literal substring search across movies and TV shows."""

        params = CatalogQueryParams(search=query, limit=limit).normalized()

        def load() -> SearchResultsModel:
            movies, movie_total = self._movies.find(params)
            shows, show_total = self._tv_shows.find(params)
            return SearchResultsModel(
                query=query,
                movies=movies,
                tv_shows=shows,
                total=movie_total + show_total,
            )

        return self.cache.get_or_set(cache_key("search", params), load)

    def suggestions(self, query: str) -> SearchSuggestionsModel:
        """Available movie titles and genre names containing ``query``.

        Queries shorter than two characters get no suggestions.
        """

        term = query.strip()
        if len(term) < SUGGESTION_MIN_LENGTH:
            return SearchSuggestionsModel(suggestions=[])

        def load() -> SearchSuggestionsModel:
            titles = self._movies.matching_titles(term, limit=SUGGESTED_TITLES)
            genres = self._genres.names(term=term, limit=SUGGESTED_GENRES)
            return SearchSuggestionsModel(
                suggestions=[*map(_title_suggestion, titles), *map(_genre_suggestion, genres)]
            )

        return self.cache.get_or_set(f"search:suggestions:{term.lower()}", load)

    def trending_searches(self) -> TrendingSearchesModel:
        """Genre names followed by the newest available movie titles."""

        def load() -> TrendingSearchesModel:
            genres = self._genres.names(limit=TRENDING_GENRES)
            movies = self._movies.recent(TRENDING_TITLES, available_only=True)
            return TrendingSearchesModel(
                trending=[
                    *map(_genre_suggestion, genres),
                    *(_title_suggestion(movie.title) for movie in movies),
                ]
            )

        return self.cache.get_or_set("search:trending", load)

    def _page(self, kind: str, store, params: CatalogQueryParams, list_model):
        normalized = params.normalized()
        if normalized.sort_by not in store.sort_columns:
            raise CatalogValidationError(
                f"Unsupported sortBy value: {normalized.sort_by}. "
                f"Allowed: {', '.join(store.sort_columns)}"
            )

        def load():
            genre_ids = None
            if normalized.genres:
                genre_ids = self._genres.resolve(normalized.genres)
                if not genre_ids:
                    return list_model(
                        items=[], total_pages=0, current_page=normalized.page, total=0
                    )
            items, total = store.find(normalized, genre_ids=genre_ids)
            return list_model(
                items=items,
                total_pages=ceil(total / normalized.limit) if total else 0,
                current_page=normalized.page,
                total=total,
            )

        return self.cache.get_or_set(cache_key(kind, normalized), load)


def _title_suggestion(title: str) -> SearchSuggestion:
    return SearchSuggestion(type="movie", text=title, value=title)


def _genre_suggestion(name: str) -> SearchSuggestion:
    return SearchSuggestion(type="genre", text=f"{name} movies", value=name)
