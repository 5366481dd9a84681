"""Async HTTP client for the TMDB REST API."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ..errors import (
    CatalogValidationError,
    SyncConfigurationError,
    UpstreamError,
    UpstreamNotFound,
    UpstreamUnavailable,
)
from ..settings import CatalogSettings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.themoviedb.org/3"
DETAIL_APPENDS = "external_ids,watch/providers"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}

MOVIE_CATEGORIES: dict[str, str] = {
    "popular": "/movie/popular",
    "trending": "/trending/movie/week",
    "top_rated": "/movie/top_rated",
    "upcoming": "/movie/upcoming",
    "now_playing": "/movie/now_playing",
}
TV_CATEGORIES: dict[str, str] = {
    "popular": "/tv/popular",
    "trending": "/trending/tv/week",
    "top_rated": "/tv/top_rated",
    "on_the_air": "/tv/on_the_air",
    "airing_today": "/tv/airing_today",
}


class _RetryableStatus(Exception):
    """TMDB answered with a status worth retrying."""


@dataclass(slots=True)
class MediaPage:
    """One page of lightweight item summaries."""

    page: int
    total_pages: int
    total_results: int
    results: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, requested_page: int) -> MediaPage:
        results = payload.get("results") or []
        return cls(
            page=int(payload.get("page") or requested_page),
            total_pages=int(payload.get("total_pages") or 0),
            total_results=int(payload.get("total_results") or len(results)),
            results=list(results),
        )


class TMDBClient:
    """Thin async wrapper around the endpoints the sync engine needs.

    The API key travels as the ``api_key`` query parameter. Network errors,
    429 and 5xx responses are retried with a linear back-off before
    ``UpstreamUnavailable`` is raised; a 404 raises ``UpstreamNotFound``.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        language: str = "en-US",
        timeout: float = 10.0,
        retries: int = 2,
        retry_delay: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._api_key = api_key
        self._language = language
        self._retries = retries
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> TMDBClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""

        await self._client.aclose()

    async def list_movies(self, category: str, page: int = 1) -> MediaPage:
        """Return one page of a movie category listing."""

        path = MOVIE_CATEGORIES.get(category)
        if path is None:
            raise CatalogValidationError(f"Unknown movie category: {category}")
        payload = await self._get(path, {"page": page})
        return MediaPage.from_payload(payload, requested_page=page)

    async def list_tv_shows(self, category: str, page: int = 1) -> MediaPage:
        """Return one page of a TV category listing."""

        path = TV_CATEGORIES.get(category)
        if path is None:
            raise CatalogValidationError(f"Unknown TV category: {category}")
        payload = await self._get(path, {"page": page})
        return MediaPage.from_payload(payload, requested_page=page)

    async def discover(
        self,
        media_type: str,
        *,
        page: int = 1,
        genre_id: int | None = None,
        year: int | None = None,
    ) -> MediaPage:
        """List movies or shows by genre and/or year."""

        if media_type not in {"movie", "tv"}:
            raise CatalogValidationError(f"Unknown media type: {media_type}")
        params: dict[str, Any] = {"page": page, "sort_by": "popularity.desc"}
        if genre_id is not None:
            params["with_genres"] = genre_id
        if year is not None:
            params["primary_release_year" if media_type == "movie" else "first_air_date_year"] = year
        payload = await self._get(f"/discover/{media_type}", params)
        return MediaPage.from_payload(payload, requested_page=page)

    async def movie_detail(self, tmdb_id: int) -> dict[str, Any]:
        """Return full movie detail including external ids and watch providers."""

        return await self._get(f"/movie/{tmdb_id}", {"append_to_response": DETAIL_APPENDS})

    async def tv_detail(self, tmdb_id: int) -> dict[str, Any]:
        """Return full TV show detail including external ids and watch providers."""

        return await self._get(f"/tv/{tmdb_id}", {"append_to_response": DETAIL_APPENDS})

    async def tv_season(self, tmdb_id: int, season_number: int) -> dict[str, Any]:
        """Return a season with its episodes."""

        return await self._get(f"/tv/{tmdb_id}/season/{season_number}")

    async def genres(self, media_type: str) -> list[dict[str, Any]]:
        """Return the genre taxonomy for ``movie`` or ``tv``."""

        if media_type not in {"movie", "tv"}:
            raise CatalogValidationError(f"Unknown media type: {media_type}")
        payload = await self._get(f"/genre/{media_type}/list")
        return list(payload.get("genres") or [])

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        query = {"api_key": self._api_key, "language": self._language, **(params or {})}
        retrying = AsyncRetrying(
            retry=retry_if_exception_type((httpx.TransportError, _RetryableStatus)),
            stop=stop_after_attempt(self._retries + 1),
            wait=wait_incrementing(start=self._retry_delay, increment=self._retry_delay),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._client.get(path, params=query)
                    if response.status_code in RETRYABLE_STATUS:
                        raise _RetryableStatus(f"TMDB answered {response.status_code} for {path}")
        except httpx.TransportError as exc:
            raise UpstreamUnavailable(f"TMDB request to {path} failed: {exc}") from exc
        except _RetryableStatus as exc:
            raise UpstreamUnavailable(str(exc)) from exc

        if response.status_code == 404:
            raise UpstreamNotFound(f"TMDB resource not found: {path}")
        if response.is_error:
            raise UpstreamError(f"TMDB rejected {path} with status {response.status_code}")
        return response.json()


def create_tmdb_client(
    settings: CatalogSettings, *, transport: httpx.AsyncBaseTransport | None = None
) -> TMDBClient:
    """Build a client from settings; sync cannot run without an API key."""

    if not settings.tmdb_api_key:
        raise SyncConfigurationError("CATALOG_TMDB_API_KEY is not configured")
    return TMDBClient(
        settings.tmdb_api_key,
        base_url=settings.tmdb_base_url,
        language=settings.tmdb_language,
        timeout=settings.tmdb_timeout,
        retries=settings.tmdb_retries,
        transport=transport,
    )
