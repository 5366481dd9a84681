"""Tests for the async TMDB client."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.catalog_api.errors import (  # noqa: E402
    CatalogValidationError,
    SyncConfigurationError,
    UpstreamError,
    UpstreamNotFound,
    UpstreamUnavailable,
)
from backend.catalog_api.services.tmdb_client import TMDBClient, create_tmdb_client  # noqa: E402
from backend.catalog_api.settings import CatalogSettings  # noqa: E402


def _client(handler, *, retries: int = 2, delays: list[float] | None = None) -> TMDBClient:
    async def record_sleep(seconds: float) -> None:
        if delays is not None:
            delays.append(seconds)

    return TMDBClient(
        "secret",
        retries=retries,
        retry_delay=0.5,
        transport=httpx.MockTransport(handler),
        sleep=record_sleep,
    )


def test_list_movies_sends_api_key_and_parses_page() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"page": 2, "total_pages": 7, "total_results": 140, "results": [{"id": 1}]}
        )

    async def scenario():
        async with _client(handler) as client:
            return await client.list_movies("trending", page=2)

    page = asyncio.run(scenario())

    assert page.page == 2
    assert page.total_pages == 7
    assert page.results == [{"id": 1}]
    assert seen[0].url.path == "/3/trending/movie/week"
    assert seen[0].url.params["api_key"] == "secret"
    assert seen[0].url.params["language"] == "en-US"
    assert seen[0].url.params["page"] == "2"


def test_detail_requests_append_external_ids_and_providers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": 603, "title": "The Matrix"})

    async def scenario():
        async with _client(handler) as client:
            return await client.movie_detail(603)

    detail = asyncio.run(scenario())

    assert detail["title"] == "The Matrix"
    assert seen[0].url.params["append_to_response"] == "external_ids,watch/providers"


def test_retryable_statuses_are_retried_with_linear_backoff() -> None:
    statuses = iter([503, 429, 200])
    delays: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        if status == 200:
            return httpx.Response(200, json={"genres": [{"id": 28, "name": "Action"}]})
        return httpx.Response(status)

    async def scenario():
        async with _client(handler, delays=delays) as client:
            return await client.genres("movie")

    genres = asyncio.run(scenario())

    assert genres == [{"id": 28, "name": "Action"}]
    assert delays == [0.5, 1.0]


def test_exhausted_retries_raise_upstream_unavailable() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        async with _client(handler, retries=1) as client:
            await client.tv_detail(1399)

    with pytest.raises(UpstreamUnavailable):
        asyncio.run(scenario())
    assert len(calls) == 2


def test_not_found_and_client_errors_are_not_retried() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status = 404 if request.url.path.endswith("/404") else 401
        return httpx.Response(status, json={"status_message": "nope"})

    async def scenario(path_id: int):
        async with _client(handler) as client:
            await client.movie_detail(path_id)

    with pytest.raises(UpstreamNotFound):
        asyncio.run(scenario(404))
    with pytest.raises(UpstreamError):
        asyncio.run(scenario(401))
    assert len(calls) == 2


def test_unknown_categories_and_media_types_are_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        return httpx.Response(200, json={})

    async def scenario():
        async with _client(handler) as client:
            with pytest.raises(CatalogValidationError):
                await client.list_movies("bogus")
            with pytest.raises(CatalogValidationError):
                await client.list_tv_shows("upcoming")
            with pytest.raises(CatalogValidationError):
                await client.genres("anime")

    asyncio.run(scenario())


def test_discover_maps_year_parameter_per_media_type() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"page": 1, "total_pages": 1, "results": []})

    async def scenario():
        async with _client(handler) as client:
            await client.discover("movie", genre_id=28, year=1999)
            await client.discover("tv", year=2011)

    asyncio.run(scenario())

    assert seen[0].url.params["with_genres"] == "28"
    assert seen[0].url.params["primary_release_year"] == "1999"
    assert seen[1].url.params["first_air_date_year"] == "2011"


def test_create_tmdb_client_requires_api_key() -> None:
    with pytest.raises(SyncConfigurationError):
        create_tmdb_client(CatalogSettings(tmdb_api_key=None))
