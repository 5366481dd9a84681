"""Shared fixtures: a canned TMDB upstream served through ``httpx.MockTransport``."""
from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.catalog_api.services.tmdb_client import (  # noqa: E402
    MOVIE_CATEGORIES,
    TV_CATEGORIES,
    TMDBClient,
)

DETAIL_PATH = re.compile(r"/(movie|tv)/(\d+)")
SEASON_PATH = re.compile(r"/tv/(\d+)/season/(\d+)")


class FakeTMDB:
    """In-memory TMDB answering the endpoints the sync engine calls.

    Listings are registered per category as a list of pages; details, seasons
    and forced failures are keyed by TMDB id or request path. Unknown paths
    answer 404 like the real API.
    """

    def __init__(self) -> None:
        self.movie_pages: dict[str, list[list[dict[str, Any]]]] = {}
        self.tv_pages: dict[str, list[list[dict[str, Any]]]] = {}
        self.movies: dict[int, dict[str, Any]] = {}
        self.tv_shows: dict[int, dict[str, Any]] = {}
        self.seasons: dict[tuple[int, int], dict[str, Any]] = {}
        self.movie_genres = [{"id": 28, "name": "Action"}, {"id": 18, "name": "Drama"}]
        self.tv_genres = [{"id": 10765, "name": "Sci-Fi & Fantasy"}, {"id": 18, "name": "Drama"}]
        self.failures: dict[str, int] = {}
        self.requests: list[httpx.Request] = []
        self.on_detail: Callable[[str, int], None] | None = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, *_: Any, **__: Any) -> TMDBClient:
        """Stand-in for ``create_tmdb_client`` with retries disabled."""

        return TMDBClient("test-key", retries=0, transport=self.transport)

    def add_movie(self, tmdb_id: int, title: str, *, genre_ids: tuple[int, ...] = (28,), **extra: Any) -> dict[str, Any]:
        names = {genre["id"]: genre["name"] for genre in self.movie_genres}
        self.movies[tmdb_id] = {
            "id": tmdb_id,
            "title": title,
            "imdb_id": f"tt{tmdb_id:07d}",
            "overview": f"{title} overview",
            "release_date": "2024-03-01",
            "runtime": 110,
            "vote_average": 7.2,
            "vote_count": 900,
            "popularity": 50.0,
            "genres": [{"id": genre_id, "name": names.get(genre_id, "Unknown")} for genre_id in genre_ids],
            "watch/providers": {
                "results": {"US": {"flatrate": [{"provider_id": 8, "provider_name": "Netflix"}]}}
            },
            **extra,
        }
        return {"id": tmdb_id, "title": title, "genre_ids": list(genre_ids)}

    def add_tv_show(self, tmdb_id: int, name: str, **extra: Any) -> dict[str, Any]:
        self.tv_shows[tmdb_id] = {
            "id": tmdb_id,
            "name": name,
            "first_air_date": "2020-01-10",
            "number_of_seasons": 1,
            "number_of_episodes": 2,
            "vote_average": 8.1,
            "vote_count": 400,
            "status": "Ended",
            "type": "Miniseries",
            "genres": [{"id": 10765, "name": "Sci-Fi & Fantasy"}],
            "seasons": [{"season_number": 1, "episode_count": 2, "air_date": "2020-01-10", "name": "Season 1"}],
            "networks": [{"id": 49, "name": "HBO", "logo_path": "/hbo.png"}],
            "created_by": [{"id": 7, "name": "Jane Doe"}],
            "external_ids": {"imdb_id": f"tt{tmdb_id:07d}"},
            **extra,
        }
        return {"id": tmdb_id, "name": name}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/3")
        if path in self.failures:
            return httpx.Response(self.failures[path], json={"status_message": "forced failure"})

        page = int(request.url.params.get("page", "1"))
        for categories, pages in ((MOVIE_CATEGORIES, self.movie_pages), (TV_CATEGORIES, self.tv_pages)):
            for category, category_path in categories.items():
                if path == category_path:
                    return self._listing(pages.get(category, []), page)

        if path == "/genre/movie/list":
            return httpx.Response(200, json={"genres": self.movie_genres})
        if path == "/genre/tv/list":
            return httpx.Response(200, json={"genres": self.tv_genres})

        season = SEASON_PATH.fullmatch(path)
        if season:
            payload = self.seasons.get((int(season.group(1)), int(season.group(2))))
            return httpx.Response(200, json=payload) if payload else self._not_found()

        detail = DETAIL_PATH.fullmatch(path)
        if detail:
            media_type, tmdb_id = detail.group(1), int(detail.group(2))
            if self.on_detail is not None:
                self.on_detail(media_type, tmdb_id)
            payload = (self.movies if media_type == "movie" else self.tv_shows).get(tmdb_id)
            return httpx.Response(200, json=payload) if payload else self._not_found()
        return self._not_found()

    @staticmethod
    def _listing(pages: list[list[dict[str, Any]]], page: int) -> httpx.Response:
        results = pages[page - 1] if page <= len(pages) else []
        return httpx.Response(
            200,
            json={
                "page": page,
                "total_pages": len(pages),
                "total_results": sum(len(items) for items in pages),
                "results": results,
            },
        )

    @staticmethod
    def _not_found() -> httpx.Response:
        return httpx.Response(404, json={"status_code": 34, "status_message": "not found"})


@pytest.fixture()
def tmdb() -> FakeTMDB:
    return FakeTMDB()
