"""Tests for the admin catalog management endpoints and the activity trail."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.catalog_api import create_app, state as state_module  # noqa: E402
from backend.catalog_api.security import create_access_token  # noqa: E402
from backend.catalog_api.settings import CatalogSettings  # noqa: E402


@pytest.fixture()
def client(tmp_path: Path) -> TestClient:
    """Provide a test client backed by an isolated SQLite database."""

    settings = CatalogSettings(
        database_url=f"sqlite:///{tmp_path / 'catalog.db'}",
        redis_url="fakeredis://",
        jwt_secret="test-secret",
        tmdb_api_key="test-key",
    )
    app = create_app(settings=settings)
    return TestClient(app)


def _token(client: TestClient, user_id: str, role: str) -> dict[str, str]:
    settings = client.app.state.app_state.settings
    token = create_access_token(settings, user_id=user_id, role=role, username=user_id.title())
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin(client: TestClient) -> dict[str, str]:
    return _token(client, "admin-1", "admin")


def _create_movie(client: TestClient, admin: dict[str, str], **fields) -> dict:
    response = client.post("/admin/movies", json={"title": "Heat", **fields}, headers=admin)
    assert response.status_code == 201
    return response.json()["data"]


def test_admin_routes_require_an_admin_token(client: TestClient) -> None:
    anonymous = client.get("/admin/movies")
    assert anonymous.status_code == 401
    assert anonymous.json() == {"success": False, "message": "Authentication required"}

    user = client.get("/admin/movies", headers=_token(client, "user-1", "user"))
    assert user.status_code == 403
    assert user.json()["message"] == "Admin privileges required"


def test_create_movie_returns_envelope_with_camel_case_data(
    client: TestClient, admin: dict[str, str]
) -> None:
    response = client.post(
        "/admin/movies",
        json={"title": "Heat", "tmdbId": 949, "imdbId": "tt0113277", "voteAverage": 8.3},
        headers=admin,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Movie created successfully"
    assert body["data"]["tmdbId"] == 949
    assert body["data"]["isAvailable"] is True

    duplicate = client.post("/admin/movies", json={"title": "Heat", "tmdbId": 949}, headers=admin)
    assert duplicate.status_code == 409
    assert duplicate.json() == {"success": False, "message": "Movie with TMDB id 949 already exists"}
    assert len(client.get("/admin/movies", headers=admin).json()["data"]["items"]) == 1


def test_admin_listing_includes_unavailable_items(client: TestClient, admin: dict[str, str]) -> None:
    movie = _create_movie(client, admin)

    toggled = client.put(
        f"/admin/movies/{movie['id']}/availability", json={"isAvailable": False}, headers=admin
    )

    assert toggled.json()["message"] == "Movie marked unavailable"
    assert client.get(f"/movies/{movie['id']}").status_code == 404
    listing = client.get("/admin/movies", headers=admin).json()["data"]
    assert [item["title"] for item in listing["items"]] == ["Heat"]
    assert listing["items"][0]["isAvailable"] is False


def test_update_movie_applies_partial_changes(client: TestClient, admin: dict[str, str]) -> None:
    movie = _create_movie(client, admin, overview="Old")

    response = client.put(f"/admin/movies/{movie['id']}", json={"runtime": 170}, headers=admin)

    data = response.json()["data"]
    assert data["runtime"] == 170
    assert data["overview"] == "Old"
    assert client.put("/admin/movies/missing", json={"runtime": 1}, headers=admin).status_code == 404


def test_deleting_a_movie_cascades_to_watchlists(client: TestClient, admin: dict[str, str]) -> None:
    movie = _create_movie(client, admin)
    user = _token(client, "user-1", "user")
    assert client.post("/watchlist", json={"movieId": movie["id"]}, headers=user).status_code == 201
    client.post("/history", json={"movieId": movie["id"], "duration": 100, "lastPosition": 10}, headers=user)

    response = client.delete(f"/admin/movies/{movie['id']}", headers=admin)

    assert response.status_code == 200
    assert client.get("/watchlist", headers=user).json() == []
    assert client.get("/history", headers=user).json() == []


def test_genre_in_use_cannot_be_deleted(client: TestClient, admin: dict[str, str]) -> None:
    genre = client.post("/admin/genres", json={"name": "Crime", "tmdbId": 80}, headers=admin).json()["data"]
    movie = _create_movie(client, admin, genreIds=[genre["id"]])

    blocked = client.delete(f"/admin/genres/{genre['id']}", headers=admin)

    assert blocked.status_code == 409
    assert blocked.json() == {
        "success": False,
        "message": "Cannot delete genre. It is used by 0 TV show(s) and 1 movie(s).",
    }

    client.put(f"/admin/movies/{movie['id']}", json={"genreIds": []}, headers=admin)
    assert client.delete(f"/admin/genres/{genre['id']}", headers=admin).status_code == 200


def test_unknown_genre_ids_are_rejected(client: TestClient, admin: dict[str, str]) -> None:
    response = client.post("/admin/movies", json={"title": "Heat", "genreIds": ["nope"]}, headers=admin)

    assert response.status_code == 422
    assert response.json()["message"] == "Unknown genre ids: nope"


def test_mutations_are_recorded_in_the_activity_trail(client: TestClient, admin: dict[str, str]) -> None:
    movie = _create_movie(client, admin)
    assert client.delete("/admin/movies/missing", headers=admin).status_code == 404

    items = client.get("/admin/activity", headers=admin).json()["data"]["items"]

    failed, created = items[0], items[1]
    assert failed["action"] == "movie_delete"
    assert failed["success"] is False
    assert failed["errorMessage"] == "Movie not found"
    assert failed["resourceId"] == "missing"
    assert created["action"] == "movie_create"
    assert created["success"] is True
    assert created["adminId"] == "admin-1"
    assert created["adminName"] == "Admin-1"
    assert created["resourceId"] == movie["id"]
    assert created["description"] == "Created movie: Heat"

    only_failures = client.get("/admin/activity", params={"success": "false"}, headers=admin).json()
    assert [item["action"] for item in only_failures["data"]["items"]] == ["movie_delete"]


def test_season_sync_stores_episodes(client: TestClient, admin: dict[str, str], tmdb, monkeypatch) -> None:
    monkeypatch.setattr(state_module, "create_tmdb_client", tmdb.client)
    tmdb.seasons[(1399, 1)] = {
        "season_number": 1,
        "episodes": [
            {"id": 63056, "episode_number": 1, "name": "Winter Is Coming"},
            {"id": 63057, "episode_number": 2, "name": "The Kingsroad"},
        ],
    }
    show = client.post(
        "/admin/tvshows",
        json={"name": "Game of Thrones", "tmdbId": 1399, "imdbId": "tt0944947"},
        headers=admin,
    ).json()["data"]

    response = client.post(f"/admin/tvshows/{show['id']}/seasons/1/sync", headers=admin)

    assert response.status_code == 200
    summary = response.json()["data"]
    assert summary["created"] == 2
    assert summary["embedUrls"] == 2
    episodes = client.get(f"/tvshows/{show['id']}/seasons/1/episodes").json()
    assert [episode["name"] for episode in episodes] == ["Winter Is Coming", "The Kingsroad"]
    assert episodes[0]["embedUrl"].startswith("https://vidsrc-embed.ru/embed/tv?imdb=tt0944947")

    missing = client.post(f"/admin/tvshows/{show['id']}/seasons/9/sync", headers=admin)
    assert missing.status_code == 404


def test_deleting_a_show_removes_its_episodes(
    client: TestClient, admin: dict[str, str], tmdb, monkeypatch
) -> None:
    monkeypatch.setattr(state_module, "create_tmdb_client", tmdb.client)
    tmdb.seasons[(1399, 1)] = {"season_number": 1, "episodes": [{"id": 1, "episode_number": 1}]}
    show = client.post("/admin/tvshows", json={"name": "Game of Thrones", "tmdbId": 1399}, headers=admin).json()[
        "data"
    ]
    client.post(f"/admin/tvshows/{show['id']}/seasons/1/sync", headers=admin)
    assert client.app.state.app_state.episode_store.count() == 1

    assert client.delete(f"/admin/tvshows/{show['id']}", headers=admin).status_code == 200
    assert client.app.state.app_state.episode_store.count() == 0


def test_dashboard_stats_summarize_the_catalog(client: TestClient, admin: dict[str, str]) -> None:
    first = _create_movie(client, admin)
    _create_movie(client, admin, title="Ronin", tmdbId=8195)
    client.put(f"/admin/movies/{first['id']}/availability", json={"isAvailable": False}, headers=admin)
    client.post("/admin/tvshows", json={"name": "Dark"}, headers=admin)

    stats = client.get("/admin/dashboard/stats", headers=admin).json()["data"]

    assert stats["totalMovies"] == 2
    assert stats["availableMovies"] == 1
    assert stats["totalTvShows"] == 1
    assert stats["watchlistEntries"] == 0
    assert len(stats["recentMovies"]) == 2
    assert stats["recentActivity"][0]["action"] == "tvshow_create"
