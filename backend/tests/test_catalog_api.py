"""Tests for the public catalog, streaming and watchlist endpoints."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.catalog_api import create_app  # noqa: E402
from backend.catalog_api.schemas import (  # noqa: E402
    EpisodeCreate,
    GenreCreate,
    MovieCreate,
    TvShowCreate,
    WatchProviderModel,
)
from backend.catalog_api.security import create_access_token  # noqa: E402
from backend.catalog_api.services.query_cache import TTLCache  # noqa: E402
from backend.catalog_api.settings import CatalogSettings  # noqa: E402


@pytest.fixture()
def client(tmp_path: Path) -> TestClient:
    """Provide a test client backed by an isolated SQLite database."""

    settings = CatalogSettings(
        database_url=f"sqlite:///{tmp_path / 'catalog.db'}",
        redis_url="fakeredis://",
        jwt_secret="test-secret",
    )
    app = create_app(settings=settings)
    return TestClient(app)


def _state(client: TestClient):
    return client.app.state.app_state


def _user_headers(client: TestClient, user_id: str = "user-1") -> dict[str, str]:
    token = create_access_token(_state(client).settings, user_id=user_id)
    return {"Authorization": f"Bearer {token}"}


def _seed_genres(client: TestClient) -> dict[str, str]:
    genres = _state(client).genre_store
    action = genres.create(GenreCreate(name="Action", tmdb_id=28))
    drama = genres.create(GenreCreate(name="Drama", tmdb_id=18))
    return {"action": action.id, "drama": drama.id}


def test_health_endpoint_reports_database_and_queue(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "version": "0.1.0",
        "database": "ok",
        "queue": {"status": "ok", "detail": None},
    }


def test_movies_filter_by_genre_name_and_sort_by_rating(client: TestClient) -> None:
    genre_ids = _seed_genres(client)
    movies = _state(client).movie_store
    for index in range(12):
        movies.create(
            MovieCreate(
                title=f"Action {index}",
                tmdb_id=1000 + index,
                vote_average=5.0 + index * 0.25,
                genre_ids=[genre_ids["action"]],
            )
        )
    for index in range(3):
        movies.create(
            MovieCreate(title=f"Drama {index}", vote_average=9.5, genre_ids=[genre_ids["drama"]])
        )

    response = client.get(
        "/movies", params={"genre": "Action", "sortBy": "voteAverage", "order": "desc", "limit": 10}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 12
    assert body["totalPages"] == 2
    assert body["currentPage"] == 1
    ratings = [item["voteAverage"] for item in body["items"]]
    assert len(ratings) == 10
    assert ratings == sorted(ratings, reverse=True)
    assert ratings[0] == pytest.approx(7.75)
    assert all(item["genres"][0]["name"] == "Action" for item in body["items"])


def test_unknown_genre_returns_an_empty_page(client: TestClient) -> None:
    _seed_genres(client)
    _state(client).movie_store.create(MovieCreate(title="Anything"))

    body = client.get("/movies", params={"genre": "Western"}).json()

    assert body == {"items": [], "totalPages": 0, "currentPage": 1, "total": 0}


def test_unsupported_sort_field_is_rejected(client: TestClient) -> None:
    response = client.get("/movies", params={"sortBy": "budget"})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert "Unsupported sortBy value: budget" in body["message"]


def test_list_responses_are_cached_until_ttl_expires(client: TestClient) -> None:
    now = [0.0]
    _state(client).catalog.cache = TTLCache(ttl_seconds=60, clock=lambda: now[0])
    movies = _state(client).movie_store
    movies.create(MovieCreate(title="First"))

    assert client.get("/movies").json()["total"] == 1
    movies.create(MovieCreate(title="Second"))
    assert client.get("/movies").json()["total"] == 1

    now[0] = 61.0
    assert client.get("/movies").json()["total"] == 2


def test_search_matches_wildcard_characters_literally(client: TestClient) -> None:
    movies = _state(client).movie_store
    movies.create(MovieCreate(title="The A.B* Files"))
    movies.create(MovieCreate(title="Alpha Bravo"))
    movies.create(MovieCreate(title="50% Off"))
    movies.create(MovieCreate(title="500 Days"))
    _state(client).tv_store.create(TvShowCreate(name="a.b* after dark"))

    body = client.get("/search", params={"q": "a.b*"}).json()

    assert [movie["title"] for movie in body["movies"]] == ["The A.B* Files"]
    assert [show["name"] for show in body["tvShows"]] == ["a.b* after dark"]
    assert body["total"] == 2

    percent = client.get("/search", params={"q": "50%"}).json()
    assert [movie["title"] for movie in percent["movies"]] == ["50% Off"]


def test_search_suggestions_offer_titles_then_genres(client: TestClient) -> None:
    _seed_genres(client)
    movies = _state(client).movie_store
    for index in range(7):
        movies.create(MovieCreate(title=f"Dramatic Turn {index}", popularity=float(index)))
    movies.create(MovieCreate(title="Drama Queen", popularity=99.0, is_available=False))

    assert client.get("/search/suggestions", params={"q": "d"}).json() == {"suggestions": []}
    assert client.get("/search/suggestions").json() == {"suggestions": []}

    suggestions = client.get("/search/suggestions", params={"q": "DRAMA"}).json()["suggestions"]

    assert [entry["type"] for entry in suggestions] == ["movie"] * 5 + ["genre"]
    assert suggestions[0] == {"type": "movie", "text": "Dramatic Turn 6", "value": "Dramatic Turn 6"}
    assert suggestions[-1] == {"type": "genre", "text": "Drama movies", "value": "Drama"}
    assert client.get("/search/suggestions", params={"q": "%%"}).json() == {"suggestions": []}


def test_trending_searches_list_genres_and_newest_titles(client: TestClient) -> None:
    _seed_genres(client)
    movies = _state(client).movie_store
    for title in ("Heat", "Ronin", "Collateral"):
        movies.create(MovieCreate(title=title))
    movies.create(MovieCreate(title="Hidden", is_available=False))

    trending = client.get("/search/trending").json()["trending"]

    assert trending[:2] == [
        {"type": "genre", "text": "Action movies", "value": "Action"},
        {"type": "genre", "text": "Drama movies", "value": "Drama"},
    ]
    assert {entry["value"] for entry in trending[2:]} == {"Heat", "Ronin", "Collateral"}
    assert all(entry["type"] == "movie" for entry in trending[2:])


def test_unavailable_items_are_hidden_from_public_reads(client: TestClient) -> None:
    movies = _state(client).movie_store
    hidden = movies.create(MovieCreate(title="Hidden", is_available=False))
    visible = movies.create(MovieCreate(title="Visible"))

    assert client.get(f"/movies/{hidden.id}").status_code == 404
    assert client.get(f"/movies/{visible.id}").json()["title"] == "Visible"
    assert [item["title"] for item in client.get("/movies").json()["items"]] == ["Visible"]


def test_provider_filter_and_top_rated_threshold(client: TestClient) -> None:
    movies = _state(client).movie_store
    netflix = WatchProviderModel(provider_id=8, provider_name="Netflix")
    movies.create(
        MovieCreate(title="Streaming Hit", vote_average=8.2, vote_count=5000, watch_providers=[netflix])
    )
    movies.create(MovieCreate(title="Niche Gem", vote_average=9.1, vote_count=12))

    by_name = client.get("/movies", params={"provider": "netflix"}).json()
    assert [item["title"] for item in by_name["items"]] == ["Streaming Hit"]
    by_id = client.get("/movies", params={"provider": "8"}).json()
    assert by_id["total"] == 1

    top_rated = client.get("/movies/top-rated").json()
    assert [item["title"] for item in top_rated["items"]] == ["Streaming Hit"]


def test_tv_show_seasons_include_stored_episode_counts(client: TestClient) -> None:
    state = _state(client)
    show = state.tv_store.create(
        TvShowCreate(
            name="Dark",
            tmdb_id=70523,
            seasons=[{"season_number": 1, "episode_count": 10}, {"season_number": 2, "episode_count": 8}],
        )
    )
    state.episode_store.upsert(show.id, EpisodeCreate(season_number=1, episode_number=1, name="Secrets"))

    seasons = client.get(f"/tvshows/{show.id}/seasons").json()

    assert [(season["seasonNumber"], season["storedEpisodes"]) for season in seasons] == [(1, 1), (2, 0)]
    episodes = client.get(f"/tvshows/{show.id}/seasons/1/episodes").json()
    assert [episode["name"] for episode in episodes] == ["Secrets"]


def test_genres_listing_reports_usage_counts(client: TestClient) -> None:
    genre_ids = _seed_genres(client)
    _state(client).movie_store.create(MovieCreate(title="Heat", genre_ids=[genre_ids["action"]]))

    genres = client.get("/genres").json()

    counts = {genre["name"]: genre["movieCount"] for genre in genres}
    assert counts == {"Action": 1, "Drama": 0}
    assert client.get("/genres/missing").status_code == 404


def test_movie_streaming_returns_stored_url_and_alternatives(client: TestClient) -> None:
    movie = _state(client).movie_store.create(
        MovieCreate(title="The Matrix", imdb_id="tt0133093", tmdb_id=603)
    )

    body = client.get(f"/streaming/movies/{movie.id}").json()

    assert body["embedUrl"] == (
        "https://vidsrc-embed.ru/embed/movie?imdb=tt0133093&tmdb=603&ds_lang=en&autoplay=1"
    )
    assert len(body["options"]) == 7
    assert body["options"][0]["provider"] == "vidsrc"


def test_episode_streaming_generates_url_for_unsynced_episode(client: TestClient) -> None:
    show = _state(client).tv_store.create(TvShowCreate(name="Dark", tmdb_id=70523))

    body = client.get(f"/streaming/tvshows/{show.id}/season/1/episode/2").json()

    assert body["mediaType"] == "episode"
    assert body["title"] == "Dark S01E02"
    assert body["embedUrl"] == (
        "https://vidsrc-embed.ru/embed/tv?tmdb=70523&season=1&episode=2&ds_lang=en&autoplay=1"
    )


def test_generate_embed_url_endpoint(client: TestClient) -> None:
    response = client.post(
        "/streaming/generate",
        json={"provider": "vidsrc_to", "mediaType": "tv", "tmdbId": 1399, "season": 1},
    )
    assert response.status_code == 200
    assert response.json() == {"url": "https://vidsrc.to/embed/tv/1399/1"}

    missing = client.post("/streaming/generate", json={"provider": "vidsrc", "mediaType": "movie"})
    assert missing.status_code == 422
    assert missing.json()["message"] == "Either imdbId or tmdbId is required"


def test_watchlist_requires_authentication(client: TestClient) -> None:
    response = client.get("/watchlist")

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Authentication required"}

    bad = client.get("/watchlist", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


def test_watchlist_round_trip_is_scoped_to_the_user(client: TestClient) -> None:
    movie = _state(client).movie_store.create(MovieCreate(title="Heat"))
    headers = _user_headers(client)

    created = client.post("/watchlist", json={"movieId": movie.id}, headers=headers)
    assert created.status_code == 201
    entry = created.json()
    assert entry["itemType"] == "movie"
    assert entry["title"] == "Heat"
    assert entry["status"] == "plan_to_watch"

    duplicate = client.post("/watchlist", json={"movieId": movie.id}, headers=headers)
    assert duplicate.status_code == 409

    updated = client.put(f"/watchlist/{entry['id']}", json={"status": "completed"}, headers=headers)
    assert updated.json()["watchedAt"] is not None

    other = _user_headers(client, "user-2")
    assert client.get("/watchlist", headers=other).json() == []
    assert client.delete(f"/watchlist/{entry['id']}", headers=other).status_code == 404

    assert client.delete(f"/watchlist/{entry['id']}", headers=headers).status_code == 200
    assert client.get("/watchlist", headers=headers).json() == []


def test_watchlist_requires_exactly_one_target(client: TestClient) -> None:
    response = client.post("/watchlist", json={}, headers=_user_headers(client))

    assert response.status_code == 422
    assert response.json()["message"] == "Provide exactly one of movieId or tvShowId"


def test_history_progress_drives_continue_watching(client: TestClient) -> None:
    movie = _state(client).movie_store.create(MovieCreate(title="Heat"))
    headers = _user_headers(client)

    started = client.post(
        "/history", json={"movieId": movie.id, "duration": 100, "lastPosition": 50}, headers=headers
    ).json()
    assert started["completed"] is False
    assert started["progressPercent"] == 50.0
    assert len(client.get("/history/continue", headers=headers).json()) == 1

    finished = client.post(
        "/history", json={"movieId": movie.id, "duration": 100, "lastPosition": 95}, headers=headers
    ).json()
    assert finished["completed"] is True
    assert finished["id"] == started["id"]
    assert client.get("/history/continue", headers=headers).json() == []
    assert len(client.get("/history", headers=headers).json()) == 1
