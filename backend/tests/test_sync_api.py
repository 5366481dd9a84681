"""Tests for the sync job orchestration endpoints and the RQ worker path."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from rq.worker import SimpleWorker

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.catalog_api import create_app, state as state_module  # noqa: E402
from backend.catalog_api.security import create_access_token  # noqa: E402
from backend.catalog_api.services import tasks  # noqa: E402
from backend.catalog_api.settings import CatalogSettings  # noqa: E402


@pytest.fixture()
def client(tmp_path: Path, tmdb, monkeypatch) -> Iterator[TestClient]:
    """Provide a test client whose sync paths talk to the canned TMDB."""

    monkeypatch.setattr(tasks, "create_tmdb_client", tmdb.client)
    monkeypatch.setattr(state_module, "create_tmdb_client", tmdb.client)
    settings = CatalogSettings(
        database_url=f"sqlite:///{tmp_path / 'catalog.db'}",
        redis_url="fakeredis://",
        jwt_secret="test-secret",
        tmdb_api_key="test-key",
        tmdb_retries=0,
        sync_batch_delay=0,
        sync_movie_categories=["popular"],
        sync_tv_categories=["popular"],
    )
    app = create_app(settings=settings)
    app.state.app_state.job_queue.connection.flushall()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin(client: TestClient) -> dict[str, str]:
    token = create_access_token(client.app.state.app_state.settings, user_id="admin-1", role="admin")
    return {"Authorization": f"Bearer {token}"}


def drain_jobs(client: TestClient) -> None:
    """Execute every queued job synchronously."""

    app_state = client.app.state.app_state
    worker = SimpleWorker([app_state.job_queue.queue], connection=app_state.job_queue.connection)
    worker.work(burst=True)


def _job(client: TestClient, admin: dict[str, str], job_id: str) -> dict:
    response = client.get(f"/admin/sync/jobs/{job_id}", headers=admin)
    assert response.status_code == 200
    return response.json()["data"]


def test_default_jobs_are_seeded(client: TestClient, admin: dict[str, str]) -> None:
    response = client.get("/admin/sync/jobs", headers=admin)

    assert response.status_code == 200
    jobs = {job["id"]: job for job in response.json()["data"]}
    assert set(jobs) == {"movies-sync", "tvshows-sync", "genres-sync", "users-sync", "full-sync"}
    assert jobs["full-sync"]["type"] == "all"
    assert jobs["movies-sync"]["config"]["pageLimit"] == 100
    assert all(job["status"] == "idle" for job in jobs.values())

    filtered = client.get("/admin/sync/jobs", params={"type": "genres"}, headers=admin).json()["data"]
    assert [job["id"] for job in filtered] == ["genres-sync"]
    assert client.get("/admin/sync/jobs/nope", headers=admin).status_code == 404


def test_pause_and_resume_require_matching_state(client: TestClient, admin: dict[str, str]) -> None:
    paused = client.post("/admin/sync/jobs/movies-sync/pause", headers=admin)
    assert paused.status_code == 409
    assert paused.json() == {"success": False, "message": "Job is not running"}

    resumed = client.post("/admin/sync/jobs/movies-sync/resume", headers=admin)
    assert resumed.status_code == 409
    assert resumed.json()["message"] == "Job is not paused"


def test_run_job_is_executed_by_worker(client: TestClient, admin: dict[str, str], tmdb) -> None:
    response = client.post("/admin/sync/jobs/genres-sync/run", headers=admin)

    assert response.status_code == 202
    assert response.json()["message"] == "Job Genres Sync queued"
    drain_jobs(client)

    job = _job(client, admin, "genres-sync")
    assert job["status"] == "completed"
    assert job["progress"] == 100
    assert job["successCount"] == 1
    assert job["leaseExpiresAt"] is None
    genres = client.get("/genres").json()
    assert [genre["name"] for genre in genres] == ["Action", "Drama", "Sci-Fi & Fantasy"]

    logs = client.get("/admin/sync/jobs/genres-sync/logs", headers=admin).json()["data"]
    messages = [entry["message"] for entry in logs]
    assert messages[0] == "Job Genres Sync enqueued"
    assert "Sync started (genres)" in messages
    assert messages[-1] == "Sync completed"


def test_movies_job_stores_catalog_items(client: TestClient, admin: dict[str, str], tmdb) -> None:
    tmdb.movie_pages["popular"] = [[tmdb.add_movie(tmdb_id, f"Movie {tmdb_id}") for tmdb_id in (11, 12, 13)]]

    client.post("/admin/sync/jobs/movies-sync/run", headers=admin)
    drain_jobs(client)

    job = _job(client, admin, "movies-sync")
    assert job["status"] == "completed"
    assert job["itemsProcessed"] == 3
    titles = sorted(item["title"] for item in client.get("/movies").json()["items"])
    assert titles == ["Movie 11", "Movie 12", "Movie 13"]
    assert all(tmdb_request.url.path != "/3/tv/popular" for tmdb_request in tmdb.requests)


def test_running_job_cannot_be_started_twice(client: TestClient, admin: dict[str, str], tmdb) -> None:
    tmdb.movie_pages["popular"] = [[tmdb.add_movie(21, "Ronin")]]
    job_store = client.app.state.app_state.job_store
    job_store.try_start("movies-sync", worker_id="elsewhere")

    conflict = client.post("/admin/sync/jobs/movies-sync/run", headers=admin)
    assert conflict.status_code == 409
    assert conflict.json()["message"] == "Job Movies Sync is already running"

    paused = client.post("/admin/sync/jobs/movies-sync/pause", headers=admin)
    assert paused.status_code == 200
    assert paused.json()["data"]["status"] == "paused"

    resumed = client.post("/admin/sync/jobs/movies-sync/resume", headers=admin)
    assert resumed.status_code == 202
    drain_jobs(client)

    job = _job(client, admin, "movies-sync")
    assert job["status"] == "completed"


def test_stop_records_the_reason(client: TestClient, admin: dict[str, str]) -> None:
    client.app.state.app_state.job_store.try_start("tvshows-sync", worker_id="elsewhere")

    response = client.post("/admin/sync/jobs/tvshows-sync/stop", headers=admin)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "paused"
    assert data["errorMessage"] == "Job stopped by user"


def test_run_all_skips_disabled_jobs(client: TestClient, admin: dict[str, str]) -> None:
    updated = client.put("/admin/sync/jobs/users-sync", json={"isEnabled": False}, headers=admin)
    assert updated.json()["data"]["isEnabled"] is False

    disabled = client.post("/admin/sync/jobs/users-sync/run", headers=admin)
    assert disabled.status_code == 409
    assert disabled.json()["message"] == "Job Users Sync is disabled"

    response = client.post("/admin/sync/run-all", headers=admin)

    assert response.status_code == 202
    assert response.json()["message"] == "4 jobs queued"
    assert client.app.state.app_state.job_queue.depth() == 4


def test_job_config_updates_are_merged(client: TestClient, admin: dict[str, str]) -> None:
    response = client.put(
        "/admin/sync/jobs/movies-sync", json={"config": {"pageLimit": 3}}, headers=admin
    )

    config = response.json()["data"]["config"]
    assert config["pageLimit"] == 3
    assert config["sortBy"] == "popularity.desc"


def test_run_now_returns_summary_and_updates_status(
    client: TestClient, admin: dict[str, str], tmdb
) -> None:
    tmdb.movie_pages["popular"] = [[tmdb.add_movie(31, "Alien"), tmdb.add_movie(32, "Aliens")]]

    response = client.post(
        "/admin/sync/run-now",
        json={"movieCategories": ["popular"], "tvCategories": [], "pageCap": 1},
        headers=admin,
    )

    assert response.status_code == 200
    summary = response.json()["data"]
    assert summary["status"] == "completed"
    assert summary["created"] == 2
    assert summary["embedUrls"] == 2

    status = client.get("/admin/sync/status", headers=admin).json()["data"]
    assert status["isRunning"] is False
    assert status["lastSummary"]["created"] == 2
    assert status["schedule"]["running"] is False

    rejected = client.post("/admin/sync/run-now", json={"movieCategories": ["bogus"]}, headers=admin)
    assert rejected.status_code == 422


def test_stats_count_jobs_and_catalog(client: TestClient, admin: dict[str, str]) -> None:
    stats = client.get("/admin/sync/stats", headers=admin).json()["data"]

    assert stats["totalJobs"] == 5
    assert stats["statusCounts"] == {"idle": 5}
    assert stats["totalMovies"] == 0


def test_schedule_lifecycle(client: TestClient, admin: dict[str, str]) -> None:
    schedules = client.get("/admin/sync/schedules", headers=admin).json()["data"]
    assert {preset["name"] for preset in schedules["presets"]} == {
        "daily",
        "hourly",
        "twice_daily",
        "weekly",
    }
    assert schedules["current"]["running"] is False

    started = client.post("/admin/sync/schedule", json={"schedule": "hourly"}, headers=admin)
    assert started.status_code == 200
    status = started.json()["data"]
    assert status["running"] is True
    assert status["cron"] == "0 * * * *"
    assert status["nextRunTime"] is not None

    invalid = client.post("/admin/sync/schedule", json={"schedule": "every tuesday"}, headers=admin)
    assert invalid.status_code == 422
    assert "Invalid cron expression" in invalid.json()["message"]

    stopped = client.delete("/admin/sync/schedule", headers=admin)
    assert stopped.json()["data"] == {"running": False, "cron": None, "nextRunTime": None}


def test_sync_actions_are_audited(client: TestClient, admin: dict[str, str]) -> None:
    client.post("/admin/sync/jobs/genres-sync/run", headers=admin)
    client.post("/admin/sync/jobs/genres-sync/pause", headers=admin)

    items = client.get("/admin/activity", headers=admin).json()["data"]["items"]

    assert [(item["action"], item["success"]) for item in items] == [
        ("sync_stop", False),
        ("sync_start", True),
    ]
    assert items[1]["description"] == "Started sync job: Genres Sync"
