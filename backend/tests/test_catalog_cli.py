"""Tests for the Typer CLI."""
from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from rq.worker import SimpleWorker
from typer.testing import CliRunner

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.catalog_api import create_app  # noqa: E402
from backend.catalog_api.db import create_engine_from_settings  # noqa: E402
from backend.catalog_api.security import create_access_token  # noqa: E402
from backend.catalog_api.services import tasks  # noqa: E402
from backend.catalog_api.settings import CatalogSettings  # noqa: E402
from backend.catalog_api.stores.catalog_store import MovieStore  # noqa: E402
from backend.catalog_cli import client as client_module  # noqa: E402

cli_app_module = importlib.import_module("backend.catalog_cli.app")
cli_app = cli_app_module.app


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_client(tmp_path: Path) -> Iterator[TestClient]:
    """Provide a TestClient and patch the CLI HTTP client factory."""

    settings = CatalogSettings(
        database_url=f"sqlite:///{tmp_path / 'catalog.db'}",
        redis_url="fakeredis://",
        jwt_secret="test-secret",
        tmdb_api_key="test-key",
        sync_batch_delay=0,
    )
    app = create_app(settings=settings)
    app.state.app_state.job_queue.connection.flushall()
    test_client = TestClient(app)

    original_factory = client_module.create_client
    original_app_factory = cli_app_module.create_client

    def _factory(base_url: str, *, timeout: float = 30.0, transport: Any = None):  # type: ignore[override]
        return test_client

    client_module.create_client = _factory  # type: ignore[assignment]
    cli_app_module.create_client = _factory  # type: ignore[assignment]

    yield test_client

    client_module.create_client = original_factory  # type: ignore[assignment]
    cli_app_module.create_client = original_app_factory  # type: ignore[assignment]


@pytest.fixture()
def token(cli_client: TestClient) -> str:
    return create_access_token(cli_client.app.state.app_state.settings, user_id="admin-1", role="admin")


def drain_jobs(client: TestClient) -> None:
    """Process queued jobs for CLI-oriented tests."""

    app_state = client.app.state.app_state
    worker = SimpleWorker([app_state.job_queue.queue], connection=app_state.job_queue.connection)
    worker.work(burst=True)


def test_cli_health_command_outputs_status(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["health"])

    assert result.exit_code == 0
    assert '"status": "ok"' in result.output
    assert '"database": "ok"' in result.output


def test_cli_jobs_list_requires_a_token(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["jobs", "list"])

    assert result.exit_code == 1
    assert "Not authorized: Authentication required" in result.output


def test_cli_jobs_list_outputs_seeded_jobs(runner: CliRunner, cli_client: TestClient, token: str) -> None:
    result = runner.invoke(cli_app, ["jobs", "list", "--token", token])

    assert result.exit_code == 0
    for job_id in ("movies-sync", "tvshows-sync", "genres-sync", "users-sync", "full-sync"):
        assert f'"id": "{job_id}"' in result.output


def test_cli_jobs_list_filters_by_status_and_type(
    runner: CliRunner, cli_client: TestClient, token: str
) -> None:
    result = runner.invoke(
        cli_app, ["jobs", "list", "--status", "IDLE", "--type", "genres", "--token", token]
    )

    assert result.exit_code == 0
    assert '"id": "genres-sync"' in result.output
    assert '"id": "movies-sync"' not in result.output


def test_cli_jobs_list_rejects_unknown_status(runner: CliRunner, cli_client: TestClient, token: str) -> None:
    result = runner.invoke(cli_app, ["jobs", "list", "--status", "sleeping", "--token", token])

    assert result.exit_code == 1
    assert "Invalid status value" in result.output


def test_cli_show_missing_job(runner: CliRunner, cli_client: TestClient, token: str) -> None:
    result = runner.invoke(cli_app, ["jobs", "show", "missing", "--token", token])

    assert result.exit_code == 1
    assert "Job not found" in result.output


def test_cli_pause_idle_job_reports_conflict(runner: CliRunner, cli_client: TestClient, token: str) -> None:
    result = runner.invoke(cli_app, ["jobs", "pause", "movies-sync", "--token", token])

    assert result.exit_code == 1
    assert "Conflict: Job is not running" in result.output


def test_cli_run_and_logs(
    runner: CliRunner, cli_client: TestClient, token: str, tmdb, monkeypatch
) -> None:
    monkeypatch.setattr(tasks, "create_tmdb_client", tmdb.client)

    run_result = runner.invoke(cli_app, ["jobs", "run", "genres-sync", "--token", token])
    assert run_result.exit_code == 0
    assert "Job Genres Sync queued" in run_result.output

    drain_jobs(cli_client)

    show_result = runner.invoke(cli_app, ["jobs", "show", "genres-sync", "--token", token])
    assert show_result.exit_code == 0
    assert '"status": "completed"' in show_result.output

    logs_result = runner.invoke(cli_app, ["jobs", "logs", "genres-sync", "--limit", "20", "--token", token])
    assert logs_result.exit_code == 0
    assert "Job Genres Sync enqueued" in logs_result.output
    assert "Sync completed" in logs_result.output


def test_cli_stop_running_job(runner: CliRunner, cli_client: TestClient, token: str) -> None:
    cli_client.app.state.app_state.job_store.try_start("full-sync", worker_id="elsewhere")

    result = runner.invoke(cli_app, ["jobs", "stop", "full-sync", "--token", token])

    assert result.exit_code == 0
    assert '"errorMessage": "Job stopped by user"' in result.output


def test_cli_sync_runs_in_process(runner: CliRunner, tmp_path: Path, tmdb, monkeypatch) -> None:
    database_url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("CATALOG_DATABASE_URL", database_url)
    monkeypatch.setenv("CATALOG_TMDB_API_KEY", "test-key")
    monkeypatch.setenv("CATALOG_SYNC_BATCH_DELAY", "0")
    monkeypatch.setenv("CATALOG_SYNC_TV_CATEGORIES", "[]")
    monkeypatch.setattr(cli_app_module, "create_tmdb_client", tmdb.client)
    tmdb.movie_pages["popular"] = [[tmdb.add_movie(41, "Arrival"), tmdb.add_movie(42, "Sicario")]]

    result = runner.invoke(cli_app, ["sync", "--movie-category", "popular", "--page-cap", "1"])

    assert result.exit_code == 0
    assert '"created": 2' in result.output
    engine = create_engine_from_settings(CatalogSettings(database_url=database_url))
    try:
        assert MovieStore(engine).count() == 2
    finally:
        engine.dispose()


def test_cli_sync_without_api_key_fails(runner: CliRunner, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("CATALOG_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.delenv("CATALOG_TMDB_API_KEY", raising=False)

    result = runner.invoke(cli_app, ["sync", "--no-genres"])

    assert result.exit_code == 1
    assert "Sync failed: CATALOG_TMDB_API_KEY is not configured" in result.output
