"""Command line interface for the Reelvault Catalog API."""
from __future__ import annotations

import asyncio
import json
from typing import List, Optional

import httpx
import typer

from backend.catalog_api.db import create_engine_from_settings, init_database
from backend.catalog_api.errors import CatalogError
from backend.catalog_api.services.sync_engine import SyncEngine
from backend.catalog_api.services.tmdb_client import create_tmdb_client
from backend.catalog_api.settings import CatalogSettings
from backend.catalog_api.utils.logging_config import configure_logging

from .client import auth_headers, create_client


DEFAULT_API_BASE = "http://localhost:8000"

app = typer.Typer(help="Interact with the Reelvault catalog service.")
jobs_app = typer.Typer(help="Inspect and control named sync jobs.")
app.add_typer(jobs_app, name="jobs")


JOB_STATUS_CHOICES = {"idle", "running", "completed", "failed", "paused"}


def _api_base_option() -> typer.Option:
    return typer.Option(
        DEFAULT_API_BASE,
        "--api-base",
        help="Base URL for the Catalog API service.",
        show_default=True,
        envvar="CATALOG_API_BASE",
    )


def _token_option() -> typer.Option:
    return typer.Option(
        None,
        "--token",
        help="Admin bearer token for the sync job endpoints.",
        envvar="CATALOG_API_TOKEN",
    )


def _echo(response: httpx.Response) -> None:
    if response.status_code == 404:
        typer.echo("Job not found", err=True)
        raise typer.Exit(code=1)
    if response.status_code in {401, 403}:
        typer.echo(f"Not authorized: {_message(response)}", err=True)
        raise typer.Exit(code=1)
    if response.status_code == 409:
        typer.echo(f"Conflict: {_message(response)}", err=True)
        raise typer.Exit(code=1)
    response.raise_for_status()
    typer.echo(json.dumps(response.json(), indent=2, ensure_ascii=False))


def _message(response: httpx.Response) -> str:
    try:
        return str(response.json().get("message", response.text))
    except ValueError:
        return response.text


@app.command()
def health(api_base: str = _api_base_option()) -> None:
    """Call the /health endpoint and pretty-print the response."""

    with create_client(api_base) as client:
        response = client.get("/health")
        response.raise_for_status()
        typer.echo(json.dumps(response.json(), indent=2, ensure_ascii=False))


@app.command()
def sync(
    movie_categories: Optional[List[str]] = typer.Option(
        None, "--movie-category", help="TMDB movie category to pull (repeat the flag)."
    ),
    tv_categories: Optional[List[str]] = typer.Option(
        None, "--tv-category", help="TMDB TV category to pull (repeat the flag)."
    ),
    page_cap: Optional[int] = typer.Option(None, min=1, help="Maximum pages per category."),
    batch_size: Optional[int] = typer.Option(None, min=1, max=50, help="Items fetched concurrently."),
    batch_delay: Optional[float] = typer.Option(None, min=0, help="Seconds slept between batches."),
    refresh_existing: Optional[bool] = typer.Option(
        None,
        "--refresh-existing/--skip-existing",
        help="Re-fetch items that are already stored.",
        show_default=False,
    ),
    include_genres: Optional[bool] = typer.Option(
        None,
        "--genres/--no-genres",
        help="Refresh the genre taxonomy before syncing media.",
        show_default=False,
    ),
) -> None:
    """Run a one-shot sync in this process against the configured database."""

    settings = CatalogSettings()
    configure_logging(settings.log_level)
    engine = create_engine_from_settings(settings)
    init_database(engine)
    sync_engine = SyncEngine.from_settings(
        settings, engine, client_factory=lambda: create_tmdb_client(settings), worker_id="cli"
    )
    options = sync_engine.defaults.with_overrides(
        {
            "movie_categories": movie_categories,
            "tv_categories": tv_categories,
            "page_cap": page_cap,
            "batch_size": batch_size,
            "batch_delay": batch_delay,
            "refresh_existing": refresh_existing,
            "include_genres": include_genres,
        }
    )
    try:
        summary = asyncio.run(sync_engine.run(options))
    except CatalogError as exc:
        typer.echo(f"Sync failed: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        engine.dispose()
    typer.echo(json.dumps(summary.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))


@jobs_app.command("list")
def list_jobs(
    statuses: Optional[List[str]] = typer.Option(
        None,
        "--status",
        help="Filter results to specific job statuses (repeat the flag).",
    ),
    job_type: Optional[str] = typer.Option(
        None,
        "--type",
        help="Filter results to a specific job type.",
    ),
    api_base: str = _api_base_option(),
    token: Optional[str] = _token_option(),
) -> None:
    """Display the named sync jobs."""

    params: dict[str, object] = {}
    if statuses:
        normalized_statuses: list[str] = []
        for status in statuses:
            value = status.lower()
            if value not in JOB_STATUS_CHOICES:
                typer.echo(
                    "Invalid status value. Allowed values: "
                    + ", ".join(sorted(JOB_STATUS_CHOICES)),
                    err=True,
                )
                raise typer.Exit(code=1)
            normalized_statuses.append(value)
        params["status"] = normalized_statuses
    if job_type:
        params["type"] = job_type

    with create_client(api_base) as client:
        _echo(client.get("/admin/sync/jobs", params=params, headers=auth_headers(token)))


@jobs_app.command("show")
def show_job(
    job_id: str = typer.Argument(..., help="Identifier of the job to display."),
    api_base: str = _api_base_option(),
    token: Optional[str] = _token_option(),
) -> None:
    """Display details for a single job."""

    with create_client(api_base) as client:
        _echo(client.get(f"/admin/sync/jobs/{job_id}", headers=auth_headers(token)))


def _job_action(job_id: str, action: str, api_base: str, token: Optional[str]) -> None:
    with create_client(api_base) as client:
        _echo(client.post(f"/admin/sync/jobs/{job_id}/{action}", headers=auth_headers(token)))


@jobs_app.command("run")
def run_job(
    job_id: str = typer.Argument(..., help="Identifier of the job to queue."),
    api_base: str = _api_base_option(),
    token: Optional[str] = _token_option(),
) -> None:
    """Queue a job for the background worker."""

    _job_action(job_id, "run", api_base, token)


@jobs_app.command("pause")
def pause_job(
    job_id: str = typer.Argument(..., help="Identifier of the running job."),
    api_base: str = _api_base_option(),
    token: Optional[str] = _token_option(),
) -> None:
    """Pause a running job at its next batch boundary."""

    _job_action(job_id, "pause", api_base, token)


@jobs_app.command("resume")
def resume_job(
    job_id: str = typer.Argument(..., help="Identifier of the paused job."),
    api_base: str = _api_base_option(),
    token: Optional[str] = _token_option(),
) -> None:
    """Re-queue a paused job."""

    _job_action(job_id, "resume", api_base, token)


@jobs_app.command("stop")
def stop_job(
    job_id: str = typer.Argument(..., help="Identifier of the running job."),
    api_base: str = _api_base_option(),
    token: Optional[str] = _token_option(),
) -> None:
    """Stop a running job; it stays paused until resumed."""

    _job_action(job_id, "stop", api_base, token)


@jobs_app.command("logs")
def job_logs(
    job_id: str = typer.Argument(..., help="Identifier of the job to inspect."),
    limit: int = typer.Option(50, min=1, max=500, help="Maximum number of log entries."),
    api_base: str = _api_base_option(),
    token: Optional[str] = _token_option(),
) -> None:
    """Display persisted log events for a job."""

    params = {"limit": limit}
    with create_client(api_base) as client:
        _echo(client.get(f"/admin/sync/jobs/{job_id}/logs", params=params, headers=auth_headers(token)))
