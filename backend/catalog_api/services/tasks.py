"""RQ task entrypoints executed by background workers."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from rq import get_current_job

from ..db import create_engine_from_settings, init_database
from ..errors import JobAlreadyRunningError
from ..settings import CatalogSettings
from .sync_engine import SyncEngine
from .tmdb_client import create_tmdb_client

logger = logging.getLogger(__name__)


def execute_sync_job(
    *,
    job_id: str,
    settings: dict[str, Any],
    worker_name: str,
) -> dict[str, Any] | None:
    """Background worker entrypoint for named sync jobs."""

    resolved_settings = CatalogSettings.model_validate(settings)
    engine = create_engine_from_settings(resolved_settings)
    init_database(engine)

    current_job = get_current_job()  # pragma: no branch - helper for diagnostics
    worker_id = worker_name
    if current_job and getattr(current_job, "worker_name", None):  # pragma: no cover - runtime path
        worker_id = current_job.worker_name  # type: ignore[assignment]

    sync_engine = SyncEngine.from_settings(
        resolved_settings,
        engine,
        client_factory=lambda: create_tmdb_client(resolved_settings),
        worker_id=worker_id,
    )

    try:
        job = asyncio.run(sync_engine.run_job(job_id))
    except JobAlreadyRunningError as exc:
        logger.warning("Skipping sync job %s: %s", job_id, exc)
        return None
    finally:
        engine.dispose()

    summary = sync_engine.last_summary
    return summary.model_dump(mode="json", by_alias=True) if summary else {"status": job.status}
