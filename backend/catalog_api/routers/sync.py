"""Sync job orchestration endpoints."""
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query

from ..dependencies import (
    get_episode_store,
    get_genre_store,
    get_job_log_store,
    get_job_queue,
    get_job_store,
    get_movie_store,
    get_scheduler,
    get_sync_engine,
    get_tv_store,
)
from ..errors import ConflictError, JobAlreadyRunningError
from ..schemas import (
    AdminResponse,
    ScheduleRequest,
    SyncJobModel,
    SyncJobUpdate,
    SyncRunRequest,
    SyncStatsModel,
    SyncStatusModel,
)
from ..security import require_admin
from ..services.activity import ActivityContext, activity_logger
from ..services.queue import SyncQueueService
from ..services.scheduler import SyncScheduler
from ..services.sync_engine import SyncEngine
from ..stores.catalog_store import EpisodeStore, MovieStore, TvShowStore
from ..stores.genre_store import GenreStore
from ..stores.sync_job_log_store import SyncJobLogStore
from ..stores.sync_job_store import SyncJobStore
from ..utils.clock import utcnow

router = APIRouter(prefix="/admin/sync", tags=["sync"], dependencies=[Depends(require_admin)])

STOP_REASON = "Job stopped by user"


def _ensure_startable(job: SyncJobModel) -> None:
    if not job.is_enabled:
        raise ConflictError(f"Job {job.name} is disabled")
    lease = job.lease_expires_at
    if job.status == "running" and lease is not None and lease > utcnow():
        raise JobAlreadyRunningError(f"Job {job.name} is already running")


@router.get("/jobs", response_model=AdminResponse)
def list_jobs(
    statuses: Annotated[
        list[str] | None,
        Query(
            alias="status",
            description=(
                "Filter results to one or more job statuses. Repeat the query parameter "
                "to include multiple statuses."
            ),
        ),
    ] = None,
    job_type: str | None = Query(
        default=None,
        alias="type",
        description="Filter results to a specific job type.",
    ),
    store: SyncJobStore = Depends(get_job_store),
) -> AdminResponse:
    """Return every sync job in creation order."""

    return AdminResponse.ok("Sync jobs retrieved", store.list(statuses=statuses, job_type=job_type))


@router.get("/jobs/{job_id}", response_model=AdminResponse)
def get_job(job_id: str, store: SyncJobStore = Depends(get_job_store)) -> AdminResponse:
    return AdminResponse.ok("Sync job retrieved", store.require(job_id))


@router.put("/jobs/{job_id}", response_model=AdminResponse)
def update_job(
    job_id: str,
    payload: SyncJobUpdate,
    store: SyncJobStore = Depends(get_job_store),
    activity: ActivityContext = Depends(activity_logger("sync_configure", "sync_job")),
) -> AdminResponse:
    """Rename, enable/disable or reconfigure a job; ``config`` is merged."""

    activity.resource_id = job_id
    activity.details = payload.model_dump(mode="json", by_alias=True, exclude_unset=True)
    job = store.update(job_id, payload)
    activity.description = f"Updated sync job configuration: {job.name}"
    return AdminResponse.ok("Sync job updated successfully", job)


@router.get("/jobs/{job_id}/logs", response_model=AdminResponse)
def list_job_logs(
    job_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    store: SyncJobStore = Depends(get_job_store),
    log_store: SyncJobLogStore = Depends(get_job_log_store),
) -> AdminResponse:
    """Return log events associated with a job."""

    store.require(job_id)
    return AdminResponse.ok("Sync job logs retrieved", log_store.list_for_job(job_id, limit=limit))


@router.post("/jobs/{job_id}/run", response_model=AdminResponse, status_code=202)
def run_job(
    job_id: str,
    store: SyncJobStore = Depends(get_job_store),
    log_store: SyncJobLogStore = Depends(get_job_log_store),
    queue: SyncQueueService = Depends(get_job_queue),
    activity: ActivityContext = Depends(activity_logger("sync_start", "sync_job")),
) -> AdminResponse:
    """Queue a job for a background worker."""

    activity.resource_id = job_id
    job = store.require(job_id)
    _ensure_startable(job)
    queue.enqueue(store, log_store, job_id, reason="run")
    activity.description = f"Started sync job: {job.name}"
    return AdminResponse.ok(f"Job {job.name} queued", job)


@router.post("/jobs/{job_id}/pause", response_model=AdminResponse)
def pause_job(
    job_id: str,
    store: SyncJobStore = Depends(get_job_store),
    activity: ActivityContext = Depends(activity_logger("sync_stop", "sync_job")),
) -> AdminResponse:
    """Pause a running job; the worker halts at its next batch boundary."""

    activity.resource_id = job_id
    job = store.mark_paused(job_id)
    activity.description = f"Paused sync job: {job.name}"
    return AdminResponse.ok(f"Job {job.name} paused", job)


@router.post("/jobs/{job_id}/resume", response_model=AdminResponse, status_code=202)
def resume_job(
    job_id: str,
    store: SyncJobStore = Depends(get_job_store),
    log_store: SyncJobLogStore = Depends(get_job_log_store),
    queue: SyncQueueService = Depends(get_job_queue),
    activity: ActivityContext = Depends(activity_logger("sync_start", "sync_job")),
) -> AdminResponse:
    """Re-queue a paused job; already stored items are skipped on the re-run."""

    activity.resource_id = job_id
    job = store.require(job_id)
    if job.status != "paused":
        raise ConflictError("Job is not paused")
    _ensure_startable(job)
    queue.enqueue(store, log_store, job_id, reason="resume")
    activity.description = f"Resumed sync job: {job.name}"
    return AdminResponse.ok(f"Job {job.name} resumed", job)


@router.post("/jobs/{job_id}/stop", response_model=AdminResponse)
def stop_job(
    job_id: str,
    store: SyncJobStore = Depends(get_job_store),
    activity: ActivityContext = Depends(activity_logger("sync_stop", "sync_job")),
) -> AdminResponse:
    activity.resource_id = job_id
    job = store.mark_paused(job_id, reason=STOP_REASON)
    activity.description = f"Stopped sync job: {job.name}"
    return AdminResponse.ok(f"Job {job.name} stopped", job)


@router.post("/run-all", response_model=AdminResponse, status_code=202)
def run_all_jobs(
    store: SyncJobStore = Depends(get_job_store),
    log_store: SyncJobLogStore = Depends(get_job_log_store),
    queue: SyncQueueService = Depends(get_job_queue),
    activity: ActivityContext = Depends(activity_logger("sync_start", "sync_job")),
) -> AdminResponse:
    """Queue every enabled job that is not already running."""

    queued: list[SyncJobModel] = []
    skipped: list[str] = []
    for job in store.list(enabled_only=True):
        try:
            _ensure_startable(job)
        except ConflictError:
            skipped.append(job.id)
            continue
        queue.enqueue(store, log_store, job.id, reason="run-all")
        queued.append(job)
    activity.details = {"queued": [job.id for job in queued], "skipped": skipped}
    activity.description = f"Started {len(queued)} sync jobs"
    return AdminResponse.ok(f"{len(queued)} jobs queued", queued)


@router.get("/stats", response_model=AdminResponse)
def sync_stats(
    store: SyncJobStore = Depends(get_job_store),
    movies: MovieStore = Depends(get_movie_store),
    tv_shows: TvShowStore = Depends(get_tv_store),
    genres: GenreStore = Depends(get_genre_store),
    episodes: EpisodeStore = Depends(get_episode_store),
) -> AdminResponse:
    stats = SyncStatsModel(
        **store.stats(),
        total_movies=movies.count(),
        total_tv_shows=tv_shows.count(),
        total_genres=genres.count(),
        total_episodes=episodes.count(),
    )
    return AdminResponse.ok("Sync statistics", stats)


@router.post("/run-now", response_model=AdminResponse)
async def run_now(
    request: SyncRunRequest | None = Body(default=None),
    engine: SyncEngine = Depends(get_sync_engine),
    activity: ActivityContext = Depends(activity_logger("sync_start", "catalog")),
) -> AdminResponse:
    """Run a one-shot sync in this process and wait for its summary."""

    overrides = request.model_dump(exclude_none=True) if request else {}
    options = engine.defaults.with_overrides(overrides)
    activity.details = overrides
    summary = await engine.run(options)
    activity.description = (
        f"Ran catalog sync: {summary.created} created, {summary.skipped} skipped, "
        f"{summary.failed} failed"
    )
    return AdminResponse.ok("Sync finished", summary)


@router.get("/status", response_model=AdminResponse)
def sync_status(
    engine: SyncEngine = Depends(get_sync_engine),
    scheduler: SyncScheduler = Depends(get_scheduler),
) -> AdminResponse:
    status = SyncStatusModel(
        is_running=engine.is_running,
        current_job_id=engine.current_job_id,
        last_summary=engine.last_summary,
        schedule=scheduler.status(),
    )
    return AdminResponse.ok("Sync status", status)


@router.get("/schedules", response_model=AdminResponse)
def list_schedules(scheduler: SyncScheduler = Depends(get_scheduler)) -> AdminResponse:
    """Return the cron presets and the current schedule."""

    return AdminResponse.ok(
        "Sync schedules",
        {
            "presets": scheduler.presets(),
            "current": scheduler.status(),
        },
    )


@router.post("/schedule", response_model=AdminResponse)
async def start_schedule(
    payload: ScheduleRequest,
    engine: SyncEngine = Depends(get_sync_engine),
    scheduler: SyncScheduler = Depends(get_scheduler),
    activity: ActivityContext = Depends(activity_logger("sync_configure", "schedule")),
) -> AdminResponse:
    """Start or replace the recurring sync with a preset name or cron expression."""

    options = None
    if payload.options is not None:
        options = engine.defaults.with_overrides(payload.options.model_dump(exclude_none=True))
        options.validate()
    activity.details = {"schedule": payload.schedule}
    status = scheduler.start(payload.schedule, options)
    activity.description = f"Scheduled catalog sync: {status.cron}"
    return AdminResponse.ok("Sync schedule started", status)


@router.delete("/schedule", response_model=AdminResponse)
async def stop_schedule(
    scheduler: SyncScheduler = Depends(get_scheduler),
    activity: ActivityContext = Depends(activity_logger("sync_configure", "schedule")),
) -> AdminResponse:
    status = scheduler.stop()
    activity.description = "Stopped scheduled catalog sync"
    return AdminResponse.ok("Sync schedule stopped", status)
