"""Redis-backed queue that hands sync jobs to background workers."""
from __future__ import annotations

import logging

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue

try:  # pragma: no cover - optional dependency for test environments
    import fakeredis
except ModuleNotFoundError:  # pragma: no cover - runtime path without fakeredis
    fakeredis = None  # type: ignore[assignment]

from ..errors import QueueUnavailableError
from ..schemas import SyncJobLogCreate, SyncJobModel
from ..settings import CatalogSettings
from ..stores.sync_job_log_store import SyncJobLogStore
from ..stores.sync_job_store import SyncJobStore
from .tasks import execute_sync_job

logger = logging.getLogger(__name__)


class SyncQueueService:
    """Encapsulates the Redis queue connection and enqueue workflow."""

    def __init__(self, settings: CatalogSettings) -> None:
        self._settings = settings
        self._connection = self._create_connection(settings)
        self._queue = Queue(settings.redis_queue_name, connection=self._connection)

    @staticmethod
    def _create_connection(settings: CatalogSettings) -> Redis:
        """Instantiate a Redis connection, supporting fakeredis for tests."""

        url = settings.redis_url
        if url.startswith("fakeredis://"):
            if fakeredis is None:  # pragma: no cover - safety branch
                raise QueueUnavailableError("fakeredis is required for fakeredis:// URLs")
            return fakeredis.FakeRedis()  # type: ignore[return-value]
        return Redis.from_url(url)

    @property
    def queue(self) -> Queue:
        return self._queue

    @property
    def connection(self) -> Redis:
        return self._connection

    def ping(self) -> bool:
        """Check whether the queue backend is reachable."""

        try:
            return bool(self._connection.ping())
        except RedisError:
            return False

    def depth(self) -> int:
        try:
            return len(self._queue)
        except RedisError:
            return 0

    def enqueue(
        self,
        job_store: SyncJobStore,
        log_store: SyncJobLogStore,
        job_id: str,
        *,
        reason: str = "run",
    ) -> SyncJobModel:
        """Queue an existing sync job for a worker; the worker takes the lease."""

        job = job_store.require(job_id)
        try:
            self._queue.enqueue(
                execute_sync_job,
                kwargs={
                    "job_id": job.id,
                    "settings": self._settings.model_dump(),
                    "worker_name": self._settings.queue_worker_name,
                },
            )
        except RedisError as exc:
            logger.error("Failed to enqueue sync job %s: %s", job_id, exc)
            log_store.append(
                job.id,
                SyncJobLogCreate(level="error", message="Failed to enqueue job", context={"error": str(exc)}),
            )
            raise QueueUnavailableError("Unable to enqueue sync job") from exc

        log_store.append(
            job.id,
            SyncJobLogCreate(level="info", message=f"Job {job.name} enqueued", context={"reason": reason}),
        )
        logger.info("Enqueued sync job %s (%s)", job.id, reason)
        return job
