"""Database-backed store for named sync jobs."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from threading import Lock
from typing import Iterable
from uuid import uuid4

from sqlalchemy import func, or_, update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from ..errors import ConflictError, JobAlreadyRunningError, NotFoundError
from ..models import SyncJobRecord
from ..schemas import SyncJobModel, SyncJobUpdate
from ..utils.clock import utcnow

logger = logging.getLogger(__name__)


class SyncJobStore:
    """Thread-safe state transitions for sync jobs.

    Starting a job is a conditional update guarded by a lease so that two
    processes sharing the database never run the same job at once. Each start
    issues a lease token; progress and terminal writes carrying a stale token
    are dropped. Progress writes renew the lease and a crashed runner's lease
    simply expires.
    """

    def __init__(self, engine: Engine, *, lease_seconds: int = 900) -> None:
        self._engine = engine
        self._lease = timedelta(seconds=lease_seconds)
        self._lock = Lock()

    def list(
        self,
        *,
        statuses: list[str] | None = None,
        job_type: str | None = None,
        enabled_only: bool = False,
    ) -> list[SyncJobModel]:
        """Return jobs in creation order with optional filters."""

        statement = select(SyncJobRecord)
        if statuses:
            normalized_statuses = sorted({status.lower() for status in statuses if status})
            if normalized_statuses:
                statement = statement.where(SyncJobRecord.status.in_(normalized_statuses))
        if job_type:
            statement = statement.where(SyncJobRecord.type == job_type)
        if enabled_only:
            statement = statement.where(SyncJobRecord.is_enabled.is_(True))

        statement = statement.order_by(SyncJobRecord.created_at.asc(), SyncJobRecord.id)
        with Session(self._engine) as session:
            records: Iterable[SyncJobRecord] = session.exec(statement)
            return [_to_model(record) for record in records]

    def get(self, job_id: str) -> SyncJobModel | None:
        """Fetch a single job by identifier."""

        with Session(self._engine) as session:
            record = session.get(SyncJobRecord, job_id)
            return _to_model(record) if record else None

    def require(self, job_id: str) -> SyncJobModel:
        """Fetch a job or raise ``NotFoundError``."""

        job = self.get(job_id)
        if job is None:
            raise NotFoundError("Sync job not found")
        return job

    def update(self, job_id: str, payload: SyncJobUpdate) -> SyncJobModel:
        """Apply admin configuration changes; ``config`` is merged, not replaced."""

        with self._lock, Session(self._engine) as session:
            record = session.get(SyncJobRecord, job_id)
            if record is None:
                raise NotFoundError("Sync job not found")
            changes = payload.model_dump(exclude_unset=True, exclude={"config"})
            for key, value in changes.items():
                if value is not None:
                    setattr(record, key, value)
            if payload.config is not None:
                record.config = {**(record.config or {}), **payload.config}
            record.updated_at = utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def try_start(self, job_id: str, *, worker_id: str | None = None) -> SyncJobModel:
        """Move a job into ``running`` unless another runner holds a live lease.

        The returned model carries a fresh ``lease_token``; owner-only writes
        must present it.
        """

        now = utcnow()
        token = uuid4().hex
        statement = (
            update(SyncJobRecord)
            .where(SyncJobRecord.id == job_id)
            .where(
                or_(
                    SyncJobRecord.status != "running",
                    SyncJobRecord.lease_expires_at.is_(None),
                    SyncJobRecord.lease_expires_at < now,
                )
            )
            .values(
                status="running",
                progress=0,
                items_processed=0,
                total_items=0,
                error_message=None,
                worker_id=worker_id,
                lease_token=token,
                lease_expires_at=now + self._lease,
                updated_at=now,
            )
        )
        with self._lock, Session(self._engine) as session:
            result = session.exec(statement)
            session.commit()
            if result.rowcount == 0:
                if session.get(SyncJobRecord, job_id) is None:
                    raise NotFoundError("Sync job not found")
                raise JobAlreadyRunningError("Sync job is already running")
            record = session.get(SyncJobRecord, job_id)
            session.refresh(record)
            return _to_model(record)

    def holds_lease(self, job_id: str, lease_token: str | None) -> bool:
        """Return whether the runner holding ``lease_token`` may keep working."""

        with Session(self._engine) as session:
            row = session.exec(
                select(SyncJobRecord.status, SyncJobRecord.lease_token).where(SyncJobRecord.id == job_id)
            ).first()
        if row is None:
            raise NotFoundError("Sync job not found")
        status, current = row
        return status == "running" and current == lease_token

    def record_progress(
        self,
        job_id: str,
        *,
        items_processed: int,
        total_items: int,
        lease_token: str | None = None,
    ) -> SyncJobModel | None:
        """Persist counters for a running job; progress never moves backwards.

        Returns ``None`` without writing when ``lease_token`` no longer owns the job.
        """

        with self._lock, Session(self._engine) as session:
            record = self._owned_record(session, job_id, lease_token)
            if record is None:
                return None
            record.items_processed = max(record.items_processed, items_processed)
            record.total_items = max(record.total_items, total_items, record.items_processed)
            if record.total_items:
                computed = int(record.items_processed * 100 / record.total_items)
                record.progress = max(record.progress, min(computed, 99))
            if record.status == "running":
                record.lease_expires_at = utcnow() + self._lease
            record.updated_at = utcnow()
            return self._save(session, record)

    def mark_completed(self, job_id: str, *, lease_token: str | None = None) -> SyncJobModel | None:
        """Transition a job into the completed state."""

        now = utcnow()
        with self._lock, Session(self._engine) as session:
            record = self._owned_record(session, job_id, lease_token)
            if record is None:
                return None
            record.status = "completed"
            record.progress = 100
            record.success_count += 1
            record.last_run = now
            record.error_message = None
            record.lease_expires_at = None
            record.lease_token = None
            record.updated_at = now
            return self._save(session, record)

    def mark_failed(
        self, job_id: str, *, error_message: str, lease_token: str | None = None
    ) -> SyncJobModel | None:
        """Transition a job into the failed state."""

        now = utcnow()
        with self._lock, Session(self._engine) as session:
            record = self._owned_record(session, job_id, lease_token)
            if record is None:
                return None
            record.status = "failed"
            record.failure_count += 1
            record.error_message = error_message
            record.last_error = now
            record.last_run = now
            record.lease_expires_at = None
            record.lease_token = None
            record.updated_at = now
            return self._save(session, record)

    def mark_paused(self, job_id: str, *, reason: str | None = None) -> SyncJobModel:
        """Flag a running job as paused; the runner halts at its next batch boundary."""

        with self._lock, Session(self._engine) as session:
            record = self._get_record(session, job_id)
            if record.status != "running":
                raise ConflictError("Job is not running")
            record.status = "paused"
            if reason is not None:
                record.error_message = reason
            record.lease_expires_at = None
            record.updated_at = utcnow()
            return self._save(session, record)

    def release(self, job_id: str, *, lease_token: str | None = None) -> SyncJobModel | None:
        """Drop the lease of a job that halted while paused."""

        with self._lock, Session(self._engine) as session:
            record = self._owned_record(session, job_id, lease_token)
            if record is None:
                return None
            record.lease_expires_at = None
            record.lease_token = None
            record.worker_id = None
            record.updated_at = utcnow()
            return self._save(session, record)

    def set_next_run(self, job_id: str, next_run: datetime | None) -> SyncJobModel:
        """Record when the scheduler will next trigger this job."""

        with self._lock, Session(self._engine) as session:
            record = self._get_record(session, job_id)
            record.next_run = next_run
            return self._save(session, record)

    def stats(self) -> dict[str, object]:
        """Compute aggregate counters across all jobs."""

        with Session(self._engine) as session:
            total = session.exec(select(func.count()).select_from(SyncJobRecord)).one()
            status_rows = session.exec(
                select(SyncJobRecord.status, func.count())
                .group_by(SyncJobRecord.status)
                .order_by(SyncJobRecord.status)
            ).all()
            successes, failures, last_run = session.exec(
                select(
                    func.coalesce(func.sum(SyncJobRecord.success_count), 0),
                    func.coalesce(func.sum(SyncJobRecord.failure_count), 0),
                    func.max(SyncJobRecord.last_run),
                )
            ).one()
        return {
            "total_jobs": int(total),
            "status_counts": {status: count for status, count in status_rows},
            "total_successes": int(successes),
            "total_failures": int(failures),
            "last_run": last_run,
        }

    @staticmethod
    def _get_record(session: Session, job_id: str) -> SyncJobRecord:
        record = session.get(SyncJobRecord, job_id)
        if record is None:
            raise NotFoundError("Sync job not found")
        return record

    @staticmethod
    def _owned_record(
        session: Session, job_id: str, lease_token: str | None
    ) -> SyncJobRecord | None:
        record = SyncJobStore._get_record(session, job_id)
        if lease_token is not None and record.lease_token != lease_token:
            logger.warning("Ignoring write to sync job %s from a runner that lost its lease", job_id)
            return None
        return record

    @staticmethod
    def _save(session: Session, record: SyncJobRecord) -> SyncJobModel:
        session.add(record)
        session.commit()
        session.refresh(record)
        return _to_model(record)


def _to_model(record: SyncJobRecord) -> SyncJobModel:
    """Convert a SyncJobRecord into the public response model."""

    return SyncJobModel(
        id=record.id,
        name=record.name,
        type=record.type,
        status=record.status,
        progress=record.progress,
        description=record.description,
        estimated_time=record.estimated_time,
        is_enabled=record.is_enabled,
        items_processed=record.items_processed,
        total_items=record.total_items,
        success_count=record.success_count,
        failure_count=record.failure_count,
        error_message=record.error_message,
        last_error=record.last_error,
        last_run=record.last_run,
        next_run=record.next_run,
        worker_id=record.worker_id,
        lease_token=record.lease_token,
        lease_expires_at=record.lease_expires_at,
        config=dict(record.config or {}),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
