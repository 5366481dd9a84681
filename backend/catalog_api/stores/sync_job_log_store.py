"""Persistence helpers for sync job log events."""
from __future__ import annotations

from typing import Iterable

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from ..models import SyncJobLogRecord
from ..schemas import SyncJobLogCreate, SyncJobLogModel


class SyncJobLogStore:
    """Store and retrieve structured log events for sync jobs."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def append(self, job_id: str, payload: SyncJobLogCreate) -> SyncJobLogModel:
        """Persist a new log event for the provided job identifier."""

        record = SyncJobLogRecord(
            job_id=job_id,
            level=payload.level,
            message=payload.message,
            context=payload.context,
        )
        with Session(self._engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def list_for_job(self, job_id: str, *, limit: int = 100) -> list[SyncJobLogModel]:
        """Return the most recent log events of a job in chronological order."""

        statement = (
            select(SyncJobLogRecord)
            .where(SyncJobLogRecord.job_id == job_id)
            .order_by(SyncJobLogRecord.created_at.desc(), SyncJobLogRecord.id.desc())
            .limit(limit)
        )
        with Session(self._engine) as session:
            records: Iterable[SyncJobLogRecord] = session.exec(statement)
            return [_to_model(record) for record in reversed(list(records))]


def _to_model(record: SyncJobLogRecord) -> SyncJobLogModel:
    """Convert a database record into the API response model."""

    return SyncJobLogModel(
        id=record.id,
        job_id=record.job_id,
        level=record.level,
        message=record.message,
        context=record.context,
        created_at=record.created_at,
    )
