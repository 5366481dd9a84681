"""Append-only audit trail of admin mutations."""
from __future__ import annotations

from math import ceil
from typing import Sequence

from sqlalchemy.engine import Engine
from sqlmodel import Session, func, select

from ..models import AdminActivityRecord
from ..schemas import ActivityCreate, ActivityListModel, ActivityModel


class ActivityStore:
    """Insert and query admin activity records; rows are never updated."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def record(self, payload: ActivityCreate) -> ActivityModel:
        """Append a new activity record."""

        record = AdminActivityRecord(**payload.model_dump())
        with Session(self._engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def list(
        self,
        *,
        page: int = 1,
        limit: int = 50,
        action: str | None = None,
        resource: str | None = None,
        admin_id: str | None = None,
        success: bool | None = None,
    ) -> ActivityListModel:
        """Return a newest-first page of activity records."""

        filters = []
        if action:
            filters.append(AdminActivityRecord.action == action)
        if resource:
            filters.append(AdminActivityRecord.resource == resource)
        if admin_id:
            filters.append(AdminActivityRecord.admin_id == admin_id)
        if success is not None:
            filters.append(AdminActivityRecord.success.is_(success))

        count_statement = select(func.count()).select_from(AdminActivityRecord)
        items_statement = select(AdminActivityRecord)
        for condition in filters:
            count_statement = count_statement.where(condition)
            items_statement = items_statement.where(condition)
        items_statement = (
            items_statement.order_by(
                AdminActivityRecord.created_at.desc(), AdminActivityRecord.id.desc()
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )

        with Session(self._engine) as session:
            total = int(session.exec(count_statement).one())
            records: Sequence[AdminActivityRecord] = session.exec(items_statement).all()
            items = [_to_model(record) for record in records]

        return ActivityListModel(
            items=items,
            total_pages=ceil(total / limit) if total else 0,
            current_page=page,
            total=total,
        )

    def recent(self, limit: int = 10) -> list[ActivityModel]:
        """Return the newest activity records."""

        return self.list(limit=limit).items


def _to_model(record: AdminActivityRecord) -> ActivityModel:
    """Convert an activity record into the public response model."""

    return ActivityModel(
        id=record.id,
        admin_id=record.admin_id,
        admin_name=record.admin_name,
        action=record.action,
        resource=record.resource,
        resource_id=record.resource_id,
        description=record.description,
        details=dict(record.details or {}),
        success=record.success,
        error_message=record.error_message,
        ip_address=record.ip_address,
        user_agent=record.user_agent,
        created_at=record.created_at,
    )
