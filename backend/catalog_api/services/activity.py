"""Audit trail for admin mutations."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from fastapi import Depends, Request

from ..dependencies import get_activity_store
from ..schemas import ActivityCreate
from ..security import CurrentUser, require_admin
from ..stores.activity_store import ActivityStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ActivityContext:
    """Details a handler fills in while it performs the audited mutation."""

    action: str
    resource: str
    resource_id: str | None = None
    description: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def activity_logger(
    action: str,
    resource: str,
    describe: str | None = None,
    details: dict[str, Any] | None = None,
) -> Callable[..., Iterator[ActivityContext]]:
    """Build a dependency that records an ``AdminActivity`` row once the handler finishes.

    ``describe`` is a template formatted with the context's ``resource_id``
    when the handler does not set ``description`` itself. Failures of the
    handler are recorded with ``success=False`` and then re-raised; failures
    to write the record are logged only.
    """

    def dependency(
        request: Request,
        admin: CurrentUser = Depends(require_admin),
        store: ActivityStore = Depends(get_activity_store),
    ) -> Iterator[ActivityContext]:
        context = ActivityContext(action=action, resource=resource, details=dict(details or {}))
        try:
            yield context
        except Exception as exc:
            _record(store, request, admin, context, describe, success=False, error_message=str(exc))
            raise
        else:
            _record(store, request, admin, context, describe, success=True)

    return dependency


def _record(
    store: ActivityStore,
    request: Request,
    admin: CurrentUser,
    context: ActivityContext,
    template: str | None,
    *,
    success: bool,
    error_message: str | None = None,
) -> None:
    description = context.description
    if description is None:
        description = (template or "{action} {resource} {resource_id}").format(
            action=context.action,
            resource=context.resource,
            resource_id=context.resource_id or "",
        ).strip()
    try:
        store.record(
            ActivityCreate(
                admin_id=admin.id,
                admin_name=admin.username,
                action=context.action,
                resource=context.resource,
                resource_id=context.resource_id,
                description=description,
                details=context.details,
                success=success,
                error_message=error_message,
                ip_address=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
            )
        )
    except Exception:  # noqa: BLE001 - the audit trail never fails the request
        logger.exception("Failed to record admin activity %s on %s", context.action, context.resource)
