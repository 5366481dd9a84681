"""Health endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..dependencies import get_app_state, get_job_queue
from ..schemas import HealthStatus, QueueHealthStatus
from ..services.queue import SyncQueueService
from ..state import AppState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
def get_health(
    app_state: AppState = Depends(get_app_state),
    queue: SyncQueueService = Depends(get_job_queue),
) -> HealthStatus:
    """Return service heartbeat information."""

    database = "ok"
    try:
        with app_state.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        database = "error"

    queue_status = QueueHealthStatus(status="ok")
    if not queue.ping():
        queue_status = QueueHealthStatus(status="error", detail="queue_unreachable")
    return HealthStatus(database=database, queue=queue_status)
