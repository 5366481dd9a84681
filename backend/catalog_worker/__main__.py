"""Entry point for running the catalog sync RQ worker."""
from __future__ import annotations

import os

from rq import SimpleWorker, Worker

from backend.catalog_api.services.queue import SyncQueueService
from backend.catalog_api.settings import CatalogSettings
from backend.catalog_api.utils.logging_config import configure_logging


def main() -> None:
    """Start an RQ worker connected to the configured sync queue."""

    settings = CatalogSettings()
    configure_logging(settings.log_level)
    queue_service = SyncQueueService(settings)

    # Use SimpleWorker on Windows to avoid fork issues
    worker_class = SimpleWorker if os.name == "nt" else Worker
    worker = worker_class(
        [queue_service.queue],
        connection=queue_service.connection,
        name=settings.queue_worker_name,
    )
    worker.work(with_scheduler=False)


if __name__ == "__main__":  # pragma: no cover - manual entrypoint
    main()
