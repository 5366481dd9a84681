"""RQ worker that executes queued catalog sync jobs."""
