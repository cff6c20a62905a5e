"""Celery application for sync worker."""

from celery import Celery
from celery.schedules import crontab

from catalog_sync.config import get_settings

settings = get_settings()

# Create Celery app
app = Celery(
    "sync_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "sync_worker.tasks.sync_catalog",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,  # full scheduled sync
    task_soft_time_limit=3540,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="sync",
    task_routes={
        "sync_worker.tasks.*": {"queue": "sync"},
    },
)

# Beat schedule for periodic tasks
app.conf.beat_schedule = {
    # Daily catalog sync; the task exits early when auto sync is disabled
    "scheduled-catalog-sync": {
        "task": "sync_worker.tasks.sync_catalog.run_scheduled_sync",
        "schedule": crontab(minute=settings.auto_sync_minute, hour=settings.auto_sync_hour),
    },
    # Drop sync logs past the retention window daily at 4 AM
    "cleanup-sync-logs": {
        "task": "sync_worker.tasks.sync_catalog.cleanup_sync_logs",
        "schedule": crontab(minute=0, hour=4),
    },
}


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "sync"])


if __name__ == "__main__":
    run()
