"""Celery worker configuration.

Runs ledger background work:
- Notification dispatch
- Stale payment cleanup
"""

from celery import Celery
from celery.schedules import crontab

from safari_ledger.config import settings

# Create Celery app
celery_app = Celery(
    "safari_ledger_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["safari_ledger.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Africa/Nairobi",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    result_expires=3600,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=3,

    beat_schedule={
        # Abandon payment attempts older than a day, hourly
        "abandon-stale-payments": {
            "task": "safari_ledger.tasks.abandon_stale_payments",
            "schedule": crontab(minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
