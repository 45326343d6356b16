"""
Celery Application
Background task processing (file migration, verification, notifications)
Source: https://docs.celeryq.dev/en/stable/getting-started/first-steps-with-celery.html
"""

from celery import Celery

from claimflow.api.config import settings

celery_app = Celery(
    "claimflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,
    task_soft_time_limit=9 * 60,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Tasks live in claimflow/tasks/*.py
celery_app.autodiscover_tasks(["claimflow.tasks"], related_name="claims")

celery_app.conf.beat_schedule = {
    "claim-pending-files-cleanup": {
        "task": "claim.pending_files_cleanup",
        "schedule": 60 * 60,
    },
}
