"""Celery tasks. Importing this package registers them on ``celery_app``."""

from claimflow.tasks import claims  # noqa: F401
