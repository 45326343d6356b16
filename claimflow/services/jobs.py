"""
Background job enqueuer.

Jobs are Celery tasks sent by name; the job id doubles as the Celery task id
so a retried enqueue of the same job is recognisable downstream.
"""

from typing import Any, Optional

from claimflow.core.enums import JobType
from claimflow.utils.celery_app import celery_app
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


class JobQueue:
    def __init__(self, app=None):  # type: ignore[no-untyped-def]
        self.app = app or celery_app

    def enqueue(
        self,
        job_type: JobType,
        payload: dict[str, Any],
        job_id: str,
        countdown: Optional[int] = None,
    ) -> Optional[str]:
        """
        Send a job. Returns the job id, or None if the broker rejected it.

        Broker failures are logged and swallowed; the caller's committed
        work stays committed.
        """
        try:
            self.app.send_task(
                job_type.value,
                kwargs=payload,
                task_id=job_id,
                countdown=countdown,
            )
            logger.info(f"Enqueued {job_type.value} ({job_id})")
            return job_id
        except Exception as e:
            logger.opt(exception=e).error(f"Failed to enqueue {job_type.value} ({job_id})")
            return None


def claim_files_migrate_job_id(claim_id: Any) -> str:
    return f"claim-files-migrate:{claim_id}"


def claim_created_email_job_id(claim_id: Any) -> str:
    return f"claim-created-email:{claim_id}"


def claim_file_verify_job_id(file_id: Any) -> str:
    return f"claim-file-verify:{file_id}"


def claim_file_delete_job_id(file_id: Any) -> str:
    return f"claim-file-delete:{file_id}"
