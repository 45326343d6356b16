"""
Claim Background Tasks
File migration / verification / deletion and claim notifications
Source: https://docs.celeryq.dev/en/stable/userguide/tasks.html

Each task runs its async body with ``asyncio.run`` on a short-lived engine,
since pooled asyncpg connections cannot cross event loops.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

from anyio import to_thread
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from claimflow.api.config import settings
from claimflow.core.enums import ClaimFileStatus, JobType
from claimflow.models.claim import Claim
from claimflow.models.organization import Affiliate
from claimflow.repositories.claim_files import ClaimFileRepository
from claimflow.services.notifications import build_claim_created_message, send_email
from claimflow.services.storage import get_storage
from claimflow.utils.celery_app import celery_app
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)

PENDING_FILES_CLEANUP = "claim.pending_files_cleanup"


@asynccontextmanager
async def task_session() -> AsyncIterator[AsyncSession]:
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    try:
        async with async_sessionmaker(engine, expire_on_commit=False)() as session:
            yield session
    finally:
        await engine.dispose()


# =============================================================================
# File migration
# =============================================================================


async def migrate_claim_files(session: AsyncSession, claim_id: UUID) -> dict[str, int]:
    """Move staged objects of PENDING files to their permanent keys."""
    storage = get_storage()
    files = ClaimFileRepository(session)
    summary = {"migrated": 0, "failed": 0}

    for claim_file in await files.list_for_claim(claim_id, status=ClaimFileStatus.PENDING):
        if not claim_file.source_key or not claim_file.target_key:
            continue
        try:
            await to_thread.run_sync(
                storage.move_object_sync, claim_file.source_key, claim_file.target_key
            )
        except Exception as e:
            logger.opt(exception=e).error(f"Migration of file {claim_file.id} failed")
            await files.set_status(claim_file.id, ClaimFileStatus.FAILED, error_message=str(e))
            summary["failed"] += 1
        else:
            await files.set_status(claim_file.id, ClaimFileStatus.READY, clear_source=True)
            summary["migrated"] += 1
        await session.commit()

    return summary


@celery_app.task(name=JobType.CLAIM_FILES_MIGRATE.value)
def claim_files_migrate(claim_id: str, client_id: str) -> dict[str, Any]:
    async def run() -> dict[str, int]:
        async with task_session() as session:
            return await migrate_claim_files(session, UUID(claim_id))

    summary = asyncio.run(run())
    logger.info(f"Claim {claim_id} (client {client_id}) file migration: {summary}")
    return {"claim_id": claim_id, **summary}


# =============================================================================
# Direct uploads
# =============================================================================


async def verify_claim_file(session: AsyncSession, file_id: UUID) -> str:
    """Mark a directly uploaded file READY if its object exists, else FAILED."""
    files = ClaimFileRepository(session)
    claim_file = await files.get_by_id(file_id)
    if claim_file is None or claim_file.deleted_at is not None:
        return "missing"
    if claim_file.status != ClaimFileStatus.PENDING or not claim_file.target_key:
        return claim_file.status.value

    exists = await to_thread.run_sync(get_storage().object_exists_sync, claim_file.target_key)
    if exists:
        await files.set_status(file_id, ClaimFileStatus.READY)
    else:
        await files.set_status(file_id, ClaimFileStatus.FAILED, error_message="Upload not found")
    await session.commit()
    return (ClaimFileStatus.READY if exists else ClaimFileStatus.FAILED).value


@celery_app.task(name=JobType.CLAIM_FILE_VERIFY.value)
def claim_file_verify(file_id: str) -> dict[str, str]:
    async def run() -> str:
        async with task_session() as session:
            return await verify_claim_file(session, UUID(file_id))

    status = asyncio.run(run())
    logger.info(f"Claim file {file_id} verified: {status}")
    return {"file_id": file_id, "status": status}


@celery_app.task(name=JobType.CLAIM_FILE_DELETE.value)
def claim_file_delete(file_id: str, target_key: str) -> dict[str, str]:
    get_storage().delete_object_sync(target_key)
    return {"file_id": file_id, "deleted": target_key}


async def cleanup_pending_files(session: AsyncSession) -> int:
    """Drop expired staged uploads and their objects."""
    storage = get_storage()
    expired = await ClaimFileRepository(session).delete_expired_pending()
    await session.commit()
    for pending in expired:
        try:
            await to_thread.run_sync(storage.delete_object_sync, pending.file_key)
        except Exception as e:
            logger.warning(f"Could not delete staged object {pending.file_key}: {e}")
    return len(expired)


@celery_app.task(name=PENDING_FILES_CLEANUP)
def pending_files_cleanup() -> dict[str, int]:
    async def run() -> int:
        async with task_session() as session:
            return await cleanup_pending_files(session)

    removed = asyncio.run(run())
    logger.info(f"Removed {removed} expired staged upload(s)")
    return {"removed": removed}


# =============================================================================
# Notifications
# =============================================================================


async def load_claim_recipient(
    session: AsyncSession, claim_id: UUID, affiliate_id: UUID
) -> tuple[Claim, Affiliate] | None:
    claim = (await session.execute(select(Claim).where(Claim.id == claim_id))).scalar_one_or_none()
    affiliate = (
        await session.execute(select(Affiliate).where(Affiliate.id == affiliate_id))
    ).scalar_one_or_none()
    if claim is None or affiliate is None:
        return None
    return claim, affiliate


@celery_app.task(name=JobType.EMAIL_CLAIM_CREATED.value, autoretry_for=(OSError,), retry_backoff=True, max_retries=3)
def email_claim_created(claim_id: str, affiliate_id: str) -> dict[str, Any]:
    async def run() -> tuple[Claim, Affiliate] | None:
        async with task_session() as session:
            return await load_claim_recipient(session, UUID(claim_id), UUID(affiliate_id))

    loaded = asyncio.run(run())
    if loaded is None:
        logger.warning(f"Claim {claim_id} or affiliate {affiliate_id} not found; email skipped")
        return {"sent": False}

    claim, affiliate = loaded
    if not affiliate.email:
        logger.info(f"Affiliate {affiliate_id} has no email address; email skipped")
        return {"sent": False}

    send_email(
        build_claim_created_message(
            affiliate.email, affiliate.full_name, claim.claim_number, str(claim.id)
        )
    )
    return {"sent": True}
