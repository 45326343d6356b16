"""Claim file and staged-upload persistence."""

from datetime import UTC, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.core.enums import ClaimFileStatus
from claimflow.models.claim import ClaimFile, PendingClaimFile


class ClaimFileRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # Staged uploads

    async def add_pending(self, pending: PendingClaimFile) -> PendingClaimFile:
        self.session.add(pending)
        await self.session.flush()
        return pending

    async def find_pending(
        self,
        user_id: UUID,
        session_key: str,
        now: Optional[datetime] = None,
    ) -> list[PendingClaimFile]:
        """Non-expired staged uploads of ``user_id`` for ``session_key``."""
        now = now or datetime.now(UTC)
        result = await self.session.execute(
            select(PendingClaimFile)
            .where(
                PendingClaimFile.user_id == user_id,
                PendingClaimFile.session_key == session_key,
                PendingClaimFile.expires_at > now,
            )
            .order_by(PendingClaimFile.created_at)
        )
        return list(result.scalars().all())

    async def delete_pending(self, ids: list[UUID]) -> int:
        if not ids:
            return 0
        result = await self.session.execute(
            delete(PendingClaimFile)
            .where(PendingClaimFile.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_expired_pending(self, now: Optional[datetime] = None) -> list[PendingClaimFile]:
        now = now or datetime.now(UTC)
        result = await self.session.execute(
            delete(PendingClaimFile)
            .where(PendingClaimFile.expires_at <= now)
            .returning(PendingClaimFile)
            .execution_options(synchronize_session=False)
        )
        return list(result.scalars().all())

    # Claim files

    async def add(self, claim_file: ClaimFile) -> ClaimFile:
        self.session.add(claim_file)
        await self.session.flush()
        return claim_file

    async def get(self, claim_id: UUID, file_id: UUID) -> Optional[ClaimFile]:
        """Non-deleted file belonging to ``claim_id``."""
        result = await self.session.execute(
            select(ClaimFile).where(
                ClaimFile.id == file_id,
                ClaimFile.claim_id == claim_id,
                ClaimFile.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, file_id: UUID) -> Optional[ClaimFile]:
        result = await self.session.execute(select(ClaimFile).where(ClaimFile.id == file_id))
        return result.scalar_one_or_none()

    async def list_for_claim(
        self,
        claim_id: UUID,
        status: Optional[ClaimFileStatus] = None,
    ) -> list[ClaimFile]:
        query = select(ClaimFile).where(
            ClaimFile.claim_id == claim_id,
            ClaimFile.deleted_at.is_(None),
        )
        if status is not None:
            query = query.where(ClaimFile.status == status)
        result = await self.session.execute(query.order_by(ClaimFile.created_at))
        return list(result.scalars().all())

    async def soft_delete(self, file_id: UUID) -> None:
        await self.session.execute(
            update(ClaimFile)
            .where(ClaimFile.id == file_id)
            .values(deleted_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )

    async def set_status(
        self,
        file_id: UUID,
        status: ClaimFileStatus,
        error_message: Optional[str] = None,
        clear_source: bool = False,
    ) -> None:
        values: dict = {"status": status, "error_message": error_message}
        if clear_source:
            values["source_key"] = None
        await self.session.execute(
            update(ClaimFile)
            .where(ClaimFile.id == file_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
