"""Audit log persistence."""

from typing import Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.core.enums import AuditResourceType
from claimflow.models.audit import AuditLog


def _claim_trail_condition(claim_id: UUID):  # type: ignore[no-untyped-def]
    """The claim itself, plus files and invoices tagged with its id."""
    return or_(
        and_(
            AuditLog.resource == AuditResourceType.CLAIM.value,
            AuditLog.resource_id == str(claim_id),
        ),
        and_(
            AuditLog.resource.in_(
                [AuditResourceType.CLAIM_FILE.value, AuditResourceType.CLAIM_INVOICE.value]
            ),
            AuditLog.metadata_["claim_id"].astext == str(claim_id),
        ),
    )


class AuditRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, entry: AuditLog) -> AuditLog:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_claim(
        self,
        claim_id: UUID,
        limit: int,
        cursor: Optional[UUID] = None,
    ) -> tuple[list[AuditLog], bool]:
        """
        Newest-first page of a claim's audit trail.

        ``cursor`` is the id of the last entry of the previous page. Returns
        the page and whether more entries follow.
        """
        query = select(AuditLog).where(_claim_trail_condition(claim_id))

        if cursor is not None:
            anchor = (
                await self.session.execute(
                    select(AuditLog.created_at, AuditLog.id).where(AuditLog.id == cursor)
                )
            ).one_or_none()
            if anchor is not None:
                query = query.where(
                    tuple_(AuditLog.created_at, AuditLog.id) < tuple_(anchor[0], anchor[1])
                )

        result = await self.session.execute(
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit + 1)
        )
        rows = list(result.scalars().all())
        return rows[:limit], len(rows) > limit

    async def count_for_claim(self, claim_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(AuditLog).where(_claim_trail_condition(claim_id))
        )
        return int(result.scalar_one())
