"""Read side of the audit log for a single claim."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.models.audit import AuditLog
from claimflow.repositories.audit import AuditRepository
from claimflow.repositories.claims import ClaimRepository
from claimflow.utils.errors import NotFoundError

MAX_AUDIT_PAGE_SIZE = 100


@dataclass
class AuditPage:
    data: list[AuditLog]
    has_more: bool
    next_cursor: Optional[UUID] = None
    total: Optional[int] = None


class ClaimAuditService:
    def __init__(
        self,
        session: AsyncSession,
        claims: Optional[ClaimRepository] = None,
        audit_logs: Optional[AuditRepository] = None,
    ):
        self.claims = claims or ClaimRepository(session)
        self.audit_logs = audit_logs or AuditRepository(session)

    async def list_claim_audit(
        self,
        claim_id: UUID,
        limit: int = 20,
        cursor: Optional[UUID] = None,
        include_total: bool = False,
    ) -> AuditPage:
        """Entries for the claim and its files/invoices, newest first."""
        if not await self.claims.claim_exists(claim_id):
            raise NotFoundError("Claim not found")

        limit = max(1, min(limit, MAX_AUDIT_PAGE_SIZE))
        rows, has_more = await self.audit_logs.list_for_claim(claim_id, limit, cursor)
        total = await self.audit_logs.count_for_claim(claim_id) if include_total else None
        return AuditPage(
            data=rows,
            has_more=has_more,
            next_cursor=rows[-1].id if has_more and rows else None,
            total=total,
        )
