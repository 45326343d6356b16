"""Claim invoice persistence."""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.models.claim import ClaimInvoice


class ClaimInvoiceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_claim(self, claim_id: UUID) -> list[ClaimInvoice]:
        result = await self.session.execute(
            select(ClaimInvoice)
            .where(ClaimInvoice.claim_id == claim_id)
            .order_by(ClaimInvoice.created_at)
        )
        return list(result.scalars().all())

    async def get(self, claim_id: UUID, invoice_id: UUID) -> Optional[ClaimInvoice]:
        result = await self.session.execute(
            select(ClaimInvoice)
            .where(ClaimInvoice.id == invoice_id, ClaimInvoice.claim_id == claim_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, invoice: ClaimInvoice) -> ClaimInvoice:
        self.session.add(invoice)
        await self.session.flush()
        return invoice

    async def update(self, invoice_id: UUID, values: dict[str, Any]) -> None:
        await self.session.execute(
            update(ClaimInvoice)
            .where(ClaimInvoice.id == invoice_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def delete(self, invoice_id: UUID) -> int:
        result = await self.session.execute(
            delete(ClaimInvoice)
            .where(ClaimInvoice.id == invoice_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
