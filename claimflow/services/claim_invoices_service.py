"""Claim Invoices Service: CRUD on invoices attached to a claim."""

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.core.enums import AuditAction, AuditResourceType
from claimflow.models.claim import ClaimInvoice
from claimflow.repositories.claim_invoices import ClaimInvoiceRepository
from claimflow.repositories.claims import ClaimRepository
from claimflow.services.audit import AuditContext, AuditEvent, AuditService
from claimflow.services.scope import SessionUser
from claimflow.utils.diff import ChangeSet, compute_changes
from claimflow.utils.errors import NotFoundError, ValidationError
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)

INVOICE_FIELDS = ("invoice_number", "provider_name", "amount_submitted")


@dataclass
class InvoiceUpdateResult:
    invoice: ClaimInvoice
    changes: ChangeSet


class ClaimInvoicesService:
    def __init__(
        self,
        session: AsyncSession,
        audit: Optional[AuditService] = None,
        claims: Optional[ClaimRepository] = None,
        invoices: Optional[ClaimInvoiceRepository] = None,
    ):
        self.session = session
        self.audit = audit or AuditService()
        self.claims = claims or ClaimRepository(session)
        self.invoices = invoices or ClaimInvoiceRepository(session)

    async def _require_claim(self, claim_id: UUID) -> None:
        if not await self.claims.claim_exists(claim_id):
            raise NotFoundError("Claim not found")

    async def _require_invoice(self, claim_id: UUID, invoice_id: UUID) -> ClaimInvoice:
        invoice = await self.invoices.get(claim_id, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        return invoice

    async def _audit(
        self,
        action: AuditAction,
        user: SessionUser,
        claim_id: UUID,
        invoice_id: UUID,
        metadata: dict[str, Any],
        context: Optional[AuditContext],
    ) -> None:
        await self.audit.log(
            AuditEvent(
                action=action,
                resource=AuditResourceType.CLAIM_INVOICE,
                resource_id=str(invoice_id),
                user_id=user.id,
                metadata={"claim_id": str(claim_id), **metadata},
                context=context or AuditContext(),
            )
        )

    async def list_invoices(self, claim_id: UUID) -> list[ClaimInvoice]:
        await self._require_claim(claim_id)
        return await self.invoices.list_for_claim(claim_id)

    async def create_invoice(
        self,
        user: SessionUser,
        claim_id: UUID,
        values: dict[str, Any],
        context: Optional[AuditContext] = None,
    ) -> ClaimInvoice:
        await self._require_claim(claim_id)
        invoice = await self.invoices.add(
            ClaimInvoice(id=uuid4(), claim_id=claim_id, created_by_id=user.id, **values)
        )
        await self.session.commit()

        await self._audit(
            AuditAction.CREATE,
            user,
            claim_id,
            invoice.id,
            {"invoice_number": invoice.invoice_number},
            context,
        )
        logger.info(f"User {user.id} added invoice {invoice.id} to claim {claim_id}")
        return invoice

    async def update_invoice(
        self,
        user: SessionUser,
        claim_id: UUID,
        invoice_id: UUID,
        patch: dict[str, Any],
        context: Optional[AuditContext] = None,
    ) -> InvoiceUpdateResult:
        await self._require_claim(claim_id)
        invoice = await self._require_invoice(claim_id, invoice_id)
        if not patch:
            raise ValidationError("No fields to update")

        before = {name: getattr(invoice, name) for name in INVOICE_FIELDS}
        changes = compute_changes(before, patch)

        if changes:
            await self.invoices.update(invoice_id, {k: patch[k] for k in changes.fields})
            await self.session.commit()
            invoice = await self._require_invoice(claim_id, invoice_id)
            await self._audit(
                AuditAction.UPDATE, user, claim_id, invoice_id, changes.to_dict(), context
            )
            logger.info(f"User {user.id} updated invoice {invoice_id}: {changes.fields}")

        return InvoiceUpdateResult(invoice=invoice, changes=changes)

    async def delete_invoice(
        self,
        user: SessionUser,
        claim_id: UUID,
        invoice_id: UUID,
        context: Optional[AuditContext] = None,
    ) -> None:
        await self._require_claim(claim_id)
        invoice = await self._require_invoice(claim_id, invoice_id)
        await self.invoices.delete(invoice_id)
        await self.session.commit()

        await self._audit(
            AuditAction.DELETE,
            user,
            claim_id,
            invoice_id,
            {"invoice_number": invoice.invoice_number},
            context,
        )
        logger.info(f"User {user.id} deleted invoice {invoice_id} of claim {claim_id}")
