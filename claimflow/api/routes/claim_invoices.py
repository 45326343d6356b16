"""Claim Invoices API Endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from claimflow.api.deps import (
    get_audit_context,
    get_claim_invoices_service,
    require_permissions,
    require_scope,
)
from claimflow.core.enums import Permission, ScopeType
from claimflow.schemas.claim_invoice import (
    ClaimInvoiceCreate,
    ClaimInvoiceResponse,
    ClaimInvoiceUpdate,
    ClaimInvoiceUpdateResponse,
)
from claimflow.services.audit import AuditContext
from claimflow.services.claim_invoices_service import ClaimInvoicesService
from claimflow.services.scope import SessionUser

router = APIRouter(
    prefix="/api/v1/claims/{claim_id}/invoices",
    tags=["claim-invoices"],
    dependencies=[Depends(require_scope(ScopeType.UNLIMITED))],
)


@router.get("", response_model=list[ClaimInvoiceResponse])
async def list_invoices(
    claim_id: UUID,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_READ.value)),  # noqa: ARG001
    service: ClaimInvoicesService = Depends(get_claim_invoices_service),
) -> list[ClaimInvoiceResponse]:
    invoices = await service.list_invoices(claim_id)
    return [ClaimInvoiceResponse.model_validate(i) for i in invoices]


@router.post("", response_model=ClaimInvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    claim_id: UUID,
    body: ClaimInvoiceCreate,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_EDIT.value)),
    service: ClaimInvoicesService = Depends(get_claim_invoices_service),
    context: AuditContext = Depends(get_audit_context),
) -> ClaimInvoiceResponse:
    invoice = await service.create_invoice(user, claim_id, body.to_values(), context)
    return ClaimInvoiceResponse.model_validate(invoice)


@router.patch("/{invoice_id}", response_model=ClaimInvoiceUpdateResponse)
async def update_invoice(
    claim_id: UUID,
    invoice_id: UUID,
    body: ClaimInvoiceUpdate,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_EDIT.value)),
    service: ClaimInvoicesService = Depends(get_claim_invoices_service),
    context: AuditContext = Depends(get_audit_context),
) -> ClaimInvoiceUpdateResponse:
    result = await service.update_invoice(user, claim_id, invoice_id, body.to_patch(), context)
    return ClaimInvoiceUpdateResponse(
        invoice=ClaimInvoiceResponse.model_validate(result.invoice),
        changed_fields=result.changes.fields,
    )


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    claim_id: UUID,
    invoice_id: UUID,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_EDIT.value)),
    service: ClaimInvoicesService = Depends(get_claim_invoices_service),
    context: AuditContext = Depends(get_audit_context),
) -> Response:
    await service.delete_invoice(user, claim_id, invoice_id, context)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
