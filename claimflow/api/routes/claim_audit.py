"""Claim audit trail endpoint."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from claimflow.api.deps import get_claim_audit_service, require_permissions, require_scope
from claimflow.core.enums import Permission, ScopeType
from claimflow.schemas.audit import AuditLogPage, AuditLogResponse
from claimflow.services.claim_audit_service import MAX_AUDIT_PAGE_SIZE, ClaimAuditService

router = APIRouter(
    prefix="/api/v1/claims",
    tags=["claim-audit"],
)


@router.get(
    "/{claim_id}/audit",
    response_model=AuditLogPage,
    dependencies=[
        Depends(require_scope(ScopeType.UNLIMITED)),
        Depends(require_permissions(Permission.CLAIMS_READ.value)),
    ],
)
async def list_claim_audit(
    claim_id: UUID,
    cursor: Optional[UUID] = None,
    limit: int = Query(20, ge=1, le=MAX_AUDIT_PAGE_SIZE),
    include_total: bool = False,
    service: ClaimAuditService = Depends(get_claim_audit_service),
) -> AuditLogPage:
    """Audit entries for the claim and its files and invoices, newest first."""
    page = await service.list_claim_audit(claim_id, limit, cursor, include_total)
    return AuditLogPage(
        data=[AuditLogResponse.model_validate(entry) for entry in page.data],
        has_more=page.has_more,
        next_cursor=page.next_cursor,
        total=page.total,
    )
