"""
Claims API Endpoints.

Provides:
- Claim creation (DRAFT) with staged-file attachment
- Scoped listing and detail
- Field updates (PATCH) gated by status
- Status transitions
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from claimflow.api.config import settings
from claimflow.api.deps import (
    get_audit_context,
    get_claims_service,
    require_permissions,
    require_scope,
)
from claimflow.core.enums import CareType, ClaimStatus, Permission, ScopeType
from claimflow.models.claim import Claim
from claimflow.repositories.claims import ClaimFilters
from claimflow.schemas.claim import (
    ClaimCreate,
    ClaimCreateResponse,
    ClaimDetailResponse,
    ClaimHistoryResponse,
    ClaimListResponse,
    ClaimResponse,
    ClaimTransitionRequest,
    ClaimTransitionResponse,
    ClaimUpdate,
    ClaimUpdateResponse,
    FieldChangeResponse,
    StatusTransitionResponse,
)
from claimflow.schemas.claim_file import ClaimFileResponse
from claimflow.services import claim_state_machine as sm
from claimflow.services.audit import AuditContext
from claimflow.services.claims_service import ClaimsService
from claimflow.services.scope import SessionUser

router = APIRouter(
    prefix="/api/v1/claims",
    tags=["claims"],
)


def _detail(claim: Claim, history: list) -> ClaimDetailResponse:
    base = ClaimResponse.model_validate(claim).model_dump()
    return ClaimDetailResponse(
        **base,
        allowed_transitions=sm.get_allowed_transitions(claim.status),
        editable_fields=list(sm.get_editable_fields(claim.status)),
        history=[ClaimHistoryResponse.model_validate(entry) for entry in history],
    )


@router.post(
    "",
    response_model=ClaimCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_claim(
    body: ClaimCreate,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_CREATE.value)),
    service: ClaimsService = Depends(get_claims_service),
    context: AuditContext = Depends(get_audit_context),
) -> ClaimCreateResponse:
    """Create a claim in DRAFT status."""
    result = await service.create_claim(user, body, context)
    return ClaimCreateResponse(
        claim=ClaimResponse.model_validate(result.claim),
        files=[ClaimFileResponse.model_validate(f) for f in result.files],
    )


@router.get("", response_model=ClaimListResponse)
async def list_claims(
    client_id: Optional[UUID] = None,
    affiliate_id: Optional[UUID] = None,
    patient_id: Optional[UUID] = None,
    policy_id: Optional[UUID] = None,
    created_by_id: Optional[UUID] = None,
    status_filter: Optional[list[ClaimStatus]] = Query(None, alias="status"),
    care_type: Optional[CareType] = None,
    search: Optional[str] = Query(None, max_length=200),
    created_from: Optional[date] = None,
    created_to: Optional[date] = None,
    submitted_from: Optional[date] = None,
    submitted_to: Optional[date] = None,
    settlement_from: Optional[date] = None,
    settlement_to: Optional[date] = None,
    incident_from: Optional[date] = None,
    incident_to: Optional[date] = None,
    amount_submitted_min: Optional[Decimal] = None,
    amount_submitted_max: Optional[Decimal] = None,
    amount_approved_min: Optional[Decimal] = None,
    amount_approved_max: Optional[Decimal] = None,
    amount_denied_min: Optional[Decimal] = None,
    amount_denied_max: Optional[Decimal] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.CLAIMS_PAGE_SIZE, ge=1, le=settings.CLAIMS_MAX_PAGE_SIZE),
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_READ.value)),
    service: ClaimsService = Depends(get_claims_service),
) -> ClaimListResponse:
    """List claims visible to the caller."""
    filters = ClaimFilters(
        client_id=client_id,
        affiliate_id=affiliate_id,
        patient_id=patient_id,
        policy_id=policy_id,
        created_by_id=created_by_id,
        statuses=status_filter or [],
        care_type=care_type,
        search=search,
        created_from=created_from,
        created_to=created_to,
        submitted_from=submitted_from,
        submitted_to=submitted_to,
        settlement_from=settlement_from,
        settlement_to=settlement_to,
        incident_from=incident_from,
        incident_to=incident_to,
        amount_submitted_min=amount_submitted_min,
        amount_submitted_max=amount_submitted_max,
        amount_approved_min=amount_approved_min,
        amount_approved_max=amount_approved_max,
        amount_denied_min=amount_denied_min,
        amount_denied_max=amount_denied_max,
    )
    result = await service.list_claims(user, filters, page=page, limit=limit)
    return ClaimListResponse(
        data=[ClaimResponse.model_validate(c) for c in result.data],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get("/{claim_id}", response_model=ClaimDetailResponse)
async def get_claim(
    claim_id: UUID,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_READ.value)),
    service: ClaimsService = Depends(get_claims_service),
) -> ClaimDetailResponse:
    detail = await service.get_claim(user, claim_id)
    return _detail(detail.claim, detail.history)


@router.patch(
    "/{claim_id}",
    response_model=ClaimUpdateResponse,
    dependencies=[Depends(require_scope(ScopeType.UNLIMITED))],
)
async def update_claim(
    claim_id: UUID,
    body: ClaimUpdate,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_EDIT.value)),
    service: ClaimsService = Depends(get_claims_service),
    context: AuditContext = Depends(get_audit_context),
) -> ClaimUpdateResponse:
    """
    Update claim fields without changing status.

    Allowed keys depend on the current status; see ``editable_fields`` in
    the claim detail.
    """
    result = await service.update_claim(user, claim_id, body.to_patch(), context)
    return ClaimUpdateResponse(
        claim=ClaimResponse.model_validate(result.claim),
        changed_fields=result.changes.fields,
        changes={
            name: FieldChangeResponse(before=change.before, after=change.after)
            for name, change in result.changes.changes.items()
        },
    )


@router.post(
    "/{claim_id}/transition",
    response_model=ClaimTransitionResponse,
    dependencies=[Depends(require_scope(ScopeType.UNLIMITED))],
)
async def transition_claim(
    claim_id: UUID,
    body: ClaimTransitionRequest,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_EDIT.value)),
    service: ClaimsService = Depends(get_claims_service),
    context: AuditContext = Depends(get_audit_context),
) -> ClaimTransitionResponse:
    """Move a claim to another status. Returns 409 if the status changed concurrently."""
    result = await service.transition_claim(
        user,
        claim_id,
        body.status,
        reason=body.reason,
        notes=body.notes,
        context=context,
    )
    return ClaimTransitionResponse(
        claim=ClaimResponse.model_validate(result.claim),
        transition=StatusTransitionResponse(
            from_status=result.transition.from_status,
            to_status=result.transition.to_status,
            reason=result.transition.reason,
        ),
    )
