"""
Pydantic Schemas for Claims.

Request bodies for create / PATCH / transition and the corresponding
response shapes.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from claimflow.core.enums import CareType, ClaimStatus
from claimflow.schemas.claim_file import ClaimFileResponse

Amount = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]


# =============================================================================
# Requests
# =============================================================================


class ClaimCreate(BaseModel):
    """Create a DRAFT claim, optionally attaching staged uploads."""

    model_config = ConfigDict(extra="forbid")

    client_id: UUID
    affiliate_id: UUID = Field(..., description="Submitting affiliate")
    patient_id: UUID = Field(..., description="Beneficiary (affiliate or dependent)")
    description: Optional[str] = Field(None, max_length=2000)
    session_key: Optional[str] = Field(
        None,
        pattern=r"^[a-f0-9]{32}$",
        description="Key of the staged-upload session to attach",
    )


class ClaimUpdate(BaseModel):
    """
    Partial claim update.

    Only keys present in the request body are applied (``exclude_unset``);
    which keys are allowed depends on the claim's status.
    """

    model_config = ConfigDict(extra="forbid")

    # Core
    policy_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=2000)
    care_type: Optional[CareType] = None
    diagnosis: Optional[str] = Field(None, max_length=2000)
    incident_date: Optional[date] = None

    # Submission
    amount_submitted: Optional[Amount] = None
    submitted_date: Optional[date] = None

    # Settlement
    amount_approved: Optional[Amount] = None
    amount_denied: Optional[Amount] = None
    amount_unprocessed: Optional[Amount] = None
    deductible_applied: Optional[Amount] = None
    copay_applied: Optional[Amount] = None
    settlement_date: Optional[date] = None
    settlement_number: Optional[str] = Field(None, max_length=100)
    settlement_notes: Optional[str] = Field(None, max_length=5000)

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class ClaimTransitionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: ClaimStatus = Field(..., description="Target status")
    reason: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=2000)


# =============================================================================
# Responses
# =============================================================================


class ClaimResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    claim_number: int
    status: ClaimStatus

    client_id: UUID
    affiliate_id: UUID
    patient_id: UUID
    policy_id: Optional[UUID] = None

    description: Optional[str] = None
    care_type: Optional[CareType] = None
    diagnosis: Optional[str] = None
    incident_date: Optional[date] = None

    amount_submitted: Optional[Decimal] = None
    submitted_date: Optional[date] = None

    amount_approved: Optional[Decimal] = None
    amount_denied: Optional[Decimal] = None
    amount_unprocessed: Optional[Decimal] = None
    deductible_applied: Optional[Decimal] = None
    copay_applied: Optional[Decimal] = None
    settlement_date: Optional[date] = None
    settlement_number: Optional[str] = None
    settlement_notes: Optional[str] = None

    created_by_id: UUID
    updated_by_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class ClaimHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    from_status: Optional[ClaimStatus] = None
    to_status: ClaimStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_by_id: UUID
    created_at: datetime


class ClaimDetailResponse(ClaimResponse):
    allowed_transitions: list[ClaimStatus] = Field(default_factory=list)
    editable_fields: list[str] = Field(default_factory=list)
    history: list[ClaimHistoryResponse] = Field(default_factory=list)


class ClaimCreateResponse(BaseModel):
    claim: ClaimResponse
    files: list[ClaimFileResponse] = Field(default_factory=list)


class FieldChangeResponse(BaseModel):
    before: Any = None
    after: Any = None


class ClaimUpdateResponse(BaseModel):
    claim: ClaimResponse
    changed_fields: list[str] = Field(default_factory=list)
    changes: dict[str, FieldChangeResponse] = Field(default_factory=dict)


class StatusTransitionResponse(BaseModel):
    from_status: ClaimStatus
    to_status: ClaimStatus
    reason: Optional[str] = None


class ClaimTransitionResponse(BaseModel):
    claim: ClaimResponse
    transition: StatusTransitionResponse


class ClaimListResponse(BaseModel):
    data: list[ClaimResponse]
    total: int
    page: int
    limit: int
    total_pages: int
