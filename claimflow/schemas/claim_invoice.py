"""Pydantic Schemas for claim invoices."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

AMOUNT_PATTERN = r"^\d+(\.\d{1,2})?$"


class ClaimInvoiceCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    invoice_number: str = Field(..., min_length=1, max_length=100)
    provider_name: str = Field(..., min_length=1, max_length=255)
    amount_submitted: str = Field(..., pattern=AMOUNT_PATTERN, description="Decimal amount, e.g. 150.00")

    def to_values(self) -> dict[str, Any]:
        values = self.model_dump()
        values["amount_submitted"] = Decimal(values["amount_submitted"])
        return values


class ClaimInvoiceUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    invoice_number: Optional[str] = Field(None, min_length=1, max_length=100)
    provider_name: Optional[str] = Field(None, min_length=1, max_length=255)
    amount_submitted: Optional[str] = Field(None, pattern=AMOUNT_PATTERN)

    def to_patch(self) -> dict[str, Any]:
        """Present, non-null keys (all invoice columns are NOT NULL)."""
        patch = self.model_dump(exclude_unset=True, exclude_none=True)
        if "amount_submitted" in patch:
            patch["amount_submitted"] = Decimal(patch["amount_submitted"])
        return patch


class ClaimInvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    claim_id: UUID
    invoice_number: str
    provider_name: str
    amount_submitted: Decimal
    created_by_id: UUID
    created_at: datetime


class ClaimInvoiceUpdateResponse(BaseModel):
    invoice: ClaimInvoiceResponse
    changed_fields: list[str] = Field(default_factory=list)
