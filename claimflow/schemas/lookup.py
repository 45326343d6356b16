"""Pydantic Schemas for claim form lookups."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ClientOption(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class AffiliateOption(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    document_number: Optional[str] = None
    primary_affiliate_id: Optional[UUID] = None


class PolicyOption(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    policy_number: str
    insurer_name: Optional[str] = None
