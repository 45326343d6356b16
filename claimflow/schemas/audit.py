"""Pydantic Schemas for the claim audit trail."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from claimflow.core.enums import AuditAction


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    created_at: datetime
    user_id: Optional[UUID] = None
    action: AuditAction
    resource: str
    resource_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = Field(None, validation_alias="metadata_")
    ip_address: Optional[str] = None


class AuditLogPage(BaseModel):
    data: list[AuditLogResponse]
    has_more: bool
    next_cursor: Optional[UUID] = None
    total: Optional[int] = None
