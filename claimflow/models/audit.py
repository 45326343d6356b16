"""
Audit log model.

Rows are written by ``claimflow.services.audit.AuditService`` outside the
business transaction they describe.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from claimflow.core.enums import AuditAction
from claimflow.models.base import Base, enum_column


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        nullable=True,
        index=True,
        comment="User ID (null for system actions)",
    )
    action: Mapped[AuditAction] = mapped_column(
        enum_column(AuditAction, "audit_action"), nullable=False
    )
    resource: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="claim, claim_file, claim_invoice"
    )
    resource_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSONB, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    request_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (Index("ix_audit_logs_resource", "resource", "resource_id"),)
