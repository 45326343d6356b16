"""
Claim models: the claim itself, its append-only history, attached files,
staged (pre-claim) uploads, invoices and the global numbering counter.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from claimflow.core.enums import CareType, ClaimFileStatus, ClaimFileType, ClaimStatus
from claimflow.models.base import Base, TimeStampedModel, UUIDModel, enum_column


class Claim(Base, UUIDModel, TimeStampedModel):
    """
    Insurance claim.

    Field groups (core, submission, settlement) become mandatory as the claim
    advances; see ``claimflow.services.claim_state_machine``.
    """

    __tablename__ = "claims"

    claim_number: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        nullable=False,
        comment="Sequential number from the claim_number global counter",
    )
    status: Mapped[ClaimStatus] = mapped_column(
        enum_column(ClaimStatus, "claim_status"),
        default=ClaimStatus.DRAFT,
        nullable=False,
    )

    # Relationships
    client_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
    )
    affiliate_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("affiliates.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Submitter",
    )
    patient_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("affiliates.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Beneficiary (the affiliate or one of its dependents)",
    )
    policy_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("policies.id", ondelete="RESTRICT"),
        nullable=True,
    )
    created_by_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    updated_by_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Core
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    care_type: Mapped[Optional[CareType]] = mapped_column(
        enum_column(CareType, "care_type"), nullable=True
    )
    diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    incident_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Submission
    amount_submitted: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    submitted_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Settlement
    amount_approved: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    amount_denied: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    amount_unprocessed: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    deductible_applied: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    copay_applied: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    settlement_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    settlement_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    settlement_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    history: Mapped[list["ClaimHistory"]] = relationship(
        back_populates="claim",
        order_by="ClaimHistory.created_at",
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_claims_client_status", "client_id", "status"),
        Index("ix_claims_affiliate", "affiliate_id"),
        Index("ix_claims_patient", "patient_id"),
        Index("ix_claims_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Claim(number={self.claim_number}, status={self.status})>"


class ClaimHistory(Base):
    """Append-only record of every PATCH and status transition."""

    __tablename__ = "claim_history"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    claim_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("claims.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status: Mapped[Optional[ClaimStatus]] = mapped_column(
        enum_column(ClaimStatus, "claim_status"),
        nullable=True,
        comment="NULL on creation",
    )
    to_status: Mapped[ClaimStatus] = mapped_column(
        enum_column(ClaimStatus, "claim_status"), nullable=False
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    claim: Mapped[Claim] = relationship(back_populates="history")


class ClaimFile(Base, UUIDModel, TimeStampedModel):
    """File attached to a claim. Soft-deleted via ``deleted_at``."""

    __tablename__ = "claim_files"

    claim_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("claims.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_type: Mapped[ClaimFileType] = mapped_column(
        enum_column(ClaimFileType, "claim_file_type"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    content_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    source_key: Mapped[Optional[str]] = mapped_column(
        String(500), nullable=True, comment="Staging object key awaiting migration"
    )
    target_key: Mapped[Optional[str]] = mapped_column(
        String(500), nullable=True, comment="Permanent object key"
    )
    status: Mapped[ClaimFileStatus] = mapped_column(
        enum_column(ClaimFileStatus, "claim_file_status"),
        default=ClaimFileStatus.PENDING,
        nullable=False,
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_by_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class PendingClaimFile(Base, UUIDModel):
    """Upload staged before its claim exists, grouped by a client session key."""

    __tablename__ = "pending_claim_files"

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    session_key: Mapped[str] = mapped_column(String(64), nullable=False)
    file_key: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[ClaimFileType] = mapped_column(
        enum_column(ClaimFileType, "claim_file_type"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (Index("ix_pending_claim_files_session", "user_id", "session_key"),)


class ClaimInvoice(Base, UUIDModel, TimeStampedModel):
    __tablename__ = "claim_invoices"

    claim_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("claims.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    provider_name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount_submitted: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )


class GlobalCounter(Base):
    """Named monotonically increasing counters (e.g. ``claim_number``)."""

    __tablename__ = "global_counters"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
