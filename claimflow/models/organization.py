"""
Client-side organization models: clients, affiliates, policies and the
agent / client-admin assignments that grant CLIENT-scoped access.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from claimflow.models.base import Base, TimeStampedModel, UUIDModel


class Client(Base, UUIDModel, TimeStampedModel):
    """A corporate client whose employees (affiliates) file claims."""

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Affiliate(Base, UUIDModel, TimeStampedModel):
    """
    Insured person. Primary affiliates have ``primary_affiliate_id`` NULL;
    dependents reference their primary affiliate.
    """

    __tablename__ = "affiliates"

    client_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        comment="Login of a SELF-scoped user, if any",
    )
    primary_affiliate_id: Mapped[Optional[UUID]] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("affiliates.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    document_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_affiliates_client_primary", "client_id", "primary_affiliate_id"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Policy(Base, UUIDModel, TimeStampedModel):
    __tablename__ = "policies"

    client_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    policy_number: Mapped[str] = mapped_column(String(100), nullable=False)
    insurer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# =============================================================================
# Access assignments (CLIENT scope)
# =============================================================================


class Agent(Base, UUIDModel, TimeStampedModel):
    __tablename__ = "agents"

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class AgentClient(Base):
    __tablename__ = "agent_clients"

    agent_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("agents.id", ondelete="CASCADE"),
        primary_key=True,
    )
    client_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        primary_key=True,
    )


class ClientAdmin(Base, UUIDModel, TimeStampedModel):
    __tablename__ = "client_admins"

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ClientAdminClient(Base):
    __tablename__ = "client_admin_clients"

    client_admin_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("client_admins.id", ondelete="CASCADE"),
        primary_key=True,
    )
    client_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        primary_key=True,
    )
