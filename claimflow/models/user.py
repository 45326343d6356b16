"""
User and Role models.

A role carries the scope type (how broad the user's claim visibility is)
and a flat list of permission codes such as ``claims:read``.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.dialects.postgresql import ARRAY, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from claimflow.core.enums import ScopeType
from claimflow.models.base import Base, TimeStampedModel, UUIDModel, enum_column


class Role(Base, UUIDModel, TimeStampedModel):
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    scope_type: Mapped[ScopeType] = mapped_column(
        enum_column(ScopeType, "scope_type"),
        nullable=False,
        comment="Breadth of claims visible to holders of this role",
    )
    permissions: Mapped[list[str]] = mapped_column(
        ARRAY(String(100)),
        nullable=False,
        default=list,
        comment="Permission codes (resource:action)",
    )


class User(Base, UUIDModel, TimeStampedModel):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    role_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("roles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    role: Mapped[Role] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
