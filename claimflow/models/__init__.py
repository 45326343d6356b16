"""
SQLAlchemy models for the claims backend.

Importing this package registers every table on ``Base.metadata``.
"""

from claimflow.models.base import Base, TimeStampedModel, UUIDModel
from claimflow.models.user import Role, User
from claimflow.models.organization import (
    Affiliate,
    Agent,
    AgentClient,
    Client,
    ClientAdmin,
    ClientAdminClient,
    Policy,
)
from claimflow.models.claim import (
    Claim,
    ClaimFile,
    ClaimHistory,
    ClaimInvoice,
    GlobalCounter,
    PendingClaimFile,
)
from claimflow.models.audit import AuditLog

__all__ = [
    "Base",
    "TimeStampedModel",
    "UUIDModel",
    "Role",
    "User",
    "Affiliate",
    "Agent",
    "AgentClient",
    "Client",
    "ClientAdmin",
    "ClientAdminClient",
    "Policy",
    "Claim",
    "ClaimFile",
    "ClaimHistory",
    "ClaimInvoice",
    "GlobalCounter",
    "PendingClaimFile",
    "AuditLog",
]
