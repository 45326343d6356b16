"""
Scope resolution.

Turns a caller's role scope into a filter over claims:

    UNLIMITED -> Unrestricted()
    CLIENT    -> RestrictedToClients(assigned client ids)
    SELF      -> RestrictedToAffiliate(caller's own affiliate id)
"""

from dataclasses import dataclass, field
from typing import Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.core.enums import ScopeType
from claimflow.repositories.access import AccessRepository
from claimflow.utils.errors import AuthorizationError
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionUser:
    """Authenticated caller as seen by the services."""

    id: UUID
    scope_type: ScopeType
    permissions: frozenset[str] = field(default_factory=frozenset)
    email: Optional[str] = None

    def has_permission(self, code: str) -> bool:
        return code in self.permissions


@dataclass(frozen=True)
class Unrestricted:
    pass


@dataclass(frozen=True)
class RestrictedToClients:
    client_ids: tuple[UUID, ...]


@dataclass(frozen=True)
class RestrictedToAffiliate:
    affiliate_id: UUID


ScopeFilter = Union[Unrestricted, RestrictedToClients, RestrictedToAffiliate]


async def resolve_scope(
    session: AsyncSession,
    user: SessionUser,
    requested_client_id: Optional[UUID] = None,
) -> ScopeFilter:
    """
    Compute the claim filter for ``user``.

    Raises:
        AuthorizationError: CLIENT caller asking for an unassigned client, or
            SELF caller without an affiliate profile.
    """
    if user.scope_type == ScopeType.UNLIMITED:
        return Unrestricted()

    access = AccessRepository(session)

    if user.scope_type == ScopeType.CLIENT:
        client_ids = await access.get_assigned_client_ids(user.id)
        if requested_client_id is not None:
            if requested_client_id not in client_ids:
                logger.warning(f"User {user.id} denied access to client {requested_client_id}")
                raise AuthorizationError("No access to this client")
            return RestrictedToClients((requested_client_id,))
        return RestrictedToClients(tuple(client_ids))

    affiliate = await access.get_affiliate_for_user(user.id)
    if affiliate is None:
        raise AuthorizationError("No affiliate profile found")
    return RestrictedToAffiliate(affiliate.id)

