"""Reference data for the claim form, filtered by the caller's scope."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.core.enums import ScopeType
from claimflow.models.organization import Affiliate, Client, Policy
from claimflow.repositories.access import AccessRepository
from claimflow.repositories.lookups import LookupRepository
from claimflow.services.scope import SessionUser
from claimflow.utils.errors import AuthorizationError, NotFoundError


class LookupsService:
    def __init__(
        self,
        session: AsyncSession,
        lookups: Optional[LookupRepository] = None,
        access: Optional[AccessRepository] = None,
    ):
        self.lookups = lookups or LookupRepository(session)
        self.access = access or AccessRepository(session)

    async def _check_client_access(self, user: SessionUser, client_id: UUID) -> None:
        if user.scope_type == ScopeType.UNLIMITED:
            return
        if user.scope_type == ScopeType.CLIENT:
            if await self.access.has_client_access(user.id, client_id):
                return
        else:
            own = await self.access.get_affiliate_for_user(user.id)
            if own is not None and own.client_id == client_id:
                return
        raise AuthorizationError("No access to this client")

    async def list_clients(self, user: SessionUser) -> list[Client]:
        if user.scope_type == ScopeType.UNLIMITED:
            return await self.lookups.list_clients()
        if user.scope_type == ScopeType.CLIENT:
            client_ids = await self.access.get_assigned_client_ids(user.id)
            return await self.lookups.list_clients(client_ids)
        own = await self.access.get_affiliate_for_user(user.id)
        if own is None:
            return []
        return await self.lookups.list_clients([own.client_id])

    async def list_affiliates(
        self,
        user: SessionUser,
        client_id: UUID,
        q: Optional[str] = None,
        limit: int = 20,
    ) -> list[Affiliate]:
        await self._check_client_access(user, client_id)
        return await self.lookups.list_primary_affiliates(client_id, q, limit)

    async def list_patients(self, user: SessionUser, affiliate_id: UUID) -> list[Affiliate]:
        affiliate = await self.lookups.get_active_affiliate(affiliate_id)
        if affiliate is None:
            raise NotFoundError("Affiliate not found")
        await self._check_client_access(user, affiliate.client_id)
        return await self.lookups.list_patients(affiliate_id)

    async def list_policies(self, user: SessionUser, client_id: UUID) -> list[Policy]:
        if user.scope_type != ScopeType.UNLIMITED:
            raise AuthorizationError("Policy lookup requires unlimited scope")
        return await self.lookups.list_policies(client_id)
