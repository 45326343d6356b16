"""Reference-data queries for claim forms (clients, affiliates, patients, policies)."""

from typing import Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.models.organization import Affiliate, Client, Policy


class LookupRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_clients(self, client_ids: Optional[list[UUID]] = None) -> list[Client]:
        """Active clients, optionally limited to ``client_ids``."""
        query = select(Client).where(Client.is_active.is_(True))
        if client_ids is not None:
            query = query.where(Client.id.in_(client_ids))
        result = await self.session.execute(query.order_by(Client.name))
        return list(result.scalars().all())

    async def list_primary_affiliates(
        self,
        client_id: UUID,
        q: Optional[str] = None,
        limit: int = 20,
    ) -> list[Affiliate]:
        query = select(Affiliate).where(
            Affiliate.client_id == client_id,
            Affiliate.primary_affiliate_id.is_(None),
            Affiliate.is_active.is_(True),
        )
        if q and q.strip():
            pattern = f"%{q.strip()}%"
            query = query.where(
                or_(
                    Affiliate.first_name.ilike(pattern),
                    Affiliate.last_name.ilike(pattern),
                    Affiliate.document_number.ilike(pattern),
                )
            )
        result = await self.session.execute(
            query.order_by(Affiliate.last_name, Affiliate.first_name).limit(limit)
        )
        return list(result.scalars().all())

    async def get_active_affiliate(self, affiliate_id: UUID) -> Optional[Affiliate]:
        result = await self.session.execute(
            select(Affiliate).where(Affiliate.id == affiliate_id, Affiliate.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def list_patients(self, affiliate_id: UUID) -> list[Affiliate]:
        """The affiliate itself followed by its active dependents."""
        result = await self.session.execute(
            select(Affiliate)
            .where(
                or_(Affiliate.id == affiliate_id, Affiliate.primary_affiliate_id == affiliate_id),
                Affiliate.is_active.is_(True),
            )
            .order_by(Affiliate.primary_affiliate_id.is_not(None), Affiliate.first_name)
        )
        return list(result.scalars().all())

    async def list_policies(self, client_id: UUID) -> list[Policy]:
        result = await self.session.execute(
            select(Policy)
            .where(Policy.client_id == client_id, Policy.is_active.is_(True))
            .order_by(Policy.policy_number)
        )
        return list(result.scalars().all())
