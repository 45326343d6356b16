"""Queries backing scope resolution and client access checks."""

from typing import Optional
from uuid import UUID

from sqlalchemy import exists, select, union
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.models.organization import (
    Affiliate,
    Agent,
    AgentClient,
    ClientAdmin,
    ClientAdminClient,
)
from claimflow.models.user import User


class AccessRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_user(self, user_id: UUID) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.id == user_id, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_affiliate_for_user(self, user_id: UUID) -> Optional[Affiliate]:
        """Active affiliate profile linked to a login, if any."""
        result = await self.session.execute(
            select(Affiliate).where(Affiliate.user_id == user_id, Affiliate.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_assigned_client_ids(self, user_id: UUID) -> list[UUID]:
        """Clients assigned to the user as agent or as client admin."""
        via_agent = (
            select(AgentClient.client_id)
            .join(Agent, Agent.id == AgentClient.agent_id)
            .where(Agent.user_id == user_id, Agent.is_active.is_(True))
        )
        via_admin = (
            select(ClientAdminClient.client_id)
            .join(ClientAdmin, ClientAdmin.id == ClientAdminClient.client_admin_id)
            .where(ClientAdmin.user_id == user_id, ClientAdmin.is_active.is_(True))
        )
        result = await self.session.execute(union(via_agent, via_admin))
        return [row[0] for row in result.all()]

    async def has_client_access(self, user_id: UUID, client_id: UUID) -> bool:
        agent_grant = exists(
            select(AgentClient.client_id)
            .join(Agent, Agent.id == AgentClient.agent_id)
            .where(
                Agent.user_id == user_id,
                Agent.is_active.is_(True),
                AgentClient.client_id == client_id,
            )
        )
        admin_grant = exists(
            select(ClientAdminClient.client_id)
            .join(ClientAdmin, ClientAdmin.id == ClientAdminClient.client_admin_id)
            .where(
                ClientAdmin.user_id == user_id,
                ClientAdmin.is_active.is_(True),
                ClientAdminClient.client_id == client_id,
            )
        )
        result = await self.session.execute(select(agent_grant | admin_grant))
        return bool(result.scalar())
