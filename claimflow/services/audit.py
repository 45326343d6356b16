"""
Audit log sink.

Writes happen in a dedicated session after the business transaction has
committed. Failures are logged and never reach the caller.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.core.enums import AuditAction, AuditResourceType
from claimflow.models.audit import AuditLog
from claimflow.repositories.audit import AuditRepository
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AuditContext:
    """Request attributes copied onto every audit row."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None


@dataclass
class AuditEvent:
    action: AuditAction
    resource: AuditResourceType
    resource_id: str
    user_id: Optional[UUID] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    context: AuditContext = field(default_factory=AuditContext)


class AuditService:
    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        if session_factory is None:
            from claimflow.db.connection import get_session_maker

            session_factory = get_session_maker()
        self.session_factory = session_factory

    async def log(self, event: AuditEvent) -> None:
        """Persist ``event``; never raises."""
        try:
            async with self.session_factory() as session:
                await AuditRepository(session).add(
                    AuditLog(
                        user_id=event.user_id,
                        action=event.action,
                        resource=event.resource.value,
                        resource_id=event.resource_id,
                        metadata_=event.metadata or None,
                        ip_address=event.context.ip_address,
                        user_agent=event.context.user_agent,
                        request_id=event.context.request_id,
                    )
                )
                await session.commit()
        except Exception as e:
            logger.opt(exception=e).error(
                f"Audit log failed: {event.action.value} {event.resource.value}/{event.resource_id}"
            )
