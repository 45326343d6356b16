"""
FastAPI Dependencies
Authentication, permission / scope guards and service wiring
Source: https://fastapi.tiangolo.com/tutorial/dependencies/
"""

from collections.abc import Callable
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.core.enums import ScopeType
from claimflow.db.connection import get_session
from claimflow.repositories.access import AccessRepository
from claimflow.services.audit import AuditContext
from claimflow.services.claim_audit_service import ClaimAuditService
from claimflow.services.claim_files_service import ClaimFilesService
from claimflow.services.claim_invoices_service import ClaimInvoicesService
from claimflow.services.claims_service import ClaimsService
from claimflow.services.lookups_service import LookupsService
from claimflow.services.scope import SessionUser
from claimflow.utils.auth import decode_token
from claimflow.utils.errors import AuthenticationError, AuthorizationError

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> SessionUser:
    """
    Resolve the Bearer token to an active user and its role.

    Raises:
        AuthenticationError: Missing/invalid token, unknown or inactive user
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Invalid token")
    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    user_id_str: str | None = payload.get("sub")
    if user_id_str is None:
        raise AuthenticationError("Invalid token payload")
    try:
        user_id = UUID(user_id_str)
    except ValueError as err:
        raise AuthenticationError("Invalid user ID in token") from err

    user = await AccessRepository(session).get_active_user(user_id)
    if user is None:
        raise AuthenticationError("User not found or inactive")

    return SessionUser(
        id=user.id,
        scope_type=user.role.scope_type,
        permissions=frozenset(user.role.permissions or ()),
        email=user.email,
    )


def require_permissions(*codes: str) -> Callable:
    """
    Dependency factory requiring every permission in ``codes``.

    Usage:
        @router.get("/claims")
        async def list_claims(user: SessionUser = Depends(require_permissions("claims:read"))):
            ...
    """

    async def permission_checker(
        user: SessionUser = Depends(get_current_user),
    ) -> SessionUser:
        missing = [code for code in codes if not user.has_permission(code)]
        if missing:
            raise AuthorizationError(f"Permission denied: {', '.join(missing)} required")
        return user

    return permission_checker


def require_scope(*scope_types: ScopeType) -> Callable:
    """Dependency factory requiring the caller's role scope to be one of ``scope_types``."""

    async def scope_checker(
        user: SessionUser = Depends(get_current_user),
    ) -> SessionUser:
        if user.scope_type not in scope_types:
            raise AuthorizationError("Your role cannot perform this action")
        return user

    return scope_checker


def get_audit_context(request: Request) -> AuditContext:
    return AuditContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        request_id=request.headers.get("x-request-id"),
    )


# =============================================================================
# Services
# =============================================================================


def get_claims_service(session: AsyncSession = Depends(get_session)) -> ClaimsService:
    return ClaimsService(session)


def get_claim_files_service(session: AsyncSession = Depends(get_session)) -> ClaimFilesService:
    return ClaimFilesService(session)


def get_claim_invoices_service(
    session: AsyncSession = Depends(get_session),
) -> ClaimInvoicesService:
    return ClaimInvoicesService(session)


def get_claim_audit_service(session: AsyncSession = Depends(get_session)) -> ClaimAuditService:
    return ClaimAuditService(session)


def get_lookups_service(session: AsyncSession = Depends(get_session)) -> LookupsService:
    return LookupsService(session)
