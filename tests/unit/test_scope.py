"""Scope resolution tests."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from claimflow.core.enums import ScopeType
from claimflow.services.scope import (
    RestrictedToAffiliate,
    RestrictedToClients,
    Unrestricted,
    resolve_scope,
)
from claimflow.utils.errors import AuthorizationError


def _access(client_ids=(), affiliate=None):
    access = AsyncMock()
    access.get_assigned_client_ids.return_value = list(client_ids)
    access.get_affiliate_for_user.return_value = affiliate
    return access


@pytest.mark.unit
class TestResolveScope:
    async def test_unlimited_is_unrestricted(self, mock_db_session, user_factory):
        scope = await resolve_scope(mock_db_session, user_factory(ScopeType.UNLIMITED))
        assert scope == Unrestricted()

    async def test_client_scope_lists_assigned_clients(self, mock_db_session, user_factory):
        a, b = uuid4(), uuid4()
        with patch("claimflow.services.scope.AccessRepository", return_value=_access([a, b])):
            scope = await resolve_scope(mock_db_session, user_factory(ScopeType.CLIENT))
        assert scope == RestrictedToClients((a, b))

    async def test_client_scope_narrows_to_requested_client(self, mock_db_session, user_factory):
        a, b = uuid4(), uuid4()
        with patch("claimflow.services.scope.AccessRepository", return_value=_access([a, b])):
            scope = await resolve_scope(mock_db_session, user_factory(ScopeType.CLIENT), b)
        assert scope == RestrictedToClients((b,))

    async def test_client_scope_rejects_unassigned_client(self, mock_db_session, user_factory):
        with patch("claimflow.services.scope.AccessRepository", return_value=_access([uuid4()])):
            with pytest.raises(AuthorizationError, match="No access to this client"):
                await resolve_scope(mock_db_session, user_factory(ScopeType.CLIENT), uuid4())

    async def test_client_scope_without_assignments_sees_nothing(self, mock_db_session, user_factory):
        with patch("claimflow.services.scope.AccessRepository", return_value=_access([])):
            scope = await resolve_scope(mock_db_session, user_factory(ScopeType.CLIENT))
        assert scope == RestrictedToClients(())

    async def test_self_scope_uses_own_affiliate(self, mock_db_session, user_factory):
        affiliate = SimpleNamespace(id=uuid4())
        with patch(
            "claimflow.services.scope.AccessRepository",
            return_value=_access(affiliate=affiliate),
        ):
            scope = await resolve_scope(mock_db_session, user_factory(ScopeType.SELF))
        assert scope == RestrictedToAffiliate(affiliate.id)

    async def test_self_scope_without_profile_is_denied(self, mock_db_session, user_factory):
        with patch("claimflow.services.scope.AccessRepository", return_value=_access()):
            with pytest.raises(AuthorizationError, match="No affiliate profile"):
                await resolve_scope(mock_db_session, user_factory(ScopeType.SELF))


@pytest.mark.unit
def test_session_user_permissions(user_factory):
    user = user_factory(ScopeType.CLIENT, permissions={"claims:read"})
    assert user.has_permission("claims:read")
    assert not user.has_permission("claims:edit")

