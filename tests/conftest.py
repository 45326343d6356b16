"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

import os

# Settings are read at import time; configure before importing claimflow
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-claimflow-unit-tests-0123456789")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import UTC, datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

import claimflow.models  # noqa: F401  (registers all mappers)
from claimflow.core.enums import CareType, ClaimStatus, Permission, ScopeType
from claimflow.services.scope import SessionUser

ALL_PERMISSIONS = frozenset(p.value for p in Permission)


def make_user(scope_type: ScopeType = ScopeType.UNLIMITED, permissions=ALL_PERMISSIONS) -> SessionUser:
    return SessionUser(
        id=uuid4(),
        scope_type=scope_type,
        permissions=frozenset(permissions),
        email="staff@claims.local",
    )


def make_claim(status: ClaimStatus = ClaimStatus.DRAFT, **overrides) -> SimpleNamespace:
    """A claim-shaped object with every attribute the services and schemas read."""
    now = datetime.now(UTC)
    values = {
        "id": uuid4(),
        "claim_number": 1001,
        "status": status,
        "client_id": uuid4(),
        "affiliate_id": uuid4(),
        "patient_id": uuid4(),
        "policy_id": None,
        "description": None,
        "care_type": None,
        "diagnosis": None,
        "incident_date": None,
        "amount_submitted": None,
        "submitted_date": None,
        "amount_approved": None,
        "amount_denied": None,
        "amount_unprocessed": None,
        "deductible_applied": None,
        "copay_applied": None,
        "settlement_date": None,
        "settlement_number": None,
        "settlement_notes": None,
        "created_by_id": uuid4(),
        "updated_by_id": None,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def complete_core_fields() -> dict:
    return {
        "policy_id": uuid4(),
        "description": "Outpatient consultation",
        "care_type": CareType.AMBULATORY,
        "diagnosis": "J06.9",
        "incident_date": datetime(2024, 3, 1).date(),
    }


def complete_submission_fields() -> dict:
    return {
        "amount_submitted": Decimal("150.00"),
        "submitted_date": datetime(2024, 3, 5).date(),
    }


@pytest.fixture
def staff_user() -> SessionUser:
    return make_user(ScopeType.UNLIMITED)


@pytest.fixture
def user_factory():
    return make_user


@pytest.fixture
def claim_factory():
    return make_claim


@pytest.fixture
def core_fields() -> dict:
    return complete_core_fields()


@pytest.fixture
def submission_fields() -> dict:
    return complete_submission_fields()


@pytest.fixture
def mock_db_session():
    """Create a mock database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def mock_audit():
    audit = MagicMock()
    audit.log = AsyncMock()
    return audit


@pytest.fixture
def mock_jobs():
    jobs = MagicMock()
    jobs.enqueue = MagicMock(side_effect=lambda job_type, payload, job_id, countdown=None: job_id)
    return jobs


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
