"""
Claim persistence: point reads, scoped listing, counter increment,
conditional status update and history rows.
"""

import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from claimflow.core.enums import CareType, ClaimStatus
from claimflow.models.claim import Claim, ClaimHistory, GlobalCounter
from claimflow.models.organization import Affiliate, Client
from claimflow.services.scope import (
    RestrictedToAffiliate,
    RestrictedToClients,
    ScopeFilter,
)

CLAIM_NUMBER_COUNTER = "claim_number"

# "CLM-123", "clm123" or "123" search for an exact claim number
CLAIM_NUMBER_SEARCH_RE = re.compile(r"^(?:CLM-?)?(\d+)$", re.IGNORECASE)


@dataclass
class ClaimFilters:
    """Optional list filters; ``None`` means "not filtered"."""

    client_id: Optional[UUID] = None
    affiliate_id: Optional[UUID] = None
    patient_id: Optional[UUID] = None
    policy_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    statuses: list[ClaimStatus] = field(default_factory=list)
    care_type: Optional[CareType] = None
    search: Optional[str] = None

    created_from: Optional[date] = None
    created_to: Optional[date] = None
    submitted_from: Optional[date] = None
    submitted_to: Optional[date] = None
    settlement_from: Optional[date] = None
    settlement_to: Optional[date] = None
    incident_from: Optional[date] = None
    incident_to: Optional[date] = None

    amount_submitted_min: Optional[Decimal] = None
    amount_submitted_max: Optional[Decimal] = None
    amount_approved_min: Optional[Decimal] = None
    amount_approved_max: Optional[Decimal] = None
    amount_denied_min: Optional[Decimal] = None
    amount_denied_max: Optional[Decimal] = None


def apply_scope(query: Select, scope: ScopeFilter) -> Select:
    """Restrict a claims query to what ``scope`` may see."""
    if isinstance(scope, RestrictedToClients):
        return query.where(Claim.client_id.in_(scope.client_ids))
    if isinstance(scope, RestrictedToAffiliate):
        return query.where(Claim.affiliate_id == scope.affiliate_id)
    return query


def _apply_ranges(query: Select, filters: ClaimFilters) -> Select:
    if filters.created_from:
        query = query.where(func.date(Claim.created_at) >= filters.created_from)
    if filters.created_to:
        query = query.where(func.date(Claim.created_at) <= filters.created_to)

    ranges = (
        (Claim.submitted_date, filters.submitted_from, filters.submitted_to),
        (Claim.settlement_date, filters.settlement_from, filters.settlement_to),
        (Claim.incident_date, filters.incident_from, filters.incident_to),
        (Claim.amount_submitted, filters.amount_submitted_min, filters.amount_submitted_max),
        (Claim.amount_approved, filters.amount_approved_min, filters.amount_approved_max),
        (Claim.amount_denied, filters.amount_denied_min, filters.amount_denied_max),
    )
    for column, low, high in ranges:
        if low is not None:
            query = query.where(column >= low)
        if high is not None:
            query = query.where(column <= high)
    return query


def _apply_search(query: Select, search: str) -> Select:
    term = search.strip()
    if not term:
        return query

    match = CLAIM_NUMBER_SEARCH_RE.match(term)
    if match:
        return query.where(Claim.claim_number == int(match.group(1)))

    submitter = aliased(Affiliate)
    patient = aliased(Affiliate)
    pattern = f"%{term}%"
    return (
        query.outerjoin(submitter, submitter.id == Claim.affiliate_id)
        .outerjoin(patient, patient.id == Claim.patient_id)
        .outerjoin(Client, Client.id == Claim.client_id)
        .where(
            or_(
                Claim.diagnosis.ilike(pattern),
                submitter.first_name.ilike(pattern),
                submitter.last_name.ilike(pattern),
                patient.first_name.ilike(pattern),
                patient.last_name.ilike(pattern),
                Client.name.ilike(pattern),
            )
        )
    )


class ClaimRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_claim(self, claim_id: UUID) -> Optional[Claim]:
        """Fresh snapshot of a claim (bypasses the identity map)."""
        result = await self.session.execute(
            select(Claim).where(Claim.id == claim_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_claim_status(self, claim_id: UUID) -> Optional[ClaimStatus]:
        result = await self.session.execute(select(Claim.status).where(Claim.id == claim_id))
        return result.scalar_one_or_none()

    async def find_visible_claim(self, claim_id: UUID, scope: ScopeFilter) -> Optional[Claim]:
        query = apply_scope(select(Claim).where(Claim.id == claim_id), scope)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def claim_exists(self, claim_id: UUID) -> bool:
        result = await self.session.execute(select(Claim.id).where(Claim.id == claim_id))
        return result.scalar_one_or_none() is not None

    async def list_claims(
        self,
        scope: ScopeFilter,
        filters: ClaimFilters,
        offset: int,
        limit: int,
    ) -> tuple[list[Claim], int]:
        """Scoped, filtered page of claims (newest number first) and the total count."""
        query = apply_scope(select(Claim), scope)

        equals = (
            (Claim.client_id, filters.client_id),
            (Claim.affiliate_id, filters.affiliate_id),
            (Claim.patient_id, filters.patient_id),
            (Claim.policy_id, filters.policy_id),
            (Claim.created_by_id, filters.created_by_id),
            (Claim.care_type, filters.care_type),
        )
        for column, value in equals:
            if value is not None:
                query = query.where(column == value)
        if filters.statuses:
            query = query.where(Claim.status.in_(filters.statuses))

        query = _apply_ranges(query, filters)
        if filters.search:
            query = _apply_search(query, filters.search)

        total = (
            await self.session.execute(select(func.count()).select_from(query.subquery()))
        ).scalar_one()

        result = await self.session.execute(
            query.order_by(Claim.claim_number.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_claim_history(self, claim_id: UUID) -> list[ClaimHistory]:
        result = await self.session.execute(
            select(ClaimHistory)
            .where(ClaimHistory.claim_id == claim_id)
            .order_by(ClaimHistory.created_at, ClaimHistory.id)
        )
        return list(result.scalars().all())

    # =========================================================================
    # Writes (staged on the caller's transaction)
    # =========================================================================

    async def next_claim_number(self) -> int:
        """
        Atomically increment and return the claim-number counter.

        ``INSERT ... ON CONFLICT DO UPDATE`` holds the counter row lock until
        the surrounding transaction ends.
        """
        stmt = (
            pg_insert(GlobalCounter)
            .values(id=CLAIM_NUMBER_COUNTER, value=1)
            .on_conflict_do_update(
                index_elements=[GlobalCounter.id],
                set_={"value": GlobalCounter.value + 1},
            )
            .returning(GlobalCounter.value)
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def insert_claim(self, claim: Claim) -> Claim:
        self.session.add(claim)
        await self.session.flush()
        return claim

    async def update_fields(
        self,
        claim_id: UUID,
        values: dict[str, Any],
        updated_by_id: UUID,
        expected_status: Optional[ClaimStatus] = None,
    ) -> int:
        """Write field values; with ``expected_status`` only if the status still matches."""
        query = update(Claim).where(Claim.id == claim_id)
        if expected_status is not None:
            query = query.where(Claim.status == expected_status)
        result = await self.session.execute(
            query
            .values(**values, updated_by_id=updated_by_id, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def update_status(
        self,
        claim_id: UUID,
        expected: ClaimStatus,
        to_status: ClaimStatus,
        updated_by_id: UUID,
    ) -> int:
        """
        Conditional status write. Returns the affected row count; 0 means the
        status was no longer ``expected``.
        """
        result = await self.session.execute(
            update(Claim)
            .where(Claim.id == claim_id, Claim.status == expected)
            .values(status=to_status, updated_by_id=updated_by_id, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def add_history(
        self,
        claim_id: UUID,
        from_status: Optional[ClaimStatus],
        to_status: ClaimStatus,
        created_by_id: UUID,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ClaimHistory:
        entry = ClaimHistory(
            claim_id=claim_id,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            notes=notes,
            created_by_id=created_by_id,
            created_at=datetime.now(UTC),
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    # =========================================================================
    # Relationship checks used on create
    # =========================================================================

    async def find_affiliate_with_client(
        self, affiliate_id: UUID, client_id: UUID
    ) -> Optional[Affiliate]:
        result = await self.session.execute(
            select(Affiliate).where(
                Affiliate.id == affiliate_id,
                Affiliate.client_id == client_id,
                Affiliate.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def find_patient_for_claim(
        self,
        patient_id: UUID,
        client_id: UUID,
        own_affiliate_id: Optional[UUID] = None,
    ) -> Optional[Affiliate]:
        """
        Active patient of ``client_id``. When ``own_affiliate_id`` is given the
        patient must be that affiliate or one of its dependents.
        """
        query = select(Affiliate).where(
            Affiliate.id == patient_id,
            Affiliate.client_id == client_id,
            Affiliate.is_active.is_(True),
        )
        if own_affiliate_id is not None:
            query = query.where(
                or_(
                    Affiliate.id == own_affiliate_id,
                    Affiliate.primary_affiliate_id == own_affiliate_id,
                )
            )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
