"""
Claims Service Tests.

Create / PATCH / transition use cases against mocked repositories:
validation order, the single-transaction write protocol, conflict
handling and post-commit side effects.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError

from claimflow.core.enums import (
    AuditAction,
    AuditResourceType,
    ClaimFileStatus,
    ClaimFileType,
    ClaimStatus,
    JobType,
    ScopeType,
)
from claimflow.repositories.claims import ClaimFilters
from claimflow.schemas.claim import ClaimCreate
from claimflow.services.claims_service import (
    CREATE_HISTORY_NOTE,
    PATCH_HISTORY_NOTE,
    ClaimsService,
)
from claimflow.services.scope import RestrictedToAffiliate, Unrestricted
from claimflow.utils.errors import (
    AuthorizationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)

S = ClaimStatus


@pytest.fixture
def claims_repo():
    repo = AsyncMock()
    repo.insert_claim.side_effect = lambda claim: claim
    repo.update_fields.return_value = 1
    repo.update_status.return_value = 1
    return repo


@pytest.fixture
def files_repo():
    repo = AsyncMock()
    repo.find_pending.return_value = []
    repo.add.side_effect = lambda claim_file: claim_file
    return repo


@pytest.fixture
def access_repo():
    return AsyncMock()


@pytest.fixture
def service(mock_db_session, mock_audit, mock_jobs, claims_repo, files_repo, access_repo):
    return ClaimsService(
        mock_db_session,
        audit=mock_audit,
        jobs=mock_jobs,
        claims=claims_repo,
        files=files_repo,
        access=access_repo,
    )


def _staged(session_key: str, name: str) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        session_key=session_key,
        file_key=f"temp/claims/u/{session_key}/{name}",
        file_type=ClaimFileType.INVOICE,
        file_name=name,
        file_size=2048,
        content_type="application/pdf",
    )


def _create_request(**overrides) -> ClaimCreate:
    values = {
        "client_id": uuid4(),
        "affiliate_id": uuid4(),
        "patient_id": uuid4(),
        "description": "Consultation",
    }
    values.update(overrides)
    return ClaimCreate(**values)


def _enqueued_types(mock_jobs) -> list[JobType]:
    return [c.args[0] for c in mock_jobs.enqueue.call_args_list]


# =============================================================================
# Create
# =============================================================================


@pytest.mark.unit
class TestCreateClaim:
    async def test_creates_draft_with_staged_files(
        self, service, staff_user, claims_repo, files_repo, mock_db_session, mock_jobs, mock_audit
    ):
        session_key = "a" * 32
        staged = [_staged(session_key, "invoice.pdf"), _staged(session_key, "report.PDF")]
        files_repo.find_pending.return_value = staged
        claims_repo.next_claim_number.return_value = 1042
        request = _create_request(session_key=session_key)

        result = await service.create_claim(staff_user, request)

        assert result.claim.claim_number == 1042
        assert result.claim.status == S.DRAFT
        assert result.claim.created_by_id == staff_user.id
        assert [f.id for f in result.files] == [s.id for s in staged]
        for claim_file, source in zip(result.files, staged):
            assert claim_file.status == ClaimFileStatus.PENDING
            assert claim_file.source_key == source.file_key
            assert claim_file.target_key == (
                f"clients/{request.client_id}/claims/{result.claim.id}/{source.id}.pdf"
            )

        files_repo.find_pending.assert_awaited_once_with(staff_user.id, session_key)
        files_repo.delete_pending.assert_awaited_once_with([s.id for s in staged])
        claims_repo.add_history.assert_awaited_once_with(
            result.claim.id,
            from_status=None,
            to_status=S.DRAFT,
            created_by_id=staff_user.id,
            notes=CREATE_HISTORY_NOTE,
        )
        mock_db_session.commit.assert_awaited_once()
        mock_db_session.rollback.assert_not_awaited()

        assert _enqueued_types(mock_jobs) == [JobType.CLAIM_FILES_MIGRATE, JobType.EMAIL_CLAIM_CREATED]
        event = mock_audit.log.await_args.args[0]
        assert event.action == AuditAction.CREATE
        assert event.resource == AuditResourceType.CLAIM
        assert event.metadata == {"claim_number": 1042}

    async def test_without_staged_files_only_emails(self, service, staff_user, files_repo, mock_jobs):
        result = await service.create_claim(staff_user, _create_request())

        assert result.files == []
        files_repo.find_pending.assert_not_awaited()
        assert _enqueued_types(mock_jobs) == [JobType.EMAIL_CLAIM_CREATED]

    async def test_failure_rolls_back_everything(
        self, service, staff_user, claims_repo, files_repo, mock_db_session, mock_jobs, mock_audit
    ):
        files_repo.find_pending.return_value = [_staged("b" * 32, "a.pdf")]
        claims_repo.add_history.side_effect = DBAPIError("INSERT", {}, Exception("connection lost"))

        with pytest.raises(InternalError):
            await service.create_claim(staff_user, _create_request(session_key="b" * 32))

        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()
        mock_jobs.enqueue.assert_not_called()
        mock_audit.log.assert_not_awaited()

    async def test_duplicate_claim_number_is_conflict(
        self, service, staff_user, claims_repo, mock_db_session
    ):
        claims_repo.insert_claim.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(ConflictError):
            await service.create_claim(staff_user, _create_request())

        mock_db_session.rollback.assert_awaited_once()

    async def test_self_scope_cannot_file_for_another_affiliate(
        self, service, user_factory, access_repo, claims_repo, mock_db_session
    ):
        access_repo.get_affiliate_for_user.return_value = SimpleNamespace(id=uuid4())

        with pytest.raises(AuthorizationError):
            await service.create_claim(user_factory(ScopeType.SELF), _create_request())

        claims_repo.next_claim_number.assert_not_awaited()
        mock_db_session.commit.assert_not_awaited()

    async def test_self_scope_restricts_patients_to_own_family(
        self, service, user_factory, access_repo, claims_repo
    ):
        own = SimpleNamespace(id=uuid4())
        access_repo.get_affiliate_for_user.return_value = own
        request = _create_request(affiliate_id=own.id)

        await service.create_claim(user_factory(ScopeType.SELF), request)

        claims_repo.find_patient_for_claim.assert_awaited_once_with(
            request.patient_id, request.client_id, own.id
        )

    async def test_client_scope_requires_assignment(self, service, user_factory, access_repo):
        access_repo.has_client_access.return_value = False

        with pytest.raises(AuthorizationError, match="No access to this client"):
            await service.create_claim(user_factory(ScopeType.CLIENT), _create_request())

    async def test_unknown_patient_is_validation_error(self, service, staff_user, claims_repo):
        claims_repo.find_patient_for_claim.return_value = None

        with pytest.raises(ValidationError) as exc_info:
            await service.create_claim(staff_user, _create_request())

        assert exc_info.value.fields == ["patient_id"]
        claims_repo.next_claim_number.assert_not_awaited()

    async def test_unknown_affiliate_is_validation_error(self, service, staff_user, claims_repo):
        claims_repo.find_affiliate_with_client.return_value = None

        with pytest.raises(ValidationError) as exc_info:
            await service.create_claim(staff_user, _create_request())

        assert exc_info.value.fields == ["affiliate_id"]


# =============================================================================
# Update (PATCH)
# =============================================================================


@pytest.mark.unit
class TestUpdateClaim:
    async def test_draft_rejects_settlement_fields(
        self, service, staff_user, claims_repo, claim_factory, mock_db_session
    ):
        claims_repo.get_claim.return_value = claim_factory(S.DRAFT)

        with pytest.raises(ValidationError) as exc_info:
            await service.update_claim(staff_user, uuid4(), {"amount_approved": 100})

        assert exc_info.value.fields == ["amount_approved"]
        claims_repo.update_fields.assert_not_awaited()
        mock_db_session.commit.assert_not_awaited()

    async def test_terminal_claim_cannot_be_edited(self, service, staff_user, claims_repo, claim_factory):
        claims_repo.get_claim.return_value = claim_factory(S.CANCELLED)

        with pytest.raises(ValidationError, match="Cannot edit claim in cancelled status"):
            await service.update_claim(staff_user, uuid4(), {"description": "x"})

        claims_repo.update_fields.assert_not_awaited()

    async def test_pending_info_is_locked(self, service, staff_user, claims_repo, claim_factory):
        claims_repo.get_claim.return_value = claim_factory(S.PENDING_INFO)

        with pytest.raises(ValidationError) as exc_info:
            await service.update_claim(staff_user, uuid4(), {"description": "x"})

        assert exc_info.value.fields == ["description"]

    async def test_empty_patch_rejected(self, service, staff_user, claims_repo):
        with pytest.raises(ValidationError, match="No fields to update"):
            await service.update_claim(staff_user, uuid4(), {})

        claims_repo.get_claim.assert_not_awaited()

    async def test_missing_claim(self, service, staff_user, claims_repo):
        claims_repo.get_claim.return_value = None

        with pytest.raises(NotFoundError):
            await service.update_claim(staff_user, uuid4(), {"description": "x"})

    async def test_cannot_blank_required_field(
        self, service, staff_user, claims_repo, claim_factory, core_fields
    ):
        claims_repo.get_claim.return_value = claim_factory(S.IN_REVIEW, **core_fields)

        with pytest.raises(ValidationError) as exc_info:
            await service.update_claim(staff_user, uuid4(), {"description": "   "})

        assert exc_info.value.fields == ["description"]
        claims_repo.update_fields.assert_not_awaited()

    async def test_applies_patch_and_audits_changes(
        self, service, staff_user, claims_repo, claim_factory, mock_db_session, mock_audit
    ):
        claim = claim_factory(S.DRAFT, description="old")
        claims_repo.get_claim.return_value = claim

        result = await service.update_claim(
            staff_user, claim.id, {"description": "new", "diagnosis": None}
        )

        claims_repo.update_fields.assert_awaited_once_with(
            claim.id,
            {"description": "new", "diagnosis": None},
            staff_user.id,
            expected_status=S.DRAFT,
        )
        claims_repo.add_history.assert_awaited_once_with(
            claim.id,
            from_status=S.DRAFT,
            to_status=S.DRAFT,
            created_by_id=staff_user.id,
            notes=PATCH_HISTORY_NOTE,
        )
        mock_db_session.commit.assert_awaited_once()
        assert result.changes.fields == ["description"]

        event = mock_audit.log.await_args.args[0]
        assert event.action == AuditAction.UPDATE
        assert event.metadata == {
            "fields": ["description"],
            "changes": {"description": {"before": "old", "after": "new"}},
        }

    async def test_unchanged_values_are_not_audited(
        self, service, staff_user, claims_repo, claim_factory, core_fields, submission_fields, mock_audit
    ):
        claim = claim_factory(S.IN_REVIEW, **core_fields, **submission_fields)
        claims_repo.get_claim.return_value = claim

        result = await service.update_claim(staff_user, claim.id, {"amount_submitted": "150.0"})

        assert not result.changes
        mock_audit.log.assert_not_awaited()

    async def test_status_change_during_update_is_conflict(
        self, service, staff_user, claims_repo, claim_factory, mock_db_session, mock_audit
    ):
        claims_repo.get_claim.return_value = claim_factory(S.DRAFT)
        claims_repo.update_fields.return_value = 0
        claims_repo.get_claim_status.return_value = S.CANCELLED

        with pytest.raises(ConflictError) as exc_info:
            await service.update_claim(staff_user, uuid4(), {"description": "x"})

        assert exc_info.value.details == {"expected": "draft", "actual": "cancelled"}
        claims_repo.add_history.assert_not_awaited()
        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()
        mock_audit.log.assert_not_awaited()


# =============================================================================
# Transition
# =============================================================================


@pytest.mark.unit
class TestTransitionClaim:
    async def test_moves_claim_and_records_history(
        self, service, staff_user, claims_repo, claim_factory, core_fields, mock_db_session, mock_audit
    ):
        claim = claim_factory(S.DRAFT, **core_fields)
        claims_repo.get_claim.return_value = claim
        claims_repo.get_claim_status.return_value = S.DRAFT

        result = await service.transition_claim(staff_user, claim.id, S.IN_REVIEW, notes="ready")

        claims_repo.update_status.assert_awaited_once_with(claim.id, S.DRAFT, S.IN_REVIEW, staff_user.id)
        claims_repo.add_history.assert_awaited_once_with(
            claim.id,
            from_status=S.DRAFT,
            to_status=S.IN_REVIEW,
            created_by_id=staff_user.id,
            reason=None,
            notes="ready",
        )
        mock_db_session.commit.assert_awaited_once()
        assert result.transition.from_status == S.DRAFT
        assert result.transition.to_status == S.IN_REVIEW

        event = mock_audit.log.await_args.args[0]
        assert event.action == AuditAction.STATUS_CHANGE
        assert event.metadata == {"from": "draft", "to": "in_review", "reason": None}

    async def test_concurrent_status_change_writes_nothing(
        self, service, staff_user, claims_repo, claim_factory, core_fields, mock_db_session, mock_audit
    ):
        claims_repo.get_claim.return_value = claim_factory(S.DRAFT, **core_fields)
        claims_repo.get_claim_status.return_value = S.CANCELLED

        with pytest.raises(ConflictError, match="expected draft, got cancelled") as exc_info:
            await service.transition_claim(staff_user, uuid4(), S.IN_REVIEW)

        assert exc_info.value.status_code == 409
        claims_repo.update_status.assert_not_awaited()
        claims_repo.add_history.assert_not_awaited()
        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()
        mock_audit.log.assert_not_awaited()

    async def test_return_loses_race_with_submit(
        self, service, staff_user, claims_repo, claim_factory, core_fields, mock_db_session, mock_audit
    ):
        claims_repo.get_claim.return_value = claim_factory(S.IN_REVIEW, **core_fields)
        claims_repo.get_claim_status.return_value = S.SUBMITTED

        with pytest.raises(ConflictError) as exc_info:
            await service.transition_claim(
                staff_user, uuid4(), S.RETURNED, reason="Incomplete documentation"
            )

        assert exc_info.value.details == {"expected": "in_review", "actual": "submitted"}
        claims_repo.update_status.assert_not_awaited()
        claims_repo.add_history.assert_not_awaited()
        mock_db_session.commit.assert_not_awaited()
        mock_audit.log.assert_not_awaited()

    async def test_lost_conditional_update_is_conflict(
        self, service, staff_user, claims_repo, claim_factory, core_fields, mock_db_session
    ):
        claims_repo.get_claim.return_value = claim_factory(S.DRAFT, **core_fields)
        claims_repo.get_claim_status.return_value = S.DRAFT
        claims_repo.update_status.return_value = 0

        with pytest.raises(ConflictError):
            await service.transition_claim(staff_user, uuid4(), S.IN_REVIEW)

        claims_repo.add_history.assert_not_awaited()
        mock_db_session.rollback.assert_awaited_once()

    async def test_same_status_is_rejected(self, service, staff_user, claims_repo, claim_factory):
        claims_repo.get_claim.return_value = claim_factory(S.DRAFT)

        with pytest.raises(ConflictError, match="already in draft"):
            await service.transition_claim(staff_user, uuid4(), S.DRAFT)

        claims_repo.update_status.assert_not_awaited()

    async def test_illegal_transition_lists_allowed(self, service, staff_user, claims_repo, claim_factory):
        claims_repo.get_claim.return_value = claim_factory(S.DRAFT)

        with pytest.raises(ValidationError) as exc_info:
            await service.transition_claim(staff_user, uuid4(), S.SETTLED)

        assert exc_info.value.details == {"allowed": ["in_review", "cancelled"]}

    async def test_terminal_claim_cannot_move(self, service, staff_user, claims_repo, claim_factory):
        claims_repo.get_claim.return_value = claim_factory(S.SETTLED)

        with pytest.raises(ValidationError) as exc_info:
            await service.transition_claim(staff_user, uuid4(), S.CANCELLED, reason="dup")

        assert exc_info.value.details == {"allowed": []}

    @pytest.mark.parametrize("reason", [None, "", "   "])
    async def test_cancel_requires_reason(self, service, staff_user, claims_repo, claim_factory, reason):
        claims_repo.get_claim.return_value = claim_factory(S.DRAFT)

        with pytest.raises(ValidationError) as exc_info:
            await service.transition_claim(staff_user, uuid4(), S.CANCELLED, reason=reason)

        assert exc_info.value.fields == ["reason"]

    async def test_target_requirements_checked(self, service, staff_user, claims_repo, claim_factory):
        claims_repo.get_claim.return_value = claim_factory(S.DRAFT, description="only this")

        with pytest.raises(ValidationError) as exc_info:
            await service.transition_claim(staff_user, uuid4(), S.IN_REVIEW)

        assert exc_info.value.fields == ["policy_id", "care_type", "diagnosis", "incident_date"]
        claims_repo.get_claim_status.assert_not_awaited()

    async def test_pending_info_round_trip(
        self, service, staff_user, claims_repo, claim_factory, core_fields, submission_fields
    ):
        claim = claim_factory(S.SUBMITTED, **core_fields, **submission_fields)
        claims_repo.get_claim.return_value = claim
        claims_repo.get_claim_status.return_value = S.SUBMITTED

        first = await service.transition_claim(
            staff_user, claim.id, S.PENDING_INFO, reason="Missing invoice"
        )
        assert first.transition.reason == "Missing invoice"

        claim.status = S.PENDING_INFO
        claims_repo.get_claim_status.return_value = S.PENDING_INFO
        second = await service.transition_claim(
            staff_user, claim.id, S.SUBMITTED, reason="Invoice received"
        )

        assert second.transition.from_status == S.PENDING_INFO
        assert second.transition.to_status == S.SUBMITTED
        assert claims_repo.add_history.await_count == 2


# =============================================================================
# Reads
# =============================================================================


@pytest.mark.unit
class TestClaimReads:
    async def test_invisible_claim_is_not_found(self, service, staff_user, claims_repo):
        claims_repo.find_visible_claim.return_value = None

        with patch(
            "claimflow.services.claims_service.resolve_scope",
            AsyncMock(return_value=Unrestricted()),
        ):
            with pytest.raises(NotFoundError):
                await service.get_claim(staff_user, uuid4())

    async def test_detail_includes_history(self, service, staff_user, claims_repo, claim_factory):
        claim = claim_factory()
        claims_repo.find_visible_claim.return_value = claim
        claims_repo.get_claim_history.return_value = ["h1", "h2"]

        with patch(
            "claimflow.services.claims_service.resolve_scope",
            AsyncMock(return_value=Unrestricted()),
        ):
            detail = await service.get_claim(staff_user, claim.id)

        assert detail.claim is claim
        assert detail.history == ["h1", "h2"]

    async def test_list_paginates(self, service, staff_user, claims_repo, claim_factory):
        claims_repo.list_claims.return_value = ([claim_factory()], 41)

        with patch(
            "claimflow.services.claims_service.resolve_scope",
            AsyncMock(return_value=Unrestricted()),
        ):
            page = await service.list_claims(staff_user, ClaimFilters(), page=3, limit=20)

        claims_repo.list_claims.assert_awaited_once_with(
            Unrestricted(), ClaimFilters(), offset=40, limit=20
        )
        assert page.total == 41
        assert page.total_pages == 3

    async def test_self_scope_cannot_filter_other_affiliate(self, service, user_factory, claims_repo):
        own = uuid4()
        with patch(
            "claimflow.services.claims_service.resolve_scope",
            AsyncMock(return_value=RestrictedToAffiliate(own)),
        ):
            with pytest.raises(AuthorizationError):
                await service.list_claims(
                    user_factory(ScopeType.SELF), ClaimFilters(affiliate_id=uuid4())
                )

        claims_repo.list_claims.assert_not_awaited()


# =============================================================================
# Full lifecycle
# =============================================================================


class InMemoryClaimRepository:
    """Single-claim store honouring the conditional writes of ClaimRepository."""

    def __init__(self, claim):
        self.claim = claim
        self.history: list[SimpleNamespace] = []

    async def get_claim(self, claim_id):
        if claim_id != self.claim.id:
            return None
        return SimpleNamespace(**vars(self.claim))

    async def get_claim_status(self, claim_id):
        return self.claim.status if claim_id == self.claim.id else None

    async def update_fields(self, claim_id, values, updated_by_id, expected_status):
        if claim_id != self.claim.id or self.claim.status != expected_status:
            return 0
        for name, value in values.items():
            setattr(self.claim, name, value)
        self.claim.updated_by_id = updated_by_id
        return 1

    async def update_status(self, claim_id, expected, to_status, updated_by_id):
        if claim_id != self.claim.id or self.claim.status != expected:
            return 0
        self.claim.status = to_status
        self.claim.updated_by_id = updated_by_id
        return 1

    async def add_history(self, claim_id, from_status, to_status, created_by_id, reason=None, notes=None):
        entry = SimpleNamespace(
            claim_id=claim_id,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            notes=notes,
            created_by_id=created_by_id,
        )
        self.history.append(entry)
        return entry


def _settlement_fields() -> dict:
    return {
        "amount_approved": Decimal("120.00"),
        "amount_denied": Decimal("20.00"),
        "amount_unprocessed": Decimal("0.00"),
        "deductible_applied": Decimal("10.00"),
        "copay_applied": Decimal("0.00"),
        "settlement_date": date(2024, 4, 2),
        "settlement_number": "STL-2024-0042",
        "settlement_notes": "Partial approval",
    }


@pytest.mark.unit
class TestClaimLifecycle:
    @pytest.fixture
    def store(self, claim_factory):
        return InMemoryClaimRepository(claim_factory(S.DRAFT))

    @pytest.fixture
    def lifecycle(self, mock_db_session, mock_audit, mock_jobs, store, files_repo, access_repo):
        return ClaimsService(
            mock_db_session,
            audit=mock_audit,
            jobs=mock_jobs,
            claims=store,
            files=files_repo,
            access=access_repo,
        )

    async def test_draft_to_settled(
        self, lifecycle, store, staff_user, core_fields, submission_fields, mock_audit
    ):
        claim_id = store.claim.id

        with pytest.raises(ValidationError):
            await lifecycle.transition_claim(staff_user, claim_id, S.IN_REVIEW)

        await lifecycle.update_claim(staff_user, claim_id, core_fields)
        await lifecycle.transition_claim(staff_user, claim_id, S.IN_REVIEW)

        await lifecycle.update_claim(staff_user, claim_id, submission_fields)
        await lifecycle.transition_claim(staff_user, claim_id, S.SUBMITTED)

        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.transition_claim(staff_user, claim_id, S.SETTLED)
        assert exc_info.value.fields == list(_settlement_fields())
        assert store.claim.status == S.SUBMITTED

        await lifecycle.update_claim(staff_user, claim_id, _settlement_fields())
        result = await lifecycle.transition_claim(staff_user, claim_id, S.SETTLED)

        assert result.claim.status == S.SETTLED
        assert store.claim.settlement_number == "STL-2024-0042"

        with pytest.raises(ValidationError, match="Cannot edit claim in settled status"):
            await lifecycle.update_claim(staff_user, claim_id, {"settlement_notes": "late note"})
        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.transition_claim(staff_user, claim_id, S.CANCELLED, reason="Duplicate")
        assert exc_info.value.details == {"allowed": []}

        assert store.claim.status == S.SETTLED
        assert store.claim.settlement_notes == "Partial approval"
        assert [(h.from_status, h.to_status) for h in store.history] == [
            (S.DRAFT, S.DRAFT),
            (S.DRAFT, S.IN_REVIEW),
            (S.IN_REVIEW, S.IN_REVIEW),
            (S.IN_REVIEW, S.SUBMITTED),
            (S.SUBMITTED, S.SUBMITTED),
            (S.SUBMITTED, S.SETTLED),
        ]
        assert [h.notes for h in store.history if h.from_status == h.to_status] == [
            PATCH_HISTORY_NOTE
        ] * 3
        status_events = [
            c.args[0] for c in mock_audit.log.await_args_list
            if c.args[0].action == AuditAction.STATUS_CHANGE
        ]
        assert len(status_events) == 3

    async def test_returned_with_reason_is_final(self, lifecycle, store, staff_user, core_fields):
        claim_id = store.claim.id
        await lifecycle.update_claim(staff_user, claim_id, core_fields)
        await lifecycle.transition_claim(staff_user, claim_id, S.IN_REVIEW)

        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.transition_claim(staff_user, claim_id, S.RETURNED)
        assert exc_info.value.fields == ["reason"]

        result = await lifecycle.transition_claim(
            staff_user, claim_id, S.RETURNED, reason="  Missing referral  "
        )

        assert result.transition.reason == "Missing referral"
        assert store.history[-1].reason == "Missing referral"
        with pytest.raises(ValidationError):
            await lifecycle.update_claim(staff_user, claim_id, {"description": "resubmitted"})
        with pytest.raises(ValidationError):
            await lifecycle.transition_claim(staff_user, claim_id, S.IN_REVIEW)
        assert store.claim.status == S.RETURNED
