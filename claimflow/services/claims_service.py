"""
Claims Service.

Create, update (PATCH) and transition use cases plus scoped reads.

Each mutation validates against the state machine first, then performs all
of its writes inside one transaction on the request session. Side effects
(audit rows, background jobs) run only after the commit and never fail the
operation.
"""

import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.core.enums import (
    AuditAction,
    AuditResourceType,
    ClaimFileStatus,
    ClaimStatus,
    JobType,
    ScopeType,
)
from claimflow.models.claim import Claim, ClaimFile, ClaimHistory
from claimflow.repositories.access import AccessRepository
from claimflow.repositories.claim_files import ClaimFileRepository
from claimflow.repositories.claims import ClaimFilters, ClaimRepository
from claimflow.schemas.claim import ClaimCreate
from claimflow.services import claim_state_machine as sm
from claimflow.services.audit import AuditContext, AuditEvent, AuditService
from claimflow.services.jobs import (
    JobQueue,
    claim_created_email_job_id,
    claim_files_migrate_job_id,
)
from claimflow.services.scope import (
    RestrictedToAffiliate,
    SessionUser,
    resolve_scope,
)
from claimflow.services.storage import claim_file_key
from claimflow.utils.diff import ChangeSet, compute_changes
from claimflow.utils.errors import (
    AuthorizationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)

PATCH_HISTORY_NOTE = "Fields updated"
CREATE_HISTORY_NOTE = "Claim created"


# =============================================================================
# Results
# =============================================================================


@dataclass
class StatusTransition:
    from_status: ClaimStatus
    to_status: ClaimStatus
    reason: Optional[str] = None


@dataclass
class ClaimCreateResult:
    claim: Claim
    files: list[ClaimFile] = field(default_factory=list)


@dataclass
class ClaimUpdateResult:
    claim: Claim
    changes: ChangeSet


@dataclass
class ClaimTransitionResult:
    claim: Claim
    transition: StatusTransition


@dataclass
class ClaimDetail:
    claim: Claim
    history: list[ClaimHistory]


@dataclass
class ClaimPage:
    data: list[Claim]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def claim_snapshot(claim: Claim) -> dict[str, Any]:
    """Editable field values of ``claim`` keyed by attribute name."""
    return {name: getattr(claim, name) for name in sm.ALL_CLAIM_FIELDS}


def _file_extension(file_name: str, key: str) -> str:
    return (PurePosixPath(file_name).suffix or PurePosixPath(key).suffix).lower()


class ClaimsService:
    """
    Claim lifecycle orchestration.

    Args:
        session: Request-scoped session; this service commits or rolls it back
        audit: Audit sink (defaults to a sink with its own sessions)
        jobs: Background job enqueuer
    """

    def __init__(
        self,
        session: AsyncSession,
        audit: Optional[AuditService] = None,
        jobs: Optional[JobQueue] = None,
        claims: Optional[ClaimRepository] = None,
        files: Optional[ClaimFileRepository] = None,
        access: Optional[AccessRepository] = None,
    ):
        self.session = session
        self.audit = audit or AuditService()
        self.jobs = jobs or JobQueue()
        self.claims = claims or ClaimRepository(session)
        self.files = files or ClaimFileRepository(session)
        self.access = access or AccessRepository(session)

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        """Commit on success; roll back and translate store errors otherwise."""
        try:
            yield
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Claim write rejected by constraint: {e.orig}")
            raise ConflictError("Claim write conflicts with existing data") from e
        except DBAPIError as e:
            await self.session.rollback()
            logger.opt(exception=e).error("Claim transaction failed")
            raise InternalError("Database error") from e
        except Exception:
            await self.session.rollback()
            raise

    async def _load(self, claim_id: UUID) -> Claim:
        claim = await self.claims.get_claim(claim_id)
        if claim is None:
            raise NotFoundError("Claim not found")
        return claim

    # =========================================================================
    # Create
    # =========================================================================

    async def create_claim(
        self,
        user: SessionUser,
        data: ClaimCreate,
        context: Optional[AuditContext] = None,
    ) -> ClaimCreateResult:
        """
        Create a DRAFT claim, attaching any staged uploads from ``data.session_key``.

        Counter increment, claim insert, file rows, staged-row deletion and
        the history row commit together or not at all.
        """
        own_affiliate_id: Optional[UUID] = None

        if user.scope_type == ScopeType.SELF:
            own = await self.access.get_affiliate_for_user(user.id)
            if own is None or own.id != data.affiliate_id:
                logger.warning(f"User {user.id} tried to file a claim for affiliate {data.affiliate_id}")
                raise AuthorizationError("You can only create claims for yourself")
            own_affiliate_id = own.id
        elif user.scope_type == ScopeType.CLIENT:
            if not await self.access.has_client_access(user.id, data.client_id):
                logger.warning(f"User {user.id} has no access to client {data.client_id}")
                raise AuthorizationError("No access to this client")

        affiliate = await self.claims.find_affiliate_with_client(data.affiliate_id, data.client_id)
        if affiliate is None:
            raise ValidationError(
                "Affiliate not found, inactive, or not part of this client",
                fields=["affiliate_id"],
            )
        patient = await self.claims.find_patient_for_claim(
            data.patient_id, data.client_id, own_affiliate_id
        )
        if patient is None:
            raise ValidationError(
                "Patient not found, inactive, or not eligible for this claim",
                fields=["patient_id"],
            )

        pending = []
        if data.session_key:
            pending = await self.files.find_pending(user.id, data.session_key)

        attached: list[ClaimFile] = []
        async with self._transaction():
            claim_number = await self.claims.next_claim_number()
            claim = await self.claims.insert_claim(
                Claim(
                    id=uuid4(),
                    claim_number=claim_number,
                    status=ClaimStatus.DRAFT,
                    client_id=data.client_id,
                    affiliate_id=data.affiliate_id,
                    patient_id=data.patient_id,
                    description=data.description,
                    created_by_id=user.id,
                )
            )

            for staged in pending:
                ext = _file_extension(staged.file_name, staged.file_key)
                attached.append(
                    await self.files.add(
                        ClaimFile(
                            id=staged.id,
                            claim_id=claim.id,
                            file_type=staged.file_type,
                            file_name=staged.file_name,
                            file_size=staged.file_size,
                            content_type=staged.content_type,
                            source_key=staged.file_key,
                            target_key=claim_file_key(data.client_id, claim.id, staged.id, ext),
                            status=ClaimFileStatus.PENDING,
                            uploaded_by_id=user.id,
                        )
                    )
                )
            await self.files.delete_pending([staged.id for staged in pending])

            await self.claims.add_history(
                claim.id,
                from_status=None,
                to_status=ClaimStatus.DRAFT,
                created_by_id=user.id,
                notes=CREATE_HISTORY_NOTE,
            )

        logger.info(
            f"User {user.id} created claim {claim.claim_number} ({claim.id}) "
            f"with {len(attached)} file(s)"
        )

        if attached:
            self.jobs.enqueue(
                JobType.CLAIM_FILES_MIGRATE,
                {"claim_id": str(claim.id), "client_id": str(claim.client_id)},
                job_id=claim_files_migrate_job_id(claim.id),
            )
        self.jobs.enqueue(
            JobType.EMAIL_CLAIM_CREATED,
            {"claim_id": str(claim.id), "affiliate_id": str(claim.affiliate_id)},
            job_id=claim_created_email_job_id(claim.id),
        )
        await self.audit.log(
            AuditEvent(
                action=AuditAction.CREATE,
                resource=AuditResourceType.CLAIM,
                resource_id=str(claim.id),
                user_id=user.id,
                metadata={"claim_number": claim.claim_number},
                context=context or AuditContext(),
            )
        )

        return ClaimCreateResult(claim=claim, files=attached)

    # =========================================================================
    # Update (PATCH)
    # =========================================================================

    async def update_claim(
        self,
        user: SessionUser,
        claim_id: UUID,
        patch: dict[str, Any],
        context: Optional[AuditContext] = None,
    ) -> ClaimUpdateResult:
        """
        Apply a partial field update without changing status.

        Every patch key must be editable in the current status, and the merged
        claim must still satisfy the current status's required fields.
        """
        if not patch:
            raise ValidationError("No fields to update")

        claim = await self._load(claim_id)
        status = claim.status

        if sm.is_terminal(status):
            logger.warning(f"Rejected edit of claim {claim_id} in terminal status {status.value}")
            raise ValidationError(
                f"Cannot edit claim in {status.value} status",
                details={"status": status.value},
            )

        forbidden = sm.find_non_editable_fields(status, patch.keys())
        if forbidden:
            raise ValidationError(
                f"Fields not editable in {status.value} status: {', '.join(forbidden)}",
                fields=forbidden,
            )

        before = claim_snapshot(claim)
        merged = {**before, **patch}
        violated = sm.find_violated_fields(sm.get_invariants(status), merged)
        if violated:
            raise ValidationError(
                f"Required fields missing for {status.value} status: {', '.join(violated)}",
                fields=violated,
            )

        changes = compute_changes(before, patch)

        async with self._transaction():
            updated = await self.claims.update_fields(claim_id, patch, user.id, expected_status=status)
            if updated == 0:
                actual = await self.claims.get_claim_status(claim_id)
                if actual is None:
                    raise NotFoundError("Claim not found")
                raise ConflictError(
                    f"Claim status changed (expected {status.value}, got {actual.value})",
                    expected=status.value,
                    actual=actual.value,
                )
            await self.claims.add_history(
                claim_id,
                from_status=status,
                to_status=status,
                created_by_id=user.id,
                notes=PATCH_HISTORY_NOTE,
            )

        claim = await self._load(claim_id)
        logger.info(f"User {user.id} updated claim {claim.claim_number}: {changes.fields}")

        if changes:
            await self.audit.log(
                AuditEvent(
                    action=AuditAction.UPDATE,
                    resource=AuditResourceType.CLAIM,
                    resource_id=str(claim_id),
                    user_id=user.id,
                    metadata=changes.to_dict(),
                    context=context or AuditContext(),
                )
            )

        return ClaimUpdateResult(claim=claim, changes=changes)

    # =========================================================================
    # Transition
    # =========================================================================

    async def transition_claim(
        self,
        user: SessionUser,
        claim_id: UUID,
        to_status: ClaimStatus,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        context: Optional[AuditContext] = None,
    ) -> ClaimTransitionResult:
        """
        Move a claim to ``to_status``.

        Required fields of the target status are checked against the persisted
        claim. Inside the write transaction the status is re-read and written
        conditionally; if another writer changed it since the first read the
        operation fails with ConflictError and nothing is written.
        """
        claim = await self._load(claim_id)
        from_status = claim.status
        reason = reason.strip() if reason and reason.strip() else None

        if from_status == to_status:
            raise ConflictError(
                f"Claim is already in {to_status.value} status",
                expected=from_status.value,
                actual=to_status.value,
            )

        if not sm.can_transition(from_status, to_status):
            allowed = [s.value for s in sm.get_allowed_transitions(from_status)]
            logger.warning(
                f"Rejected transition of claim {claim_id}: {from_status.value} -> {to_status.value}"
            )
            raise ValidationError(
                f"Cannot transition from {from_status.value} to {to_status.value}",
                details={"allowed": allowed},
            )

        if sm.is_reason_required(from_status, to_status) and reason is None:
            raise ValidationError("Reason is required for this transition", fields=["reason"])

        violated = sm.find_violated_fields(sm.get_invariants(to_status), claim_snapshot(claim))
        if violated:
            raise ValidationError(
                f"Required fields missing for {to_status.value} status: {', '.join(violated)}",
                fields=violated,
            )

        async with self._transaction():
            current = await self.claims.get_claim_status(claim_id)
            if current is None:
                raise NotFoundError("Claim not found")
            if current != from_status:
                raise ConflictError(
                    f"Claim status changed (expected {from_status.value}, got {current.value})",
                    expected=from_status.value,
                    actual=current.value,
                )
            updated = await self.claims.update_status(claim_id, from_status, to_status, user.id)
            if updated == 0:
                raise ConflictError(
                    f"Claim status changed (expected {from_status.value})",
                    expected=from_status.value,
                )
            await self.claims.add_history(
                claim_id,
                from_status=from_status,
                to_status=to_status,
                created_by_id=user.id,
                reason=reason,
                notes=notes,
            )

        claim = await self._load(claim_id)
        transition = StatusTransition(from_status=from_status, to_status=to_status, reason=reason)
        logger.info(
            f"User {user.id} moved claim {claim.claim_number}: "
            f"{from_status.value} -> {to_status.value}"
        )

        await self.audit.log(
            AuditEvent(
                action=AuditAction.STATUS_CHANGE,
                resource=AuditResourceType.CLAIM,
                resource_id=str(claim_id),
                user_id=user.id,
                metadata={"from": from_status.value, "to": to_status.value, "reason": reason},
                context=context or AuditContext(),
            )
        )

        return ClaimTransitionResult(claim=claim, transition=transition)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_claim(self, user: SessionUser, claim_id: UUID) -> ClaimDetail:
        """Claim with its history; claims outside the caller's scope are not found."""
        scope = await resolve_scope(self.session, user)
        claim = await self.claims.find_visible_claim(claim_id, scope)
        if claim is None:
            raise NotFoundError("Claim not found")
        history = await self.claims.get_claim_history(claim_id)
        return ClaimDetail(claim=claim, history=history)

    async def list_claims(
        self,
        user: SessionUser,
        filters: ClaimFilters,
        page: int = 1,
        limit: int = 20,
    ) -> ClaimPage:
        scope = await resolve_scope(self.session, user, filters.client_id)
        if isinstance(scope, RestrictedToAffiliate):
            if filters.affiliate_id is not None and filters.affiliate_id != scope.affiliate_id:
                raise AuthorizationError("Cannot list claims of another affiliate")

        claims, total = await self.claims.list_claims(
            scope, filters, offset=(page - 1) * limit, limit=limit
        )
        return ClaimPage(data=claims, total=total, page=page, limit=limit)
