"""
Claim Status State Machine.

Pure decision logic: no I/O, no exceptions for business outcomes. Callers
(``ClaimsService``) turn the booleans and field lists returned here into
typed errors.

State Diagram:
    DRAFT        -> IN_REVIEW | CANCELLED
    IN_REVIEW    -> SUBMITTED | RETURNED | CANCELLED
    SUBMITTED    -> PENDING_INFO | SETTLED | CANCELLED
    PENDING_INFO -> SUBMITTED | CANCELLED
    RETURNED, SETTLED, CANCELLED are terminal.

Field groups:
    core        policy_id, description, care_type, diagnosis, incident_date
    submission  amount_submitted, submitted_date
    settlement  amount_approved, amount_denied, amount_unprocessed,
                deductible_applied, copay_applied, settlement_date,
                settlement_number, settlement_notes
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from claimflow.core.enums import ClaimStatus

S = ClaimStatus


# =============================================================================
# Field Groups
# =============================================================================


CORE_FIELDS: tuple[str, ...] = (
    "policy_id",
    "description",
    "care_type",
    "diagnosis",
    "incident_date",
)

SUBMISSION_FIELDS: tuple[str, ...] = (
    "amount_submitted",
    "submitted_date",
)

SETTLEMENT_FIELDS: tuple[str, ...] = (
    "amount_approved",
    "amount_denied",
    "amount_unprocessed",
    "deductible_applied",
    "copay_applied",
    "settlement_date",
    "settlement_number",
    "settlement_notes",
)

ALL_CLAIM_FIELDS: tuple[str, ...] = CORE_FIELDS + SUBMISSION_FIELDS + SETTLEMENT_FIELDS


# =============================================================================
# Status Tables
# =============================================================================


TRANSITIONS: Mapping[ClaimStatus, frozenset[ClaimStatus]] = MappingProxyType(
    {
        S.DRAFT: frozenset({S.IN_REVIEW, S.CANCELLED}),
        S.IN_REVIEW: frozenset({S.SUBMITTED, S.RETURNED, S.CANCELLED}),
        S.SUBMITTED: frozenset({S.PENDING_INFO, S.SETTLED, S.CANCELLED}),
        S.PENDING_INFO: frozenset({S.SUBMITTED, S.CANCELLED}),
        S.RETURNED: frozenset(),
        S.SETTLED: frozenset(),
        S.CANCELLED: frozenset(),
    }
)

TERMINAL_STATUSES: frozenset[ClaimStatus] = frozenset({S.RETURNED, S.SETTLED, S.CANCELLED})

EDITABLE_FIELDS: Mapping[ClaimStatus, tuple[str, ...]] = MappingProxyType(
    {
        S.DRAFT: CORE_FIELDS,
        S.IN_REVIEW: CORE_FIELDS + SUBMISSION_FIELDS,
        S.SUBMITTED: SETTLEMENT_FIELDS,
        S.PENDING_INFO: (),
        S.RETURNED: (),
        S.SETTLED: (),
        S.CANCELLED: (),
    }
)

# Fields that must be non-blank for a claim to be in the status
INVARIANTS: Mapping[ClaimStatus, tuple[str, ...]] = MappingProxyType(
    {
        S.DRAFT: (),
        S.IN_REVIEW: CORE_FIELDS,
        S.SUBMITTED: CORE_FIELDS + SUBMISSION_FIELDS,
        S.PENDING_INFO: CORE_FIELDS + SUBMISSION_FIELDS,
        S.RETURNED: CORE_FIELDS,
        S.SETTLED: CORE_FIELDS + SUBMISSION_FIELDS + SETTLEMENT_FIELDS,
        S.CANCELLED: (),
    }
)

# (from, to) pairs needing a reason; a None "from" matches any status
REASON_REQUIRED: frozenset[tuple[ClaimStatus | None, ClaimStatus]] = frozenset(
    {
        (S.IN_REVIEW, S.RETURNED),
        (S.SUBMITTED, S.PENDING_INFO),
        (S.PENDING_INFO, S.SUBMITTED),
        (None, S.CANCELLED),
    }
)


def _check_totality() -> None:
    """Fail at import if a status is missing from any table."""
    statuses = set(ClaimStatus)
    for name, table in (
        ("TRANSITIONS", TRANSITIONS),
        ("EDITABLE_FIELDS", EDITABLE_FIELDS),
        ("INVARIANTS", INVARIANTS),
    ):
        missing = statuses - set(table)
        if missing:
            names = ", ".join(sorted(s.value for s in missing))
            raise RuntimeError(f"{name} has no entry for: {names}")
    for status, targets in TRANSITIONS.items():
        if (status in TERMINAL_STATUSES) != (not targets):
            raise RuntimeError(f"Terminal status table disagrees with transitions for {status.value}")


_check_totality()


# =============================================================================
# Queries
# =============================================================================


def can_transition(from_status: ClaimStatus, to_status: ClaimStatus) -> bool:
    """True if ``to_status`` is a listed successor of ``from_status``."""
    return to_status in TRANSITIONS[from_status]


def is_terminal(status: ClaimStatus) -> bool:
    return status in TERMINAL_STATUSES


def get_allowed_transitions(status: ClaimStatus) -> list[ClaimStatus]:
    """Successors of ``status`` in declaration order of ``ClaimStatus``."""
    targets = TRANSITIONS[status]
    return [s for s in ClaimStatus if s in targets]


def get_editable_fields(status: ClaimStatus) -> tuple[str, ...]:
    return EDITABLE_FIELDS[status]


def get_invariants(status: ClaimStatus) -> tuple[str, ...]:
    return INVARIANTS[status]


def is_reason_required(from_status: ClaimStatus, to_status: ClaimStatus) -> bool:
    return (from_status, to_status) in REASON_REQUIRED or (None, to_status) in REASON_REQUIRED


def is_blank(value: Any) -> bool:
    """None, or a string that is empty after trimming."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def find_violated_fields(required: Iterable[str], values: Mapping[str, Any]) -> list[str]:
    """Required fields whose value in ``values`` is missing or blank, in order."""
    return [name for name in required if is_blank(values.get(name))]


def find_non_editable_fields(status: ClaimStatus, patch_fields: Iterable[str]) -> list[str]:
    """
    Patch keys not editable in ``status``.

    Presence counts, not value: a key set to its current value is still
    an attempted edit.
    """
    editable = set(EDITABLE_FIELDS[status])
    return [name for name in patch_fields if name not in editable]
