"""
Core Enumerations for the Claims Management System.

Status, care type, file, scope, audit and job enumerations shared by
models, schemas and services.
"""

from enum import Enum


# =============================================================================
# Claim Enums
# =============================================================================


class ClaimStatus(str, Enum):
    """Claim lifecycle status."""

    DRAFT = "draft"
    IN_REVIEW = "in_review"
    SUBMITTED = "submitted"
    PENDING_INFO = "pending_info"  # Insurer requested more information
    RETURNED = "returned"
    SETTLED = "settled"
    CANCELLED = "cancelled"


class CareType(str, Enum):
    """Type of care the claim refers to."""

    AMBULATORY = "ambulatory"
    HOSPITALIZATION = "hospitalization"
    EMERGENCY = "emergency"
    DENTAL = "dental"
    VISION = "vision"
    MATERNITY = "maternity"
    PHARMACY = "pharmacy"
    OTHER = "other"


class ClaimFileType(str, Enum):
    """Kind of document attached to a claim."""

    INVOICE = "invoice"
    RECEIPT = "receipt"
    MEDICAL_REPORT = "medical_report"
    PRESCRIPTION = "prescription"
    LAB_RESULT = "lab_result"
    CLAIM_FORM = "claim_form"
    OTHER = "other"


class ClaimFileStatus(str, Enum):
    """Storage status of a claim file."""

    PENDING = "pending"  # Waiting for upload / migration
    READY = "ready"
    FAILED = "failed"


# =============================================================================
# Access Control Enums
# =============================================================================


class ScopeType(str, Enum):
    """Breadth of claims a role may act on."""

    UNLIMITED = "unlimited"  # All claims
    CLIENT = "client"  # Claims of assigned clients
    SELF = "self"  # Only the caller's own affiliate claims


class Permission(str, Enum):
    """Claim permissions (resource:action format)."""

    CLAIMS_READ = "claims:read"
    CLAIMS_CREATE = "claims:create"
    CLAIMS_EDIT = "claims:edit"


# =============================================================================
# Audit / Job Enums
# =============================================================================


class AuditAction(str, Enum):
    """Types of auditable actions."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STATUS_CHANGE = "status_change"


class AuditResourceType(str, Enum):
    """Types of auditable resources."""

    CLAIM = "claim"
    CLAIM_FILE = "claim_file"
    CLAIM_INVOICE = "claim_invoice"


class JobType(str, Enum):
    """Background job names (domain.action)."""

    EMAIL_CLAIM_CREATED = "email.claim_created"
    CLAIM_FILES_MIGRATE = "claim.files_migrate"
    CLAIM_FILE_VERIFY = "claim.file_verify"
    CLAIM_FILE_DELETE = "claim.file_delete"
