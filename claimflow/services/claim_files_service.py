"""
Claim Files Service.

Two upload flows share one storage bucket:

- Staged: files uploaded while the claim form is still being filled in are
  recorded as ``PendingClaimFile`` rows under a session key and attached by
  ``ClaimsService.create_claim``.
- Direct: files added to an existing claim get a ``ClaimFile`` row right
  away and are verified by a delayed background job.
"""

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import PurePosixPath
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from claimflow.api.config import settings
from claimflow.core.enums import AuditAction, AuditResourceType, ClaimFileStatus, JobType
from claimflow.models.claim import Claim, ClaimFile, PendingClaimFile
from claimflow.repositories.claim_files import ClaimFileRepository
from claimflow.repositories.claims import ClaimRepository
from claimflow.schemas.claim_file import FileUploadRequest, PendingFileUploadRequest
from claimflow.services.audit import AuditContext, AuditEvent, AuditService
from claimflow.services.jobs import JobQueue, claim_file_delete_job_id, claim_file_verify_job_id
from claimflow.services.scope import SessionUser
from claimflow.services.storage import (
    StorageService,
    claim_file_key,
    get_storage,
    pending_file_key,
)
from claimflow.utils.errors import BadRequestError, NotFoundError, ValidationError
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)

# Extension -> accepted MIME types
ALLOWED_CONTENT_TYPES: dict[str, frozenset[str]] = {
    ".pdf": frozenset({"application/pdf"}),
    ".png": frozenset({"image/png"}),
    ".jpg": frozenset({"image/jpeg"}),
    ".jpeg": frozenset({"image/jpeg"}),
    ".heic": frozenset({"image/heic", "image/heif"}),
    ".webp": frozenset({"image/webp"}),
    ".doc": frozenset({"application/msword"}),
    ".docx": frozenset(
        {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}
    ),
    ".xls": frozenset({"application/vnd.ms-excel"}),
    ".xlsx": frozenset({"application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"}),
}


def validate_content_type(file_name: str, content_type: str) -> str:
    """
    Check that ``content_type`` matches the file extension.

    Returns:
        The lower-cased extension (with leading dot)

    Raises:
        ValidationError: Unknown extension or mismatched MIME type
    """
    ext = PurePosixPath(file_name).suffix.lower()
    allowed = ALLOWED_CONTENT_TYPES.get(ext)
    if allowed is None:
        raise ValidationError(f"File extension '{ext or file_name}' is not allowed", fields=["file_name"])
    if content_type.split(";")[0].strip().lower() not in allowed:
        raise ValidationError(
            f"Content type {content_type} does not match extension {ext}",
            fields=["content_type"],
        )
    return ext


def new_session_key() -> str:
    """32 hex characters."""
    return secrets.token_hex(16)


@dataclass
class PendingUpload:
    file_id: UUID
    session_key: str
    upload_url: str
    expires_at: datetime


@dataclass
class ClaimFileUpload:
    file: ClaimFile
    upload_url: str


class ClaimFilesService:
    def __init__(
        self,
        session: AsyncSession,
        storage: Optional[StorageService] = None,
        audit: Optional[AuditService] = None,
        jobs: Optional[JobQueue] = None,
        claims: Optional[ClaimRepository] = None,
        files: Optional[ClaimFileRepository] = None,
    ):
        self.session = session
        self.storage = storage or get_storage()
        self.audit = audit or AuditService()
        self.jobs = jobs or JobQueue()
        self.claims = claims or ClaimRepository(session)
        self.files = files or ClaimFileRepository(session)

    async def _require_claim(self, claim_id: UUID) -> Claim:
        claim = await self.claims.get_claim(claim_id)
        if claim is None:
            raise NotFoundError("Claim not found")
        return claim

    async def _require_file(self, claim_id: UUID, file_id: UUID) -> ClaimFile:
        claim_file = await self.files.get(claim_id, file_id)
        if claim_file is None:
            raise NotFoundError("File not found")
        return claim_file

    # =========================================================================
    # Staged uploads
    # =========================================================================

    async def create_pending_upload(
        self,
        user: SessionUser,
        request: PendingFileUploadRequest,
    ) -> PendingUpload:
        ext = validate_content_type(request.file_name, request.content_type)
        session_key = request.session_key or new_session_key()
        file_id = uuid4()
        key = pending_file_key(user.id, session_key, file_id, ext)
        expires_at = datetime.now(UTC) + timedelta(hours=settings.PENDING_FILE_TTL_HOURS)

        upload_url = await self.storage.presigned_upload_url(key)

        await self.files.add_pending(
            PendingClaimFile(
                id=file_id,
                user_id=user.id,
                session_key=session_key,
                file_key=key,
                file_type=request.file_type,
                file_name=request.file_name,
                file_size=request.file_size,
                content_type=request.content_type,
                expires_at=expires_at,
            )
        )
        await self.session.commit()

        logger.info(f"User {user.id} staged upload {file_id} in session {session_key}")
        return PendingUpload(
            file_id=file_id,
            session_key=session_key,
            upload_url=upload_url,
            expires_at=expires_at,
        )

    # =========================================================================
    # Files of an existing claim
    # =========================================================================

    async def list_files(self, claim_id: UUID) -> list[ClaimFile]:
        await self._require_claim(claim_id)
        return await self.files.list_for_claim(claim_id)

    async def create_upload(
        self,
        user: SessionUser,
        claim_id: UUID,
        request: FileUploadRequest,
        context: Optional[AuditContext] = None,
    ) -> ClaimFileUpload:
        claim = await self._require_claim(claim_id)
        ext = validate_content_type(request.file_name, request.content_type)
        file_id = uuid4()
        target_key = claim_file_key(claim.client_id, claim.id, file_id, ext)

        upload_url = await self.storage.presigned_upload_url(target_key)

        claim_file = await self.files.add(
            ClaimFile(
                id=file_id,
                claim_id=claim.id,
                file_type=request.file_type,
                file_name=request.file_name,
                file_size=request.file_size,
                content_type=request.content_type,
                target_key=target_key,
                status=ClaimFileStatus.PENDING,
                uploaded_by_id=user.id,
            )
        )
        await self.session.commit()

        self.jobs.enqueue(
            JobType.CLAIM_FILE_VERIFY,
            {"file_id": str(file_id)},
            job_id=claim_file_verify_job_id(file_id),
            countdown=settings.FILE_VERIFY_DELAY_SECONDS,
        )
        await self.audit.log(
            AuditEvent(
                action=AuditAction.CREATE,
                resource=AuditResourceType.CLAIM_FILE,
                resource_id=str(file_id),
                user_id=user.id,
                metadata={
                    "claim_id": str(claim.id),
                    "file_name": request.file_name,
                    "file_type": request.file_type.value,
                },
                context=context or AuditContext(),
            )
        )
        logger.info(f"User {user.id} added file {file_id} to claim {claim.claim_number}")
        return ClaimFileUpload(file=claim_file, upload_url=upload_url)

    async def get_download_url(self, claim_id: UUID, file_id: UUID) -> str:
        await self._require_claim(claim_id)
        claim_file = await self._require_file(claim_id, file_id)
        if claim_file.status != ClaimFileStatus.READY or not claim_file.target_key:
            raise BadRequestError("File is not available for download yet")
        return await self.storage.presigned_download_url(claim_file.target_key, claim_file.file_name)

    async def delete_file(
        self,
        user: SessionUser,
        claim_id: UUID,
        file_id: UUID,
        context: Optional[AuditContext] = None,
    ) -> None:
        """Soft delete; the storage object is removed by a background job."""
        await self._require_claim(claim_id)
        claim_file = await self._require_file(claim_id, file_id)

        await self.files.soft_delete(file_id)
        await self.session.commit()

        if claim_file.target_key:
            self.jobs.enqueue(
                JobType.CLAIM_FILE_DELETE,
                {"file_id": str(file_id), "target_key": claim_file.target_key},
                job_id=claim_file_delete_job_id(file_id),
            )
        await self.audit.log(
            AuditEvent(
                action=AuditAction.DELETE,
                resource=AuditResourceType.CLAIM_FILE,
                resource_id=str(file_id),
                user_id=user.id,
                metadata={"claim_id": str(claim_id), "file_name": claim_file.file_name},
                context=context or AuditContext(),
            )
        )
        logger.info(f"User {user.id} deleted file {file_id} of claim {claim_id}")
