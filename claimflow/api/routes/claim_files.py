"""
Claim Files API Endpoints.

Staged uploads (before a claim exists) and files of existing claims.
Uploads and downloads go straight to object storage via presigned URLs.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from claimflow.api.config import settings
from claimflow.api.deps import (
    get_audit_context,
    get_claim_files_service,
    get_current_user,
    require_permissions,
    require_scope,
)
from claimflow.core.enums import Permission, ScopeType
from claimflow.schemas.claim_file import (
    ClaimFileResponse,
    ClaimFileUploadResponse,
    DownloadUrlResponse,
    FileUploadRequest,
    PendingFileUploadRequest,
    PendingFileUploadResponse,
)
from claimflow.services.audit import AuditContext
from claimflow.services.claim_files_service import ClaimFilesService
from claimflow.services.scope import SessionUser

router = APIRouter(
    prefix="/api/v1/claims",
    tags=["claim-files"],
)

unlimited_only = [Depends(require_scope(ScopeType.UNLIMITED))]


@router.post(
    "/files/pending",
    response_model=PendingFileUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_pending_upload(
    body: PendingFileUploadRequest,
    user: SessionUser = Depends(get_current_user),
    service: ClaimFilesService = Depends(get_claim_files_service),
) -> PendingFileUploadResponse:
    """Stage an upload for a claim that is about to be created."""
    pending = await service.create_pending_upload(user, body)
    return PendingFileUploadResponse(
        file_id=pending.file_id,
        session_key=pending.session_key,
        upload_url=pending.upload_url,
        expires_at=pending.expires_at,
    )


@router.get(
    "/{claim_id}/files",
    response_model=list[ClaimFileResponse],
    dependencies=unlimited_only,
)
async def list_claim_files(
    claim_id: UUID,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_READ.value)),  # noqa: ARG001
    service: ClaimFilesService = Depends(get_claim_files_service),
) -> list[ClaimFileResponse]:
    files = await service.list_files(claim_id)
    return [ClaimFileResponse.model_validate(f) for f in files]


@router.post(
    "/{claim_id}/files/upload-url",
    response_model=ClaimFileUploadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=unlimited_only,
)
async def create_claim_file_upload(
    claim_id: UUID,
    body: FileUploadRequest,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_EDIT.value)),
    service: ClaimFilesService = Depends(get_claim_files_service),
    context: AuditContext = Depends(get_audit_context),
) -> ClaimFileUploadResponse:
    upload = await service.create_upload(user, claim_id, body, context)
    return ClaimFileUploadResponse(
        file=ClaimFileResponse.model_validate(upload.file),
        upload_url=upload.upload_url,
    )


@router.get(
    "/{claim_id}/files/{file_id}/download-url",
    response_model=DownloadUrlResponse,
    dependencies=unlimited_only,
)
async def get_claim_file_download_url(
    claim_id: UUID,
    file_id: UUID,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_READ.value)),  # noqa: ARG001
    service: ClaimFilesService = Depends(get_claim_files_service),
) -> DownloadUrlResponse:
    url = await service.get_download_url(claim_id, file_id)
    return DownloadUrlResponse(url=url, expires_in=settings.PRESIGNED_URL_EXPIRE_SECONDS)


@router.delete(
    "/{claim_id}/files/{file_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=unlimited_only,
)
async def delete_claim_file(
    claim_id: UUID,
    file_id: UUID,
    user: SessionUser = Depends(require_permissions(Permission.CLAIMS_EDIT.value)),
    service: ClaimFilesService = Depends(get_claim_files_service),
    context: AuditContext = Depends(get_audit_context),
) -> Response:
    await service.delete_file(user, claim_id, file_id, context)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
