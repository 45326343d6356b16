"""Pydantic Schemas for claim files and staged uploads."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from claimflow.api.config import settings
from claimflow.core.enums import ClaimFileStatus, ClaimFileType


class FileUploadRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1, max_length=100)
    file_type: ClaimFileType = ClaimFileType.OTHER
    file_size: Optional[int] = Field(None, gt=0, description="Size in bytes")

    @field_validator("file_size")
    @classmethod
    def validate_file_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v > settings.upload_max_size_bytes:
            raise ValueError(f"File exceeds the {settings.UPLOAD_MAX_SIZE_MB} MB limit")
        return v

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        if "/" in v or "\\" in v:
            raise ValueError("File name must not contain path separators")
        return v.strip()


class PendingFileUploadRequest(FileUploadRequest):
    """Upload staged before the claim exists; omit ``session_key`` to start a session."""

    session_key: Optional[str] = Field(None, pattern=r"^[a-f0-9]{32}$")


class PendingFileUploadResponse(BaseModel):
    file_id: UUID
    session_key: str
    upload_url: str
    expires_at: datetime


class ClaimFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    claim_id: UUID
    file_type: ClaimFileType
    file_name: str
    file_size: Optional[int] = None
    content_type: Optional[str] = None
    status: ClaimFileStatus
    created_at: Optional[datetime] = None


class ClaimFileUploadResponse(BaseModel):
    file: ClaimFileResponse
    upload_url: str


class DownloadUrlResponse(BaseModel):
    url: str
    expires_in: int
