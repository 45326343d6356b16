"""
MinIO Object Storage Service
Presigned upload/download URLs and object moves for claim files
Source: https://min.io/docs/minio/linux/developers/python/minio-py.html
"""

from datetime import timedelta
from functools import lru_cache

from anyio import to_thread
from minio import Minio
from minio.commonconfig import CopySource
from minio.error import S3Error

from claimflow.api.config import settings
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


class StorageService:
    """
    Claim file storage on a single MinIO bucket.

    Async methods run the blocking MinIO client in a worker thread; the
    ``*_sync`` variants are used directly from Celery tasks.
    """

    def __init__(self, client: Minio | None = None, bucket: str | None = None):
        self.client = client or Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
            region=settings.MINIO_REGION,
        )
        self.bucket = bucket or settings.MINIO_BUCKET_CLAIMS
        self.expires = timedelta(seconds=settings.PRESIGNED_URL_EXPIRE_SECONDS)

    async def presigned_upload_url(self, key: str) -> str:
        try:
            return await to_thread.run_sync(self.presigned_upload_url_sync, key)
        except S3Error as e:
            logger.error(f"Error generating upload URL for {key}: {e}")
            raise

    async def presigned_download_url(self, key: str, file_name: str | None = None) -> str:
        try:
            return await to_thread.run_sync(self.presigned_download_url_sync, key, file_name)
        except S3Error as e:
            logger.error(f"Error generating download URL for {key}: {e}")
            raise

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def ensure_bucket_sync(self) -> None:
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)
            logger.info(f"Created bucket: {self.bucket}")

    def presigned_upload_url_sync(self, key: str) -> str:
        return self.client.presigned_put_object(self.bucket, key, expires=self.expires)

    def presigned_download_url_sync(self, key: str, file_name: str | None = None) -> str:
        response_headers = None
        if file_name:
            response_headers = {
                "response-content-disposition": f'attachment; filename="{file_name}"'
            }
        return self.client.presigned_get_object(
            self.bucket,
            key,
            expires=self.expires,
            response_headers=response_headers,
        )

    def object_exists_sync(self, key: str) -> bool:
        try:
            self.client.stat_object(self.bucket, key)
            return True
        except S3Error as e:
            if e.code in ("NoSuchKey", "NoSuchObject", "NotFound"):
                return False
            raise

    def move_object_sync(self, source_key: str, target_key: str) -> None:
        """Copy ``source_key`` to ``target_key`` then remove the source."""
        self.client.copy_object(self.bucket, target_key, CopySource(self.bucket, source_key))
        self.client.remove_object(self.bucket, source_key)
        logger.info(f"Moved object {source_key} -> {target_key}")

    def delete_object_sync(self, key: str) -> None:
        self.client.remove_object(self.bucket, key)
        logger.info(f"Deleted object: {key}")


@lru_cache
def get_storage() -> StorageService:
    """Shared storage client (created lazily so imports need no MinIO)."""
    return StorageService()


# =============================================================================
# Object keys
# =============================================================================


def pending_file_key(user_id, session_key: str, file_id, ext: str) -> str:  # type: ignore[no-untyped-def]
    """Staging location for an upload made before its claim exists."""
    return f"temp/claims/{user_id}/{session_key}/{file_id}{ext}"


def claim_file_key(client_id, claim_id, file_id, ext: str) -> str:  # type: ignore[no-untyped-def]
    """Permanent location of a claim file."""
    return f"clients/{client_id}/claims/{claim_id}/{file_id}{ext}"
