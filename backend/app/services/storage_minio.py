"""MinIO/S3 storage backend implementation."""
from typing import Optional
import io
import json
import logging

from minio import Minio
from minio.error import S3Error

from app.config import get_settings
from app.services.storage_base import StorageBackend

logger = logging.getLogger(__name__)
settings = get_settings()

# Prefixes the reconciler and repair tracker write to
PUBLIC_PREFIXES = ("attachments/", "repairs/")


def public_read_policy(bucket: str, prefixes) -> dict:
    """Bucket policy granting anonymous s3:GetObject under the prefixes."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket}/{prefix}*" for prefix in prefixes],
            }
        ],
    }


class MinIOStorageBackend(StorageBackend):
    """Storage backend using MinIO/S3.

    Attachments are linked from history rows and repair reports that
    outlive any presigned URL expiry, so objects under PUBLIC_PREFIXES are
    made anonymously readable and addressed by their public bucket URL.
    """

    def __init__(self):
        self.client = Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
        )
        self.bucket = settings.MINIO_BUCKET
        self._ensure_bucket()
        self._ensure_public_read()

    def _ensure_bucket(self):
        """Ensure the bucket exists."""
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
        except S3Error as e:
            logger.error("Error ensuring bucket %s: %s", self.bucket, e)

    def _ensure_public_read(self):
        """Allow anonymous GET on the attachment prefixes."""
        policy = public_read_policy(self.bucket, PUBLIC_PREFIXES)
        try:
            self.client.set_bucket_policy(self.bucket, json.dumps(policy))
        except S3Error as e:
            logger.error("Error setting read policy on bucket %s: %s", self.bucket, e)

    def upload_bytes(
        self,
        data: bytes,
        object_name: str,
        content_type: Optional[str] = None,
    ) -> str:
        self.client.put_object(
            self.bucket,
            object_name,
            io.BytesIO(data),
            len(data),
            content_type=content_type or "application/octet-stream",
        )
        return object_name

    def get_url(self, object_name: str) -> str:
        protocol = "https" if settings.MINIO_SECURE else "http"
        public_endpoint = settings.MINIO_PUBLIC_ENDPOINT or settings.MINIO_ENDPOINT
        return f"{protocol}://{public_endpoint}/{self.bucket}/{object_name}"

    def delete_object(self, object_name: str) -> None:
        self.client.remove_object(self.bucket, object_name)

    def object_exists(self, object_name: str) -> bool:
        try:
            self.client.stat_object(self.bucket, object_name)
            return True
        except S3Error:
            return False
