"""S3 service for study file storage and retrieval."""

import logging
from functools import lru_cache

import boto3
from botocore.exceptions import ClientError

from skoolife.config import get_settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an S3 operation fails."""


class StorageService:
    """Service for interacting with AWS S3 for study files."""

    def __init__(self):
        """Initialize S3 client with credentials from settings."""
        settings = get_settings()
        client_kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
            "region_name": settings.aws_s3_region,
        }
        # Support MinIO / LocalStack by pointing to a custom endpoint
        if settings.aws_s3_endpoint_url:
            client_kwargs["endpoint_url"] = settings.aws_s3_endpoint_url

        self.s3_client = boto3.client("s3", **client_kwargs)
        self.bucket = settings.aws_s3_bucket
        self.max_upload_size_bytes = settings.max_upload_size_bytes

    async def generate_presigned_upload_url(
        self,
        file_key: str,
        content_type: str,
        expiration: int = 300,
    ) -> dict:
        """
        Generate presigned POST data for a direct upload from the client.

        Args:
            file_key: S3 object key (path) for the file
            content_type: MIME type the client must send
            expiration: URL lifetime in seconds

        Returns:
            Dictionary with `url` and `fields` for a multipart POST
        """
        try:
            return self.s3_client.generate_presigned_post(
                self.bucket,
                file_key,
                Fields={"Content-Type": content_type},
                Conditions=[
                    {"Content-Type": content_type},
                    ["content-length-range", 1, self.max_upload_size_bytes],
                ],
                ExpiresIn=expiration,
            )
        except ClientError as e:
            raise StorageError(f"Failed to generate presigned upload URL: {e}") from e

    async def generate_presigned_download_url(self, file_key: str, expiration: int = 3600) -> str:
        """Signed GET URL for a stored object."""
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": file_key},
                ExpiresIn=expiration,
            )
        except ClientError as e:
            raise StorageError(f"Failed to generate download URL: {e}") from e

    async def get_object_size(self, file_key: str) -> int | None:
        """
        Size in bytes of a stored object.

        Returns None when the object does not exist (upload never happened).
        """
        try:
            response = self.s3_client.head_object(Bucket=self.bucket, Key=file_key)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            if error_code in ("404", "NoSuchKey", "NotFound"):
                return None
            raise StorageError(f"Failed to read object metadata: {e}") from e
        return int(response["ContentLength"])

    async def delete_object(self, file_key: str) -> None:
        """Delete an object from S3."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=file_key)
        except ClientError as e:
            raise StorageError(f"Failed to delete file from S3: {e}") from e
        logger.info("Deleted S3 object %s", file_key)


@lru_cache
def get_storage_service() -> StorageService:
    """Shared storage service instance."""
    return StorageService()
