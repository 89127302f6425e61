"""Object storage service for uploads and generated artifacts."""

import logging
from io import BytesIO
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from starlette.concurrency import run_in_threadpool

from mindsy.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class StorageService:
    """Service for managing S3-compatible object storage.

    Two buckets are used: ``uploads_bucket`` holds source audio and PDFs,
    ``generated_notes_bucket`` holds the rendered PDF, markdown and
    transcript for each job. All public methods are async and run the
    blocking boto3 calls in a worker thread.
    """

    def __init__(self):
        self._client = None
        self.uploads_bucket = settings.uploads_bucket
        self.generated_bucket = settings.generated_notes_bucket

    @property
    def client(self):
        """Lazy initialization of S3 client."""
        if self._client is None:
            endpoint_url = f"{'https' if settings.storage_use_ssl else 'http'}://{settings.storage_endpoint}"
            self._client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=settings.storage_access_key,
                aws_secret_access_key=settings.storage_secret_key,
                region_name=settings.storage_region,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    async def signed_url(
        self, bucket: str, path: str, expires_in: Optional[int] = None
    ) -> str:
        """Generate a presigned GET URL for an object."""
        return await run_in_threadpool(
            self.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": bucket, "Key": path},
            ExpiresIn=expires_in or settings.signed_url_expiry_seconds,
        )

    async def upload_bytes(
        self, bucket: str, path: str, content: bytes, content_type: str
    ) -> str:
        """Upload raw bytes, overwriting any existing object. Returns the path."""
        await run_in_threadpool(
            self.client.upload_fileobj,
            BytesIO(content),
            bucket,
            path,
            ExtraArgs={"ContentType": content_type},
        )
        return path

    def _get_object(self, bucket: str, path: str) -> bytes:
        response = self.client.get_object(Bucket=bucket, Key=path)
        return response["Body"].read()

    async def download(self, bucket: str, path: str) -> bytes:
        """Download an object. Raises ``ClientError`` when it is missing."""
        return await run_in_threadpool(self._get_object, bucket, path)

    async def download_any(self, path: str) -> Optional[bytes]:
        """Look an object up in the generated bucket, then in uploads.

        Returns None when neither bucket has it.
        """
        for bucket in (self.generated_bucket, self.uploads_bucket):
            try:
                return await self.download(bucket, path)
            except ClientError as e:
                logger.debug(f"{path} not found in {bucket}: {e}")
        return None

    def _delete_keys(self, bucket: str, paths: list[str]):
        objects = [{"Key": p} for p in paths]
        self.client.delete_objects(Bucket=bucket, Delete={"Objects": objects})

    async def delete_objects(self, bucket: str, paths: list[str]):
        """Delete a batch of objects from one bucket."""
        paths = [p for p in paths if p]
        if not paths:
            return
        await run_in_threadpool(self._delete_keys, bucket, paths)

    def health_check(self) -> bool:
        """Check if storage is accessible."""
        try:
            self.client.head_bucket(Bucket=self.generated_bucket)
            return True
        except Exception:
            return False


# Singleton instance
storage_service = StorageService()
