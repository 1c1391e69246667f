import asyncio
from datetime import datetime
from uuid import uuid4

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from resumegen.config import Settings
from resumegen.errors import StorageError
from resumegen.utils.logger import logger

DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def build_artifact_path(user_id, now: datetime, ext: str = "docx", random_suffix: bool = False) -> str:
    """documents/{user_id}/{epoch_millis}.{ext}, with an optional random suffix
    so concurrent workers cannot collide on the same millisecond."""
    stamp = str(int(now.timestamp()) * 1000 + now.microsecond // 1000)
    if random_suffix:
        stamp = f"{stamp}-{uuid4().hex[:8]}"
    return f"documents/{user_id}/{stamp}.{ext}"


def create_s3_client(settings: Settings):
    return boto3.client(
        "s3",
        region_name=settings.aws_s3_region,
        endpoint_url=settings.aws_s3_endpoint_url,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        config=Config(signature_version="s3v4"),
    )


class ArtifactStore:
    """S3 bucket holding rendered documents.

    One instance per process. boto3 calls block, so the async methods run
    them in a worker thread.
    """

    def __init__(self, client, bucket: str):
        self._client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings, client=None) -> "ArtifactStore":
        return cls(client or create_s3_client(settings), settings.aws_s3_bucket)

    def put_sync(self, data: bytes, path: str, content_type: str = DOCX_CONTENT_TYPE) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload S3 object {path}: {e}")
            raise StorageError(f"Upload failed for {path}") from e
        logger.info("artifact.uploaded", extra={"storage_path": path})
        return path

    def signed_read_url_sync(self, path: str, ttl_seconds: int = 3600) -> str:
        try:
            url = self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=ttl_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to sign S3 object {path}: {e}")
            raise StorageError("Could not create download link") from e
        logger.info(f"Generated presigned download URL for key: {path}")
        return url

    async def put(self, data: bytes, path: str, content_type: str = DOCX_CONTENT_TYPE) -> str:
        """Upload bytes to `path`. Returns the stored path."""
        return await asyncio.to_thread(self.put_sync, data, path, content_type)

    async def signed_read_url(self, path: str, ttl_seconds: int = 3600) -> str:
        """Mint a time-limited GET URL for `path`. Never persisted."""
        return await asyncio.to_thread(self.signed_read_url_sync, path, ttl_seconds)
