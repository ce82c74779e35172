import logging
import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from app.platform.ports.object_storage import ObjectStoragePort
from app.core.config import settings
from app.core.errors import StorageError, ObjectNotFoundError

log = logging.getLogger("storage.s3")

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

class S3Storage(ObjectStoragePort):
    """S3-compatible blob store (AWS, Backblaze B2, MinIO)."""

    def __init__(self, client=None, bucket: str | None = None):
        if client is None:
            session = boto3.session.Session(
                aws_access_key_id=settings.S3_ACCESS_KEY,
                aws_secret_access_key=settings.S3_SECRET_KEY,
                region_name=settings.S3_REGION,
            )
            client = session.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT_URL,
                config=Config(signature_version="s3v4"),
            )
        self.s3 = client
        self.bucket = bucket or settings.S3_BUCKET

    def _locator(self, key: str) -> str:
        if settings.S3_PUBLIC_BASE_URL:
            return f"{settings.S3_PUBLIC_BASE_URL.rstrip('/')}/{key}"
        endpoint = settings.S3_ENDPOINT_URL or self.s3.meta.endpoint_url
        return f"{endpoint.rstrip('/')}/{self.bucket}/{key}"

    def presign_download(self, key: str, expires_seconds: int = 3600) -> str:
        try:
            return self.s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(detail=f"presign failed for {key}: {e}") from e

    def put_bytes(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.s3.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(detail=f"put failed for {key}: {e}") from e
        log.debug("put key=%s bytes=%d", key, len(data))
        return self._locator(key)

    def delete(self, key: str) -> None:
        # delete_object succeeds on missing keys, so check first to report not-found
        try:
            self.s3.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(detail=f"no object at {key}") from e
            raise StorageError(detail=f"head failed for {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(detail=f"head failed for {key}: {e}") from e
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(detail=f"delete failed for {key}: {e}") from e

    def list_keys(self, prefix: str) -> list[str]:
        keys: list[str] = []
        try:
            paginator = self.s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except (BotoCoreError, ClientError) as e:
            raise StorageError(detail=f"list failed for prefix {prefix}: {e}") from e
        return keys
