"""Object storage for patient documents: S3 presigned URLs or a local mock."""

from __future__ import annotations

import logging
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from app.core.config import Settings

logger = logging.getLogger(__name__)


class DocumentStorage(Protocol):
    def generate_upload_url(self, key: str, *, content_type: str, size: int) -> str: ...

    def generate_download_url(self, key: str, *, file_name: str | None = None) -> str: ...

    def object_exists(self, key: str) -> bool: ...

    def delete_object(self, key: str) -> None: ...


def _file_id_from_key(key: str) -> str:
    name = key.rsplit("/", 1)[-1]
    return name.split(".", 1)[0] or "unknown"


class S3Storage:
    def __init__(self, settings: Settings, client=None) -> None:
        self.bucket = settings.aws_s3_bucket_name
        self.upload_expiration = settings.upload_url_expiration_seconds
        self.download_expiration = settings.download_url_expiration_seconds
        self._client = client or boto3.client(
            "s3",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            config=Config(signature_version="s3v4"),
        )

    def generate_upload_url(self, key: str, *, content_type: str, size: int) -> str:
        url = self._client.generate_presigned_url(
            "put_object",
            Params={
                "Bucket": self.bucket,
                "Key": key,
                "ContentType": content_type,
                "ContentLength": size,
            },
            ExpiresIn=self.upload_expiration,
        )
        logger.info("generated upload url", extra={"storage_key": key})
        return url

    def generate_download_url(self, key: str, *, file_name: str | None = None) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if file_name:
            params["ResponseContentDisposition"] = f'attachment; filename="{file_name}"'
        return self._client.generate_presigned_url(
            "get_object", Params=params, ExpiresIn=self.download_expiration
        )

    def object_exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        return True

    def delete_object(self, key: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("deleted storage object", extra={"storage_key": key})


class MockStorage:
    """Stand-in used when no bucket is configured; URLs point at the API host."""

    def __init__(self, settings: Settings) -> None:
        self.base_url = settings.storage_mock_base_url.rstrip("/")
        self.deleted: list[str] = []

    def generate_upload_url(self, key: str, *, content_type: str, size: int) -> str:
        url = f"{self.base_url}/mock-upload/{_file_id_from_key(key)}"
        logger.info(
            "generated mock upload url",
            extra={"storage_key": key, "content_type": content_type},
        )
        return url

    def generate_download_url(self, key: str, *, file_name: str | None = None) -> str:
        return f"{self.base_url}/mock-download/{_file_id_from_key(key)}"

    def object_exists(self, key: str) -> bool:
        return True

    def delete_object(self, key: str) -> None:
        self.deleted.append(key)
        logger.info("mock storage delete", extra={"storage_key": key})


def get_storage(settings: Settings) -> DocumentStorage:
    if settings.storage_configured:
        return S3Storage(settings)
    logger.info("AWS storage not configured, using mock storage")
    return MockStorage(settings)


__all__ = ["DocumentStorage", "MockStorage", "S3Storage", "get_storage"]
