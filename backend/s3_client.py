"""
S3 storage for generated documents.
Set AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_REGION, S3_BUCKET.

Blocking boto3 calls run in a worker thread. botocore's own retries are turned
off: RetryPolicy is the only retry budget, and only transient failures
(connection errors, timeouts, throttling, 5xx) are retried.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, TypeVar

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, ConnectionError as BotoConnectionError, HTTPClientError

from errors import StorageFailure
from retry import RetryExhausted, RetryPolicy

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PREFIX = "documents/"
_TRANSIENT_CODES = {
    "RequestTimeout",
    "RequestTimeoutException",
    "Throttling",
    "ThrottlingException",
    "SlowDown",
    "InternalError",
    "ServiceUnavailable",
}
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _status(exc: ClientError) -> int:
    return int(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0)


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (BotoConnectionError, HTTPClientError, ConnectionError, TimeoutError)):
        return True
    if isinstance(exc, ClientError):
        return _error_code(exc) in _TRANSIENT_CODES or _status(exc) >= 500
    return False


def is_not_found(exc: BaseException) -> bool:
    return isinstance(exc, ClientError) and (_error_code(exc) in _NOT_FOUND_CODES or _status(exc) == 404)


def sha256_hex(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


@dataclass(frozen=True)
class StoredObject:
    url: str
    key: str
    size: int
    checksum: str


class S3StorageClient:
    def __init__(
        self,
        bucket: str,
        region: str = "us-east-2",
        *,
        prefix: str = DEFAULT_PREFIX,
        client: Any = None,
        retry: RetryPolicy | None = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 30.0,
    ):
        self.bucket = bucket
        self.region = region
        self.prefix = prefix
        self.retry = retry or RetryPolicy()
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings, client: Any = None) -> "S3StorageClient":
        return cls(
            settings.s3_bucket,
            settings.aws_region,
            prefix=settings.storage_prefix,
            client=client,
            retry=RetryPolicy(
                attempts=settings.storage_max_attempts,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
            ),
            connect_timeout=settings.storage_connect_timeout,
            read_timeout=settings.storage_read_timeout,
        )

    @property
    def client(self) -> Any:
        if self._client is None:
            config = Config(
                region_name=self.region,
                connect_timeout=self.connect_timeout,
                read_timeout=self.read_timeout,
                retries={"total_max_attempts": 1, "mode": "standard"},
            )
            self._client = boto3.client("s3", config=config)
        return self._client

    def key_for(self, file_name: str) -> str:
        return f"{self.prefix}{file_name}"

    def object_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def _call(self, operation: str, key: str | None, fn: Callable[[], T]) -> T:
        if not self.bucket:
            raise StorageFailure(operation, key, "S3 bucket is not configured", attempts=0)
        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            return await asyncio.to_thread(fn)

        try:
            return await self.retry.run(attempt, is_transient, describe=f"S3 {operation} {key or self.bucket}")
        except RetryExhausted as exc:
            raise StorageFailure(operation, key, exc.last_error, attempts=exc.attempts) from exc.last_error
        except StorageFailure:
            raise
        except Exception as exc:
            raise StorageFailure(operation, key, exc, attempts=attempts) from exc

    async def upload(
        self,
        body: bytes,
        key: str,
        content_type: str = "application/pdf",
        original_filename: str | None = None,
    ) -> StoredObject:
        checksum = sha256_hex(body)
        metadata = {
            "original-filename": original_filename or key.rsplit("/", 1)[-1],
            "uploaded-at": datetime.now(timezone.utc).isoformat(),
            "file-size": str(len(body)),
            "sha256": checksum,
        }
        await self._call(
            "upload",
            key,
            lambda: self.client.put_object(
                Bucket=self.bucket, Key=key, Body=body, ContentType=content_type, Metadata=metadata
            ),
        )
        _LOG.info("Uploaded %s (%d bytes) to s3://%s", key, len(body), self.bucket)
        return StoredObject(url=self.object_url(key), key=key, size=len(body), checksum=checksum)

    async def upload_file(
        self,
        path: Path,
        key: str | None = None,
        content_type: str = "application/pdf",
    ) -> StoredObject:
        """Upload a local temp file, then remove it. Removal failure is logged, never raised."""
        path = Path(path)
        key = key or self.key_for(path.name)
        try:
            body = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise StorageFailure("upload", key, exc) from exc
        stored = await self.upload(body, key, content_type, original_filename=path.name)
        try:
            await asyncio.to_thread(path.unlink)
        except OSError as exc:
            _LOG.warning("Failed to remove temp file %s after upload: %s", path, exc)
        return stored

    async def exists(self, key: str) -> bool:
        def head() -> bool:
            try:
                self.client.head_object(Bucket=self.bucket, Key=key)
            except ClientError as exc:
                if is_not_found(exc):
                    return False
                raise
            return True

        return await self._call("exists", key, head)

    async def delete(self, key: str) -> None:
        await self._call("delete", key, lambda: self.client.delete_object(Bucket=self.bucket, Key=key))

    async def download(self, key: str) -> bytes:
        def get() -> bytes:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

        return await self._call("download", key, get)

    async def check_bucket(self) -> bool:
        """True when the bucket is configured and reachable with the current credentials."""
        try:
            await self._call("check_bucket", None, lambda: self.client.head_bucket(Bucket=self.bucket))
        except StorageFailure as exc:
            _LOG.warning("S3 bucket check failed: %s", exc)
            return False
        return True
