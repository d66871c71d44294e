"""
Object storage backends for the file proxy.

Supports AWS S3 and S3-compatible stores (MinIO, R2) through boto3, with
a mock mode for local development.

Unlike a typical storage wrapper, these backends do not raise on error
statuses. A missing key is a 404 response, not an exception: the proxy
router needs the backend's real status to classify it. Exceptions are
reserved for calls that produced no response at all (network failures,
missing credentials), raised as StorageError.
"""

import asyncio
import contextvars
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ...core.mapping.errors import BackendUnavailable
from ...core.mapping.models import BackendResponse
from ...core.mapping.router import StorageBackend
from .models import ObjectListing, StorageErrorBody, StoredObject

logger = logging.getLogger(__name__)

# Headers copied from the store's HTTP response into BackendResponse
PASSTHROUGH_HEADERS = (
    "content-type",
    "content-length",
    "date",
    "etag",
    "last-modified",
)

# Accept value for the GetObject currently running in this context.
# asyncio.to_thread copies the context into the worker thread.
_forwarded_accept: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "forwarded_accept", default=None
)


class StorageError(BackendUnavailable):
    """Raised when a storage call produced no response."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for S3 or S3-compatible storage.

    Credentials are optional: when unset, boto3's default chain is used
    (environment, shared config, instance or task role).
    """
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    max_attempts: int = 3
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 60.0
    # S3 answers DELETE on a missing key with 204; check first so callers see 404
    strict_delete: bool = True


def http_date(moment: Optional[datetime] = None) -> str:
    """RFC 7231 date, as stores send in the Date header."""
    return format_datetime(moment or datetime.now(timezone.utc), usegmt=True)


def json_response(
    status_code: int,
    payload: Any,
    extra_headers: Optional[dict[str, str]] = None,
) -> BackendResponse:
    """Build a BackendResponse carrying a JSON-encoded pydantic model."""
    body = payload.model_dump_json().encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "Content-Length": str(len(body)),
        "Date": http_date(),
    }
    headers.update(extra_headers or {})
    return BackendResponse(status_code=status_code, headers=headers, body=body)


def error_response(
    status_code: int,
    code: str,
    message: str,
    key: Optional[str] = None,
) -> BackendResponse:
    return json_response(
        status_code, StorageErrorBody(code=code, message=message, key=key)
    )


# ---------------------------------------------------------------------------
# S3 Backend
# ---------------------------------------------------------------------------

class S3StorageBackend:
    """
    S3 object storage backend.

    boto3 is synchronous; every call runs in a worker thread via
    asyncio.to_thread so the event loop never blocks on the network.
    Retries are configured on the boto3 client (standard mode), never
    in the router.
    """

    def __init__(self, config: StorageConfig, client: Any = None) -> None:
        """
        Initialize the boto3 S3 client.

        Args:
            config: Bucket, region, endpoint and credential settings.
            client: Pre-built boto3 S3 client (tests pass a stubbed one).
        """
        self._config = config

        if client is None:
            boto_config = Config(
                signature_version="s3v4",
                retries={"max_attempts": config.max_attempts, "mode": "standard"},
                connect_timeout=config.connect_timeout_seconds,
                read_timeout=config.read_timeout_seconds,
            )
            client_args: dict[str, Any] = {
                "region_name": config.region,
                "config": boto_config,
            }
            if config.endpoint_url:
                client_args["endpoint_url"] = config.endpoint_url
            if config.access_key_id and config.secret_access_key:
                client_args["aws_access_key_id"] = config.access_key_id
                client_args["aws_secret_access_key"] = config.secret_access_key
            client = boto3.client("s3", **client_args)

        self._s3_client = client
        self._s3_client.meta.events.register(
            "before-call.s3.GetObject", self._inject_accept_header
        )

        logger.info(
            "Initialized S3 storage backend",
            extra={
                "bucket": config.bucket_name,
                "region": config.region,
                "endpoint": config.endpoint_url,
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    async def list_objects(self, prefix: str, delimiter: str) -> BackendResponse:
        """
        List the direct children of `prefix`.

        Follows continuation tokens so the caller always gets the whole
        listing in one response.
        """
        def _list() -> tuple[ObjectListing, dict[str, str]]:
            paginator = self._s3_client.get_paginator("list_objects_v2")
            listing = ObjectListing(prefix=prefix, delimiter=delimiter)
            headers: dict[str, str] = {}
            for page in paginator.paginate(
                Bucket=self._config.bucket_name,
                Prefix=prefix,
                Delimiter=delimiter,
            ):
                headers = page.get("ResponseMetadata", {}).get("HTTPHeaders", {})
                for item in page.get("Contents", []):
                    listing.objects.append(StoredObject(
                        key=item["Key"],
                        size=item.get("Size", 0),
                        last_modified=item.get("LastModified"),
                        etag=item.get("ETag"),
                    ))
                for common in page.get("CommonPrefixes", []):
                    listing.common_prefixes.append(common["Prefix"])
            listing.key_count = len(listing.objects)
            return listing, headers

        try:
            listing, headers = await self._run(_list)
        except ClientError as e:
            return self._from_client_error(e, prefix)

        extra = {"Date": headers["date"]} if "date" in headers else None
        return json_response(200, listing, extra)

    async def get_object(self, key: str, accept: Optional[str] = None) -> BackendResponse:
        """Fetch an object; `accept` is forwarded as the Accept header."""
        def _get() -> BackendResponse:
            token = _forwarded_accept.set(accept)
            try:
                response = self._s3_client.get_object(
                    Bucket=self._config.bucket_name,
                    Key=key,
                )
            finally:
                _forwarded_accept.reset(token)
            body = response["Body"].read()
            headers = self._passthrough_headers(response)
            if "Content-Type" not in headers and response.get("ContentType"):
                headers["Content-Type"] = response["ContentType"]
            headers.setdefault("Content-Length", str(len(body)))
            return BackendResponse(
                status_code=self._status_of(response),
                headers=headers,
                body=body,
            )

        try:
            return await self._run(_get)
        except ClientError as e:
            return self._from_client_error(e, key)

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
    ) -> BackendResponse:
        """Upload `body` unchanged under `key`."""
        def _put() -> BackendResponse:
            params: dict[str, Any] = {
                "Bucket": self._config.bucket_name,
                "Key": key,
                "Body": body,
            }
            if content_type:
                params["ContentType"] = content_type
            response = self._s3_client.put_object(**params)

            logger.debug(
                "Uploaded object",
                extra={"key": key, "size_bytes": len(body)}
            )

            return BackendResponse(
                status_code=self._status_of(response),
                headers=self._passthrough_headers(response),
            )

        try:
            return await self._run(_put)
        except ClientError as e:
            return self._from_client_error(e, key)

    async def delete_object(self, key: str) -> BackendResponse:
        """Delete `key`; 404 if it does not exist and strict_delete is on."""
        def _delete() -> BackendResponse:
            if self._config.strict_delete:
                self._s3_client.head_object(
                    Bucket=self._config.bucket_name,
                    Key=key,
                )
            response = self._s3_client.delete_object(
                Bucket=self._config.bucket_name,
                Key=key,
            )

            logger.info("Deleted object", extra={"key": key})

            return BackendResponse(
                status_code=self._status_of(response),
                headers=self._passthrough_headers(response),
            )

        try:
            return await self._run(_delete)
        except ClientError as e:
            return self._from_client_error(e, key)

    async def check(self) -> None:
        """Verify the bucket is reachable. Raises StorageError if not."""
        try:
            await self._run(
                self._s3_client.head_bucket, Bucket=self._config.bucket_name
            )
        except ClientError as e:
            raise StorageError(f"Bucket check failed: {e}") from e

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _run(self, fn: Callable[..., Any], **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except BotoCoreError as e:
            logger.error(
                "Storage call failed",
                extra={"bucket": self._config.bucket_name, "error": str(e)}
            )
            raise StorageError(f"Storage call failed: {e}") from e

    @staticmethod
    def _inject_accept_header(params: dict[str, Any], **kwargs: Any) -> None:
        accept = _forwarded_accept.get()
        if accept:
            params.setdefault("headers", {})["Accept"] = accept

    @staticmethod
    def _status_of(response: dict[str, Any]) -> int:
        return int(response.get("ResponseMetadata", {}).get("HTTPStatusCode", 200))

    @staticmethod
    def _passthrough_headers(response: dict[str, Any]) -> dict[str, str]:
        raw = response.get("ResponseMetadata", {}).get("HTTPHeaders", {})
        headers: dict[str, str] = {}
        for name in PASSTHROUGH_HEADERS:
            if name in raw:
                headers["-".join(part.capitalize() for part in name.split("-"))] = raw[name]
        return headers

    def _from_client_error(self, error: ClientError, key: str) -> BackendResponse:
        """Turn a botocore ClientError back into the status S3 sent."""
        response = error.response or {}
        metadata = response.get("ResponseMetadata", {})
        details = response.get("Error", {})
        status_code = metadata.get("HTTPStatusCode")
        if status_code is None:
            # HEAD errors carry no body, only the numeric code
            code = str(details.get("Code", ""))
            status_code = int(code) if code.isdigit() else 500
        status_code = int(status_code)

        logger.warning(
            "Storage returned error status",
            extra={
                "key": key,
                "backend_status": status_code,
                "code": details.get("Code"),
            }
        )

        backend = error_response(
            status_code,
            code=str(details.get("Code", "Unknown")),
            message=str(details.get("Message", "")),
            key=key,
        )
        date = metadata.get("HTTPHeaders", {}).get("date")
        if date:
            return BackendResponse(
                status_code=backend.status_code,
                headers={**backend.headers, "Date": date},
                body=backend.body,
            )
        return backend


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _MockObject:
    body: bytes
    content_type: str
    last_modified: datetime
    etag: str


class MockStorageBackend:
    """
    In-memory object store for local development and tests.

    Mirrors S3's statuses: 200 for reads and writes, 204 for deletes,
    404 for missing keys (deletes included, matching strict_delete).
    """

    def __init__(self) -> None:
        self._objects: dict[str, _MockObject] = {}
        logger.info("Initialized mock storage backend (in-memory)")

    async def list_objects(self, prefix: str, delimiter: str) -> BackendResponse:
        listing = ObjectListing(prefix=prefix, delimiter=delimiter)
        seen_prefixes: set[str] = set()

        for key in sorted(self._objects):
            if not key.startswith(prefix):
                continue
            remainder = key[len(prefix):]
            if delimiter and delimiter in remainder:
                sub_prefix = prefix + remainder.split(delimiter, 1)[0] + delimiter
                if sub_prefix not in seen_prefixes:
                    seen_prefixes.add(sub_prefix)
                    listing.common_prefixes.append(sub_prefix)
                continue
            stored = self._objects[key]
            listing.objects.append(StoredObject(
                key=key,
                size=len(stored.body),
                last_modified=stored.last_modified,
                etag=stored.etag,
            ))

        listing.key_count = len(listing.objects)
        return json_response(200, listing)

    async def get_object(self, key: str, accept: Optional[str] = None) -> BackendResponse:
        stored = self._objects.get(key)
        if stored is None:
            return error_response(404, "NoSuchKey", "The specified key does not exist.", key)

        return BackendResponse(
            status_code=200,
            headers={
                "Content-Type": stored.content_type,
                "Content-Length": str(len(stored.body)),
                "Date": http_date(),
                "ETag": stored.etag,
                "Last-Modified": http_date(stored.last_modified),
            },
            body=stored.body,
        )

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
    ) -> BackendResponse:
        etag = '"' + hashlib.md5(body).hexdigest() + '"'
        self._objects[key] = _MockObject(
            body=bytes(body),
            content_type=content_type or "binary/octet-stream",
            last_modified=datetime.now(timezone.utc),
            etag=etag,
        )

        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(body)}
        )

        return BackendResponse(
            status_code=200,
            headers={"Date": http_date(), "ETag": etag, "Content-Length": "0"},
        )

    async def delete_object(self, key: str) -> BackendResponse:
        if key not in self._objects:
            return error_response(404, "NoSuchKey", "The specified key does not exist.", key)

        del self._objects[key]
        logger.debug("Deleted object from mock storage", extra={"key": key})
        return BackendResponse(status_code=204, headers={"Date": http_date()})

    async def check(self) -> None:
        return None

    def object_body(self, key: str) -> Optional[bytes]:
        """Raw stored bytes for `key`, or None. Used by tests."""
        stored = self._objects.get(key)
        return stored.body if stored else None


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_backend(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageBackend:
    """
    Create a storage backend based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory backend

    Returns:
        StorageBackend implementation (S3 or Mock)
    """
    if mock_mode:
        return MockStorageBackend()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageBackend(config)
