"""
Shared fixtures.

RecordingBackend stands in for object storage wherever a test needs to
see exactly which backend calls were made (or that none were).
"""

import asyncio
from typing import Optional

import pytest

from file_proxy.core.mapping import BackendResponse


class RecordingBackend:
    """
    StorageBackend that records calls and returns a canned response.

    Set `response`, `error`, `delay_seconds` or `check_error` before exercising the code
    under test.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.response = BackendResponse(
            status_code=200,
            headers={
                "Content-Type": "application/json",
                "Content-Length": "2",
                "Date": "Sun, 18 Oct 2026 10:00:00 GMT",
            },
            body=b"{}",
        )
        self.error: Optional[Exception] = None
        self.delay_seconds: float = 0.0
        self.check_error: Optional[Exception] = None

    async def _record(self, operation: str, **kwargs) -> BackendResponse:
        self.calls.append((operation, kwargs))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return self.response

    async def list_objects(self, prefix: str, delimiter: str) -> BackendResponse:
        return await self._record("list_objects", prefix=prefix, delimiter=delimiter)

    async def get_object(self, key: str, accept: Optional[str] = None) -> BackendResponse:
        return await self._record("get_object", key=key, accept=accept)

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
    ) -> BackendResponse:
        return await self._record("put_object", key=key, body=body, content_type=content_type)

    async def delete_object(self, key: str) -> BackendResponse:
        return await self._record("delete_object", key=key)

    async def check(self) -> None:
        if self.check_error is not None:
            raise self.check_error


@pytest.fixture
def recording_backend() -> RecordingBackend:
    return RecordingBackend()


# 1x1 transparent PNG; contains bytes that are not valid UTF-8
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\xff"
    b"\xff?\x00\x05\xfe\x02\xfe\xa7\x9a\xa0\x8a\x00\x00\x00\x00IEND\xaeB`\x82"
)


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES
