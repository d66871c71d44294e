"""
Value types passed between the mapping components.

Everything here is immutable. Rule tables and policies are built once at
startup; requests and responses are created per call and thrown away.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional


class BackendOperation(Enum):
    """Object-storage operations the backend exposes."""
    LIST = "LIST"
    GET = "GET"
    PUT = "PUT"
    DELETE = "DELETE"


class ResourceKind(Enum):
    """The two REST resources published by the API."""
    FILE_LIST = "/users/{userId}/files"
    FILE = "/users/{userId}/files/{fileName}"


class RequestState(Enum):
    """
    Lifecycle of a single proxied request.

    REJECTED and BACKEND_ERROR are terminal failure states; both still
    produce a CORS-augmented response.
    """
    RECEIVED = "received"
    RESOLVED = "resolved"
    TRANSLATED = "translated"
    BACKEND_DISPATCHED = "backend_dispatched"
    CLASSIFIED = "classified"
    RESPONDED = "responded"
    REJECTED = "rejected"
    BACKEND_ERROR = "backend_error"


@dataclass(frozen=True)
class ResolvedPath:
    """
    Outcome of path resolution.

    For FILE_LIST, `key` is the listing prefix (`{userId}/`) and
    `delimiter` is set; for FILE, `key` is the full object key.
    """
    resource: ResourceKind
    user_id: str
    key: str
    file_name: Optional[str] = None
    delimiter: Optional[str] = None


@dataclass(frozen=True)
class InboundRequest:
    """
    Framework-agnostic view of an HTTP request.

    `path` is the raw (percent-encoded) path relative to the stage root.
    Header names are expected in lower case.
    """
    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name.lower())
        if value is None or value == "":
            return None
        return value


@dataclass(frozen=True)
class BackendRequest:
    """A fully specified call against the storage backend."""
    operation: BackendOperation
    key: str
    delimiter: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    binary: bool = False


@dataclass(frozen=True)
class BackendResponse:
    """Raw result of a backend call, before classification."""
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@dataclass(frozen=True)
class ProxyResponse:
    """What the router hands back to the HTTP layer."""
    status_code: int
    headers: Mapping[str, str]
    body: bytes = b""
    binary: bool = False
    state: RequestState = RequestState.RESPONDED
