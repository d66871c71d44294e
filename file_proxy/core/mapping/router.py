"""
Proxy router: the entry point of the mapping layer.

Every request walks the same pipeline:

    Received -> Resolved -> Translated -> Backend-Dispatched
             -> Classified -> Responded

Requests that fail resolution or validation end in Rejected without any
backend call. Requests whose backend call returns an error status end in
BackendError, which is still a normal, classified, CORS-augmented
response. The router itself never raises for either case.

This module is framework-agnostic: it does not know about FastAPI or
boto3. The HTTP layer builds an InboundRequest, the storage adapter
implements StorageBackend, and everything in between lives here.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from .classifier import DEFAULT_RESPONSE_RULES, ResponseClassifier, ResponseRule
from .cors import CorsPolicy
from .errors import (
    BackendUnavailable,
    MalformedPath,
    RequestRejected,
    UnclassifiedBackendStatus,
)
from .media import BinaryMediaPolicy
from .models import (
    BackendOperation,
    BackendRequest,
    BackendResponse,
    InboundRequest,
    ProxyResponse,
    RequestState,
    ResourceKind,
)
from .paths import resolve_path
from .translator import DEFAULT_INTEGRATION_RULES, IntegrationRule, RequestTranslator

logger = logging.getLogger(__name__)

# Synthetic backend statuses for failures that never produced a response
TRANSPORT_FAILURE_STATUS = 502
TIMEOUT_STATUS = 504

BACKEND_ERROR_MESSAGES = {
    400: "Storage rejected the request",
    500: "Storage request failed",
}


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class StorageBackend(Protocol):
    """
    Object storage as seen by the router.

    Implementations return the backend's status, headers and body rather
    than raising on error statuses; classification is the router's job.
    They raise BackendUnavailable only when no response was obtained at all.
    """

    async def list_objects(self, prefix: str, delimiter: str) -> BackendResponse:
        """List direct children of `prefix`."""
        ...

    async def get_object(self, key: str, accept: Optional[str] = None) -> BackendResponse:
        """Fetch one object."""
        ...

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
    ) -> BackendResponse:
        """Create or overwrite one object."""
        ...

    async def delete_object(self, key: str) -> BackendResponse:
        """Delete one object."""
        ...

    async def check(self) -> None:
        """Raise BackendUnavailable if the store cannot be reached."""
        ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProxyConfig:
    """
    Everything the router needs besides the backend.

    Built once at startup and shared read-only by all requests.
    """
    cors: CorsPolicy = field(default_factory=CorsPolicy)
    binary_media: BinaryMediaPolicy = field(default_factory=BinaryMediaPolicy)
    response_rules: tuple[ResponseRule, ...] = DEFAULT_RESPONSE_RULES
    integration_rules: tuple[IntegrationRule, ...] = DEFAULT_INTEGRATION_RULES
    max_body_bytes: Optional[int] = None
    backend_timeout_seconds: Optional[float] = None
    data_trace: bool = False


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

def preflight_response(cors: CorsPolicy, path: str) -> ProxyResponse:
    """
    Answer a CORS preflight without touching the backend.

    Advertises the methods of the resource `path` names; unknown or
    malformed paths still get a 200 with the declared method superset.
    """
    try:
        resource: Optional[ResourceKind] = resolve_path(path).resource
    except MalformedPath:
        resource = None

    return ProxyResponse(
        status_code=200,
        headers=cors.headers(resource),
        state=RequestState.RESPONDED,
    )


class ProxyRouter:
    """
    Dispatches inbound requests to the storage backend.

    Issues at most one backend call per request and never retries;
    retry policy belongs to the backend client.
    """

    def __init__(
        self,
        backend: StorageBackend,
        config: Optional[ProxyConfig] = None,
    ) -> None:
        self._backend = backend
        self._config = config or ProxyConfig()
        self._translator = RequestTranslator(
            binary_media=self._config.binary_media,
            max_body_bytes=self._config.max_body_bytes,
            rules=self._config.integration_rules,
        )
        self._classifier = ResponseClassifier(
            cors=self._config.cors,
            rules=self._config.response_rules,
        )

    @property
    def config(self) -> ProxyConfig:
        return self._config

    def preflight(self, path: str) -> ProxyResponse:
        return preflight_response(self._config.cors, path)

    def expects_body(self, method: str, path: str) -> bool:
        """
        True if a request with this method and path forwards its body.

        Lets the HTTP layer leave bodies unread for requests that will be
        rejected or that never carry one.
        """
        try:
            resource = resolve_path(path).resource
            return self._translator.find_rule(method, resource).forward_body
        except RequestRejected:
            return False

    def reject(self, request: InboundRequest, error: RequestRejected) -> ProxyResponse:
        """Answer a request that failed validation, without a backend call."""
        logger.warning(
            "Rejected request",
            extra={
                "method": request.method,
                "path": request.path,
                "reason": error.reason,
                "parameter": error.parameter,
                "error": error.message,
            }
        )
        try:
            resource: Optional[ResourceKind] = resolve_path(request.path).resource
        except MalformedPath:
            resource = None
        return self._error_response(400, error.message, resource, RequestState.REJECTED)

    async def handle(self, request: InboundRequest) -> ProxyResponse:
        """Run one request through resolve/translate/dispatch/classify."""
        if request.method.upper() == "OPTIONS":
            return self.preflight(request.path)

        try:
            resolved = resolve_path(request.path)
            backend_request = self._translator.translate(request, resolved)
        except RequestRejected as e:
            return self.reject(request, e)
        resource = resolved.resource

        if self._config.data_trace:
            logger.info(
                "Dispatching backend call",
                extra={
                    "operation": backend_request.operation.value,
                    "key": backend_request.key,
                    "forwarded_headers": dict(backend_request.headers),
                    "body_bytes": len(backend_request.body or b""),
                    "binary": backend_request.binary,
                }
            )

        backend_response = await self._dispatch_with_deadline(backend_request)

        try:
            classification = self._classifier.classify(backend_response, resource)
        except UnclassifiedBackendStatus as e:
            # Fail closed rather than leaking an unexpected status
            logger.error(
                "Unclassified backend status",
                extra={
                    "backend_status": e.status_code,
                    "operation": backend_request.operation.value,
                    "key": backend_request.key,
                }
            )
            return self._error_response(
                500, "Unexpected storage response", resource, RequestState.BACKEND_ERROR
            )

        if classification.is_error:
            logger.info(
                "Backend returned error status",
                extra={
                    "backend_status": backend_response.status_code,
                    "status_code": classification.status_code,
                    "operation": backend_request.operation.value,
                    "key": backend_request.key,
                }
            )
            # The backend's own error document is not part of the API
            return self._error_response(
                classification.status_code,
                BACKEND_ERROR_MESSAGES.get(
                    classification.status_code, "Storage request failed"
                ),
                resource,
                RequestState.BACKEND_ERROR,
            )

        binary = self._config.binary_media.any_binary(
            request.header("Accept"), backend_response.header("Content-Type")
        ) or backend_request.binary

        return ProxyResponse(
            status_code=classification.status_code,
            headers=classification.headers,
            body=backend_response.body,
            binary=binary,
            state=RequestState.RESPONDED,
        )

    async def _dispatch_with_deadline(self, request: BackendRequest) -> BackendResponse:
        timeout = self._config.backend_timeout_seconds
        try:
            if timeout:
                return await asyncio.wait_for(self._dispatch(request), timeout=timeout)
            return await self._dispatch(request)
        except asyncio.TimeoutError:
            logger.error(
                "Backend call timed out",
                extra={
                    "operation": request.operation.value,
                    "key": request.key,
                    "timeout_seconds": timeout,
                }
            )
            return BackendResponse(status_code=TIMEOUT_STATUS)
        except BackendUnavailable as e:
            logger.error(
                "Backend call failed",
                extra={
                    "operation": request.operation.value,
                    "key": request.key,
                    "error": str(e),
                }
            )
            return BackendResponse(status_code=TRANSPORT_FAILURE_STATUS)

    async def _dispatch(self, request: BackendRequest) -> BackendResponse:
        operation = request.operation
        if operation is BackendOperation.LIST:
            return await self._backend.list_objects(
                prefix=request.key, delimiter=request.delimiter or "/"
            )
        if operation is BackendOperation.GET:
            return await self._backend.get_object(
                key=request.key, accept=request.headers.get("Accept")
            )
        if operation is BackendOperation.PUT:
            return await self._backend.put_object(
                key=request.key,
                body=request.body or b"",
                content_type=request.headers.get("Content-Type"),
            )
        if operation is BackendOperation.DELETE:
            return await self._backend.delete_object(key=request.key)
        raise ValueError(f"Unsupported backend operation: {operation}")

    def _error_response(
        self,
        status_code: int,
        message: str,
        resource: Optional[ResourceKind],
        state: RequestState,
    ) -> ProxyResponse:
        body = json.dumps({"message": message}).encode("utf-8")
        headers = self._config.cors.apply(
            {"Content-Type": "application/json"}, resource
        )
        return ProxyResponse(
            status_code=status_code,
            headers=headers,
            body=body,
            state=state,
        )
