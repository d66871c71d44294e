"""
REST-to-object-storage integration mapping.

Contains the path resolver, request translator, response classifier,
CORS policy and the proxy router that ties them together.
"""

from .classifier import DEFAULT_RESPONSE_RULES, ResponseClassifier, ResponseRule
from .cors import CorsPolicy
from .errors import (
    BackendUnavailable,
    MalformedBody,
    MalformedPath,
    MappingError,
    MethodNotExposed,
    MissingParameter,
    PayloadTooLarge,
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
    ResolvedPath,
    ResourceKind,
)
from .paths import resolve_path
from .router import ProxyConfig, ProxyRouter, StorageBackend, preflight_response
from .translator import DEFAULT_INTEGRATION_RULES, IntegrationRule, RequestTranslator

__all__ = [
    "DEFAULT_INTEGRATION_RULES",
    "DEFAULT_RESPONSE_RULES",
    "BackendOperation",
    "BackendRequest",
    "BackendResponse",
    "BackendUnavailable",
    "BinaryMediaPolicy",
    "CorsPolicy",
    "InboundRequest",
    "IntegrationRule",
    "MalformedBody",
    "MalformedPath",
    "MappingError",
    "MethodNotExposed",
    "MissingParameter",
    "PayloadTooLarge",
    "ProxyConfig",
    "ProxyResponse",
    "ProxyRouter",
    "RequestRejected",
    "RequestState",
    "RequestTranslator",
    "ResolvedPath",
    "ResourceKind",
    "ResponseClassifier",
    "ResponseRule",
    "StorageBackend",
    "UnclassifiedBackendStatus",
    "preflight_response",
    "resolve_path",
]
