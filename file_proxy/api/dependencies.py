"""
FastAPI dependency injection.

Dependencies provide the storage backend, the proxy router and the
configuration to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Tests swap the backend with app.dependency_overrides
- Configuration is centralized

The mapping configuration is built from settings once and passed into
the router explicitly; nothing in the mapping layer reads globals.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.mapping import (
    BinaryMediaPolicy,
    CorsPolicy,
    ProxyConfig,
    ProxyRouter,
    StorageBackend,
)
from ..infrastructure.storage.client import StorageConfig, create_storage_backend

logger = logging.getLogger(__name__)

# Shared backend instance (one boto3 client, or one in-memory store, per process)
_storage_backend: Optional[StorageBackend] = None


def build_proxy_config(settings: Settings) -> ProxyConfig:
    """Translate settings into the router's immutable configuration."""
    cors = CorsPolicy(
        allow_origin=settings.cors_allow_origin,
        allow_headers=tuple(settings.cors_allow_headers_list),
        allow_methods=tuple(settings.cors_allow_methods_list),
    )
    return ProxyConfig(
        cors=cors,
        binary_media=BinaryMediaPolicy.from_patterns(settings.binary_media_types_list),
        max_body_bytes=settings.max_upload_bytes,
        backend_timeout_seconds=settings.backend_timeout_seconds,
        data_trace=settings.data_trace_enabled,
    )


def get_proxy_config(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ProxyConfig:
    return build_proxy_config(settings)


def get_storage_backend(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageBackend:
    """
    Provide the storage backend.

    Returns either the S3 backend or the in-memory mock based on settings.
    The instance is shared across requests: the mock keeps uploaded files
    for the lifetime of the process, and the S3 backend reuses one
    thread-safe boto3 client.
    """
    global _storage_backend

    if _storage_backend is None:
        if settings.storage_mock_mode:
            _storage_backend = create_storage_backend(mock_mode=True)
            logger.info("Created shared mock storage backend")
        else:
            config = StorageConfig(
                bucket_name=settings.s3_bucket_name,
                region=settings.s3_region,
                endpoint_url=settings.s3_endpoint_url,
                access_key_id=settings.s3_access_key_id,
                secret_access_key=settings.s3_secret_access_key,
                max_attempts=settings.s3_max_attempts,
                strict_delete=settings.s3_strict_delete,
            )
            _storage_backend = create_storage_backend(config=config)
            logger.info("Created S3 storage backend")

    return _storage_backend


def reset_storage_backend() -> None:
    """Drop the shared backend so the next request builds a fresh one."""
    global _storage_backend
    _storage_backend = None


def get_proxy_router(
    backend: Annotated[StorageBackend, Depends(get_storage_backend)],
    config: Annotated[ProxyConfig, Depends(get_proxy_config)],
) -> ProxyRouter:
    """The router is cheap to build; it holds no per-request state."""
    return ProxyRouter(backend=backend, config=config)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
StorageBackendDep = Annotated[StorageBackend, Depends(get_storage_backend)]
ProxyConfigDep = Annotated[ProxyConfig, Depends(get_proxy_config)]
ProxyRouterDep = Annotated[ProxyRouter, Depends(get_proxy_router)]
