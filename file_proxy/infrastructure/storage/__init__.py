"""
Object storage integration for user files.

Supports AWS S3 and S3-compatible stores via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockStorageBackend,
    S3StorageBackend,
    StorageConfig,
    StorageError,
    create_storage_backend,
)
from .models import ObjectListing, StorageErrorBody, StoredObject

__all__ = [
    "MockStorageBackend",
    "ObjectListing",
    "S3StorageBackend",
    "StorageConfig",
    "StorageError",
    "StorageErrorBody",
    "StoredObject",
    "create_storage_backend",
]
