"""
Wire format of backend payloads produced by the storage adapters.

S3 answers listings in XML; boto3 hands us a parsed dict. Both adapters
render listings and error bodies as the JSON documents below, so the
router and clients see one format regardless of backend.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class StoredObject(BaseModel):
    """One entry in a listing."""
    key: str = Field(description="Full object key, including the user prefix")
    size: int = Field(description="Object size in bytes")
    last_modified: Optional[datetime] = Field(None, description="Last write time")
    etag: Optional[str] = Field(None, description="Entity tag reported by the store")


class ObjectListing(BaseModel):
    """Direct children of a prefix."""
    prefix: str
    delimiter: str
    objects: list[StoredObject] = Field(default_factory=list)
    common_prefixes: list[str] = Field(
        default_factory=list,
        description="Sub-folders under the prefix (not descended into)",
    )
    key_count: int = 0


class StorageErrorBody(BaseModel):
    """Error payload returned with backend 4xx/5xx statuses."""
    code: str
    message: str
    key: Optional[str] = None
