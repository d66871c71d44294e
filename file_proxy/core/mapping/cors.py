"""
Cross-origin header policy.

The same header set goes on every response: success, error and
preflight. Only `Access-Control-Allow-Methods` varies, narrowed to the
methods a resource actually serves.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from .models import ResourceKind

ALLOW_ORIGIN = "Access-Control-Allow-Origin"
ALLOW_METHODS = "Access-Control-Allow-Methods"
ALLOW_HEADERS = "Access-Control-Allow-Headers"

DEFAULT_ALLOW_ORIGIN = "*"
DEFAULT_ALLOW_HEADERS = ("Content-Type", "Authorization")
# Superset declared at the API level; used when no resource matched
DEFAULT_ALLOW_METHODS = ("OPTIONS", "POST", "PUT", "GET", "DELETE")

DEFAULT_RESOURCE_METHODS: Mapping[ResourceKind, tuple[str, ...]] = {
    ResourceKind.FILE_LIST: ("GET", "OPTIONS"),
    ResourceKind.FILE: ("GET", "PUT", "DELETE", "OPTIONS"),
}


@dataclass(frozen=True)
class CorsPolicy:
    """Static cross-origin headers, applied independent of outcome."""
    allow_origin: str = DEFAULT_ALLOW_ORIGIN
    allow_headers: tuple[str, ...] = DEFAULT_ALLOW_HEADERS
    allow_methods: tuple[str, ...] = DEFAULT_ALLOW_METHODS
    resource_methods: Mapping[ResourceKind, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_RESOURCE_METHODS)
    )

    def methods_for(self, resource: Optional[ResourceKind]) -> tuple[str, ...]:
        if resource is None:
            return self.allow_methods
        return self.resource_methods.get(resource, self.allow_methods)

    def headers(self, resource: Optional[ResourceKind] = None) -> dict[str, str]:
        return {
            ALLOW_HEADERS: ",".join(self.allow_headers),
            ALLOW_METHODS: ",".join(self.methods_for(resource)),
            ALLOW_ORIGIN: self.allow_origin,
        }

    def apply(
        self,
        headers: Mapping[str, str],
        resource: Optional[ResourceKind] = None,
    ) -> dict[str, str]:
        """Return a copy of `headers` with the CORS set merged in."""
        merged = dict(headers)
        merged.update(self.headers(resource))
        return merged
