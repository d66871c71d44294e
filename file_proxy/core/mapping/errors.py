"""
Error taxonomy for the integration mapping layer.

Rejections are raised before any backend call is made and always surface
as an external 400. Backend error statuses are not exceptions: they are
classified into responses by the classifier. The only backend-side
exception is a status that no response rule recognises.
"""

from typing import Optional


class MappingError(Exception):
    """Base class for all mapping-layer failures."""
    pass


class RequestRejected(MappingError):
    """
    Raised when an inbound request fails local validation.

    The request never reaches the storage backend.
    """

    reason = "rejected"

    def __init__(self, message: str, parameter: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.parameter = parameter


class MalformedPath(RequestRejected):
    """Path does not match a resource, or a path variable is unsafe."""
    reason = "malformed_path"


class MissingParameter(RequestRejected):
    """A required path parameter or header is absent."""
    reason = "missing_parameter"


class MethodNotExposed(RequestRejected):
    """No integration rule exists for this method on this resource."""
    reason = "method_not_exposed"


class MalformedBody(RequestRejected):
    """A text payload is not valid UTF-8."""
    reason = "malformed_body"


class PayloadTooLarge(RequestRejected):
    """Upload exceeds the configured size limit."""
    reason = "payload_too_large"


class BackendUnavailable(MappingError):
    """
    The backend call produced no response at all.

    Storage adapters raise a subclass of this for network failures; the
    router treats it as a synthetic 502 and classifies it like any other
    backend status.
    """
    pass


class UnclassifiedBackendStatus(MappingError):
    """Backend returned a status that no response rule matches."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"No response rule matches backend status {status_code}")
        self.status_code = status_code
