"""
Request translation: inbound HTTP request -> backend storage call.

Each (method, resource) pair the API serves has exactly one integration
rule. A rule names the backend operation, which inbound headers flow to
which backend fields, and whether the body is forwarded. Anything not in
the table is rejected before it reaches the backend.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import (
    MalformedBody,
    MethodNotExposed,
    MissingParameter,
    PayloadTooLarge,
)
from .media import BinaryMediaPolicy
from .models import (
    BackendOperation,
    BackendRequest,
    InboundRequest,
    ResolvedPath,
    ResourceKind,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeaderForward:
    """Forward inbound header `source` as backend header `target`."""
    target: str
    source: str
    required: bool = False


@dataclass(frozen=True)
class IntegrationRule:
    method: str
    resource: ResourceKind
    operation: BackendOperation
    forward_headers: tuple[HeaderForward, ...] = ()
    forward_body: bool = False


DEFAULT_INTEGRATION_RULES: tuple[IntegrationRule, ...] = (
    IntegrationRule(
        method="GET",
        resource=ResourceKind.FILE_LIST,
        operation=BackendOperation.LIST,
    ),
    IntegrationRule(
        method="GET",
        resource=ResourceKind.FILE,
        operation=BackendOperation.GET,
        forward_headers=(HeaderForward(target="Accept", source="Accept"),),
    ),
    IntegrationRule(
        method="PUT",
        resource=ResourceKind.FILE,
        operation=BackendOperation.PUT,
        forward_headers=(
            HeaderForward(target="Content-Type", source="Content-Type", required=True),
        ),
        forward_body=True,
    ),
    IntegrationRule(
        method="DELETE",
        resource=ResourceKind.FILE,
        operation=BackendOperation.DELETE,
    ),
)


class RequestTranslator:
    """
    Builds backend requests from inbound requests.

    Pure: no I/O and no state beyond the configuration it was built with.
    """

    def __init__(
        self,
        binary_media: BinaryMediaPolicy,
        max_body_bytes: Optional[int] = None,
        rules: tuple[IntegrationRule, ...] = DEFAULT_INTEGRATION_RULES,
    ) -> None:
        self._binary_media = binary_media
        self._max_body_bytes = max_body_bytes
        self._rules = {(rule.method, rule.resource): rule for rule in rules}

    def find_rule(self, method: str, resource: ResourceKind) -> IntegrationRule:
        rule = self._rules.get((method.upper(), resource))
        if rule is None:
            raise MethodNotExposed(
                f"{method.upper()} is not supported on {resource.value}"
            )
        return rule

    def translate(
        self,
        request: InboundRequest,
        resolved: ResolvedPath,
    ) -> BackendRequest:
        """
        Build the backend call for an already resolved request.

        Raises:
            MethodNotExposed: no rule for this method on this resource.
            MissingParameter: a required path variable or header is absent.
            PayloadTooLarge: body exceeds the upload limit.
            MalformedBody: text body is not valid UTF-8.
        """
        rule = self.find_rule(request.method, resolved.resource)

        if not resolved.user_id:
            raise MissingParameter("userId is required", parameter="userId")
        if resolved.resource is ResourceKind.FILE and not resolved.file_name:
            raise MissingParameter("fileName is required", parameter="fileName")

        headers: dict[str, str] = {}
        for forward in rule.forward_headers:
            value = request.header(forward.source)
            if value is None:
                if forward.required:
                    raise MissingParameter(
                        f"{forward.source} header is required",
                        parameter=forward.source,
                    )
                # Passthrough when no match: leave the field out entirely
                continue
            headers[forward.target] = value

        binary = self._binary_media.any_binary(
            request.header("Accept"), request.header("Content-Type")
        )

        body = None
        if rule.forward_body:
            body = self._check_body(request.body, binary)

        return BackendRequest(
            operation=rule.operation,
            key=resolved.key,
            delimiter=resolved.delimiter,
            headers=headers,
            body=body,
            binary=binary,
        )

    def _check_body(self, body: bytes, binary: bool) -> bytes:
        if self._max_body_bytes is not None and len(body) > self._max_body_bytes:
            raise PayloadTooLarge(
                f"Body of {len(body)} bytes exceeds limit of {self._max_body_bytes}"
            )
        if not binary:
            try:
                body.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedBody(
                    "Text payload is not valid UTF-8; send it with a binary media type"
                ) from e
        return body
