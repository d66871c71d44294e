"""
Response classification: backend status -> external status and headers.

Rules are an ordered table evaluated top to bottom; the first rule whose
pattern fully matches the backend status (as a string) wins. Collapsing
the backend's status space into 200/400/500 keeps the external contract
stable no matter how detailed the backend's error taxonomy gets.

Order matters: the exact `200` rule must come before `2\\d{2}`, since it is
the only rule that forwards content metadata.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .cors import CorsPolicy
from .errors import UnclassifiedBackendStatus
from .models import BackendResponse, ResourceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeaderMapping:
    """Copy backend header `source` into response header `target`."""
    target: str
    source: str


@dataclass(frozen=True)
class ResponseRule:
    pattern: str
    status_code: int
    forward_headers: tuple[HeaderMapping, ...] = ()

    def matches(self, backend_status: int) -> bool:
        return re.fullmatch(self.pattern, str(backend_status)) is not None


CONTENT_METADATA = (
    HeaderMapping(target="Timestamp", source="Date"),
    HeaderMapping(target="Content-Length", source="Content-Length"),
    HeaderMapping(target="Content-Type", source="Content-Type"),
)

DEFAULT_RESPONSE_RULES: tuple[ResponseRule, ...] = (
    ResponseRule(pattern="200", status_code=200, forward_headers=CONTENT_METADATA),
    # Other successes, e.g. 204 from an object delete
    ResponseRule(pattern=r"2\d{2}", status_code=200),
    ResponseRule(pattern=r"4\d{2}", status_code=400),
    ResponseRule(pattern=r"5\d{2}", status_code=500),
)


@dataclass(frozen=True)
class Classification:
    status_code: int
    headers: dict[str, str]
    rule: ResponseRule

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400


class ResponseClassifier:
    """
    Applies the response rule table plus the CORS header set.

    Stateless after construction; one instance is shared by all requests.
    """

    def __init__(
        self,
        cors: CorsPolicy,
        rules: tuple[ResponseRule, ...] = DEFAULT_RESPONSE_RULES,
    ) -> None:
        self._cors = cors
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[ResponseRule, ...]:
        return self._rules

    def select_rule(self, backend_status: int) -> ResponseRule:
        for rule in self._rules:
            if rule.matches(backend_status):
                return rule
        raise UnclassifiedBackendStatus(backend_status)

    def classify(
        self,
        response: BackendResponse,
        resource: Optional[ResourceKind] = None,
    ) -> Classification:
        """
        Map a backend response to the external status and header set.

        Raises:
            UnclassifiedBackendStatus: no rule matches the backend status.
        """
        rule = self.select_rule(response.status_code)

        headers: dict[str, str] = {}
        for mapping in rule.forward_headers:
            value = response.header(mapping.source)
            # Absent backend headers are omitted, not sent empty
            if value is not None:
                headers[mapping.target] = value

        logger.debug(
            "Classified backend response",
            extra={
                "backend_status": response.status_code,
                "pattern": rule.pattern,
                "status_code": rule.status_code,
            }
        )

        return Classification(
            status_code=rule.status_code,
            headers=self._cors.apply(headers, resource),
            rule=rule,
        )
