"""
Unit tests for the proxy router.

Runs the whole resolve/translate/dispatch/classify pipeline against a
RecordingBackend, so every test can assert both the external response
and exactly which backend calls were made.
"""

import asyncio
import json

import pytest

from file_proxy.core.mapping import (
    BackendResponse,
    BackendUnavailable,
    InboundRequest,
    PayloadTooLarge,
    ProxyConfig,
    ProxyRouter,
    RequestState,
)
from file_proxy.core.mapping.cors import ALLOW_METHODS, ALLOW_ORIGIN


def run(router: ProxyRouter, method: str, path: str, headers=None, body=b""):
    request = InboundRequest(method=method, path=path, headers=headers or {}, body=body)
    return asyncio.run(router.handle(request))


@pytest.fixture
def router(recording_backend) -> ProxyRouter:
    return ProxyRouter(recording_backend, ProxyConfig(max_body_bytes=1024))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestDispatch:
    """One backend call per accepted request, with the translated arguments."""

    def test_listing_dispatches_list_call(self, router, recording_backend):
        recording_backend.response = BackendResponse(
            status_code=200,
            headers={
                "Content-Type": "application/json",
                "Content-Length": "42",
                "Date": "Sun, 18 Oct 2026 10:00:00 GMT",
            },
            body=b'{"objects": []}',
        )

        result = run(router, "GET", "/users/alice/files")

        assert recording_backend.calls == [
            ("list_objects", {"prefix": "alice/", "delimiter": "/"})
        ]
        assert result.status_code == 200
        assert result.state is RequestState.RESPONDED
        assert result.body == b'{"objects": []}'
        assert result.headers["Timestamp"] == "Sun, 18 Oct 2026 10:00:00 GMT"
        assert result.headers["Content-Length"] == "42"
        assert result.headers["Content-Type"] == "application/json"
        assert result.headers[ALLOW_ORIGIN] == "*"
        assert result.headers[ALLOW_METHODS] == "GET,OPTIONS"

    def test_get_forwards_accept(self, router, recording_backend):
        run(router, "GET", "/users/u1/files/a.png", headers={"accept": "image/png"})

        assert recording_backend.calls == [
            ("get_object", {"key": "u1/a.png", "accept": "image/png"})
        ]

    def test_get_without_accept_forwards_nothing(self, router, recording_backend):
        run(router, "GET", "/users/u1/files/a.png")

        assert recording_backend.calls == [
            ("get_object", {"key": "u1/a.png", "accept": None})
        ]

    def test_put_passes_binary_body_unchanged(self, router, recording_backend, png_bytes):
        result = run(
            router, "PUT", "/users/u1/files/pixel.png",
            headers={"content-type": "image/png"}, body=png_bytes,
        )

        name, kwargs = recording_backend.calls[0]
        assert name == "put_object"
        assert kwargs["key"] == "u1/pixel.png"
        assert kwargs["body"] == png_bytes
        assert kwargs["content_type"] == "image/png"
        assert result.status_code == 200

    def test_delete_dispatches_delete_call(self, router, recording_backend):
        recording_backend.response = BackendResponse(status_code=204)

        result = run(router, "DELETE", "/users/u1/files/a.txt")

        assert recording_backend.calls == [("delete_object", {"key": "u1/a.txt"})]
        assert result.status_code == 200
        assert "Content-Type" not in result.headers

    def test_method_is_matched_case_insensitively(self, router, recording_backend):
        run(router, "delete", "/users/u1/files/a.txt")

        assert recording_backend.calls == [("delete_object", {"key": "u1/a.txt"})]


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------

class TestRejections:
    """Rejected requests answer 400 and never reach the backend."""

    @pytest.mark.parametrize(
        "method,path,headers",
        [
            ("GET", "/users/a%2Fb/files", {}),
            ("GET", "/users/u1/files/a%2Fb", {}),
            ("GET", "/users//files", {}),
            ("GET", "/users/u1/files/", {}),
            ("GET", "/nowhere", {}),
            ("POST", "/users/u1/files/a.txt", {"content-type": "text/plain"}),
            ("PUT", "/users/u1/files/a.txt", {}),
        ],
    )
    def test_rejected_without_backend_call(
        self, router, recording_backend, method, path, headers
    ):
        result = run(router, method, path, headers=headers)

        assert result.status_code == 400
        assert result.state is RequestState.REJECTED
        assert recording_backend.calls == []
        assert result.headers[ALLOW_ORIGIN] == "*"
        assert "message" in json.loads(result.body)

    def test_oversized_upload_is_rejected(self, router, recording_backend):
        result = run(
            router, "PUT", "/users/u1/files/big.png",
            headers={"content-type": "image/png"}, body=b"\x00" * 2048,
        )

        assert result.status_code == 400
        assert recording_backend.calls == []

    def test_rejection_keeps_resource_methods(self, router):
        result = run(router, "POST", "/users/u1/files/a.txt")

        assert result.headers[ALLOW_METHODS] == "GET,PUT,DELETE,OPTIONS"


# ---------------------------------------------------------------------------
# Preflight
# ---------------------------------------------------------------------------

class TestPreflight:
    """OPTIONS never dispatches to the backend."""

    @pytest.mark.parametrize(
        "path", ["/users/u1/files", "/users/u1/files/a.png", "/users/a%2Fb/files"]
    )
    def test_options_makes_no_backend_call(self, router, recording_backend, path):
        result = run(router, "OPTIONS", path)

        assert result.status_code == 200
        assert result.body == b""
        assert recording_backend.calls == []
        assert result.headers[ALLOW_ORIGIN] == "*"

    def test_options_advertises_listing_methods(self, router):
        result = run(router, "OPTIONS", "/users/u1/files")

        assert result.headers[ALLOW_METHODS] == "GET,OPTIONS"


# ---------------------------------------------------------------------------
# Backend Errors
# ---------------------------------------------------------------------------

class TestBackendErrors:
    """Backend failures are classified, never raised."""

    def test_missing_object_becomes_400(self, router, recording_backend):
        recording_backend.response = BackendResponse(
            status_code=404,
            headers={"Content-Type": "application/json", "Date": "x"},
            body=b'{"code": "NoSuchKey"}',
        )

        result = run(router, "DELETE", "/users/u1/files/missing.txt")

        assert result.status_code == 400
        assert result.state is RequestState.BACKEND_ERROR
        assert result.headers[ALLOW_ORIGIN] == "*"
        assert "Timestamp" not in result.headers
        assert result.headers["Content-Type"] == "application/json"
        assert json.loads(result.body) == {"message": "Storage rejected the request"}

    def test_backend_5xx_becomes_500(self, router, recording_backend):
        recording_backend.response = BackendResponse(status_code=503)

        result = run(router, "GET", "/users/u1/files/a.txt")

        assert result.status_code == 500
        assert result.state is RequestState.BACKEND_ERROR
        assert result.headers["Content-Type"] == "application/json"
        assert json.loads(result.body) == {"message": "Storage request failed"}

    def test_transport_failure_becomes_500(self, router, recording_backend):
        recording_backend.error = BackendUnavailable("connection refused")

        result = run(router, "GET", "/users/u1/files/a.txt")

        assert result.status_code == 500
        assert result.state is RequestState.BACKEND_ERROR
        assert result.headers[ALLOW_ORIGIN] == "*"
        assert len(recording_backend.calls) == 1

    def test_timeout_becomes_500(self, recording_backend):
        router = ProxyRouter(recording_backend, ProxyConfig(backend_timeout_seconds=0.01))
        recording_backend.delay_seconds = 1.0

        result = run(router, "GET", "/users/u1/files/a.txt")

        assert result.status_code == 500
        assert result.state is RequestState.BACKEND_ERROR

    def test_unclassified_status_fails_closed(self, router, recording_backend):
        recording_backend.response = BackendResponse(
            status_code=302, headers={"Location": "https://elsewhere"}
        )

        result = run(router, "GET", "/users/u1/files/a.txt")

        assert result.status_code == 500
        assert result.state is RequestState.BACKEND_ERROR
        assert "Location" not in result.headers
        assert json.loads(result.body) == {"message": "Unexpected storage response"}


# ---------------------------------------------------------------------------
# Binary Flag
# ---------------------------------------------------------------------------

class TestBinaryFlag:
    """The HTTP layer needs to know whether to send raw bytes."""

    def test_image_download_is_binary(self, router, recording_backend, png_bytes):
        recording_backend.response = BackendResponse(
            status_code=200, headers={"Content-Type": "image/png"}, body=png_bytes
        )

        result = run(router, "GET", "/users/u1/files/pixel.png", headers={"accept": "image/png"})

        assert result.binary is True
        assert result.body == png_bytes

    def test_backend_content_type_alone_marks_binary(self, router, recording_backend, png_bytes):
        recording_backend.response = BackendResponse(
            status_code=200, headers={"Content-Type": "image/png"}, body=png_bytes
        )

        result = run(router, "GET", "/users/u1/files/pixel.png")

        assert result.binary is True

    def test_json_listing_is_not_binary(self, router):
        result = run(router, "GET", "/users/u1/files")

        assert result.binary is False


# ---------------------------------------------------------------------------
# Body Handling
# ---------------------------------------------------------------------------

class TestBodyHandling:
    """The HTTP layer asks the router before reading a body."""

    def test_put_on_file_expects_body(self, router):
        assert router.expects_body("PUT", "/users/u1/files/a.png")

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/users/u1/files/a.png"),
            ("DELETE", "/users/u1/files/a.png"),
            ("POST", "/users/u1/files/a.png"),
            ("PUT", "/users/u1/files"),
            ("PUT", "/users/u1/files/a%2Fb"),
            ("PUT", "/elsewhere"),
        ],
    )
    def test_other_requests_expect_no_body(self, router, method, path):
        assert not router.expects_body(method, path)

    def test_reject_answers_400_with_resource_cors(self, router, recording_backend):
        request = InboundRequest(method="PUT", path="/users/u1/files/big.png")

        result = router.reject(request, PayloadTooLarge("too big"))

        assert result.status_code == 400
        assert result.state is RequestState.REJECTED
        assert result.headers[ALLOW_METHODS] == "GET,PUT,DELETE,OPTIONS"
        assert json.loads(result.body) == {"message": "too big"}
        assert recording_backend.calls == []
