"""
Unit tests for request translation.

Given a resolved path and an inbound request, the translator must build
exactly the backend call the integration table describes, and nothing
more: absent headers stay absent, bodies stay byte-identical.
"""

import pytest

from file_proxy.core.mapping import (
    BackendOperation,
    BinaryMediaPolicy,
    InboundRequest,
    MalformedBody,
    MethodNotExposed,
    MissingParameter,
    PayloadTooLarge,
    RequestTranslator,
    ResolvedPath,
    ResourceKind,
    resolve_path,
)


@pytest.fixture
def translator() -> RequestTranslator:
    return RequestTranslator(binary_media=BinaryMediaPolicy(), max_body_bytes=1024)


def translate(translator, method, path, headers=None, body=b""):
    request = InboundRequest(method=method, path=path, headers=headers or {}, body=body)
    return translator.translate(request, resolve_path(path))


# ---------------------------------------------------------------------------
# Operation Mapping
# ---------------------------------------------------------------------------

class TestOperationMapping:
    """Each (method, resource) pair maps to one backend operation."""

    def test_get_listing_becomes_list(self, translator):
        call = translate(translator, "GET", "/users/alice/files")

        assert call.operation is BackendOperation.LIST
        assert call.key == "alice/"
        assert call.delimiter == "/"
        assert call.body is None
        assert dict(call.headers) == {}

    def test_get_file_becomes_get(self, translator):
        call = translate(translator, "GET", "/users/u1/files/report.pdf")

        assert call.operation is BackendOperation.GET
        assert call.key == "u1/report.pdf"
        assert call.body is None

    def test_put_file_becomes_put(self, translator):
        call = translate(
            translator, "PUT", "/users/u1/files/notes.txt",
            headers={"content-type": "text/plain"}, body=b"hello",
        )

        assert call.operation is BackendOperation.PUT
        assert call.key == "u1/notes.txt"
        assert call.body == b"hello"

    def test_delete_file_becomes_delete(self, translator):
        call = translate(
            translator, "DELETE", "/users/u1/files/report.pdf",
            headers={"accept": "application/json", "content-type": "text/plain"},
        )

        assert call.operation is BackendOperation.DELETE
        assert call.key == "u1/report.pdf"
        assert dict(call.headers) == {}
        assert call.body is None

    def test_method_is_case_insensitive(self, translator):
        call = translate(translator, "get", "/users/u1/files")

        assert call.operation is BackendOperation.LIST

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/users/u1/files/a.txt"),
            ("PATCH", "/users/u1/files/a.txt"),
            ("PUT", "/users/u1/files"),
            ("DELETE", "/users/u1/files"),
        ],
    )
    def test_unmapped_method_is_rejected(self, translator, method, path):
        with pytest.raises(MethodNotExposed):
            translate(translator, method, path, headers={"content-type": "text/plain"})


# ---------------------------------------------------------------------------
# Header Forwarding
# ---------------------------------------------------------------------------

class TestHeaderForwarding:
    """Forwarded headers follow passthrough-when-no-match semantics."""

    def test_accept_is_forwarded_on_get(self, translator):
        call = translate(
            translator, "GET", "/users/u1/files/photo.png",
            headers={"accept": "image/png"},
        )

        assert dict(call.headers) == {"Accept": "image/png"}

    def test_absent_accept_is_omitted(self, translator):
        """No placeholder: the field is simply not there."""
        call = translate(translator, "GET", "/users/u1/files/photo.png")

        assert "Accept" not in call.headers

    def test_empty_accept_is_omitted(self, translator):
        call = translate(
            translator, "GET", "/users/u1/files/photo.png",
            headers={"accept": ""},
        )

        assert "Accept" not in call.headers

    def test_content_type_is_forwarded_on_put(self, translator):
        call = translate(
            translator, "PUT", "/users/u1/files/photo.png",
            headers={"content-type": "image/png", "authorization": "Bearer x"},
            body=b"\x89PNG",
        )

        assert dict(call.headers) == {"Content-Type": "image/png"}

    def test_put_without_content_type_is_rejected(self, translator):
        with pytest.raises(MissingParameter) as exc_info:
            translate(translator, "PUT", "/users/u1/files/a.bin", body=b"data")

        assert exc_info.value.parameter == "Content-Type"


# ---------------------------------------------------------------------------
# Bodies
# ---------------------------------------------------------------------------

class TestBodies:
    """Binary bodies pass untouched; text bodies must be UTF-8."""

    def test_binary_body_is_byte_identical(self, translator, png_bytes):
        call = translate(
            translator, "PUT", "/users/u1/files/pixel.png",
            headers={"content-type": "image/png"}, body=png_bytes,
        )

        assert call.body == png_bytes
        assert call.binary is True

    def test_binary_detection_uses_configured_patterns(self, png_bytes):
        translator = RequestTranslator(
            binary_media=BinaryMediaPolicy.from_patterns(["application/pdf"]),
        )

        call = translate(
            translator, "PUT", "/users/u1/files/doc.pdf",
            headers={"content-type": "application/pdf"}, body=png_bytes,
        )

        assert call.binary is True
        assert call.body == png_bytes

    def test_text_body_must_be_utf8(self, translator, png_bytes):
        with pytest.raises(MalformedBody):
            translate(
                translator, "PUT", "/users/u1/files/notes.txt",
                headers={"content-type": "text/plain"}, body=png_bytes,
            )

    def test_text_body_is_not_rewritten(self, translator):
        body = "grüße\r\n".encode("utf-8")

        call = translate(
            translator, "PUT", "/users/u1/files/notes.txt",
            headers={"content-type": "text/plain; charset=utf-8"}, body=body,
        )

        assert call.body == body
        assert call.binary is False

    def test_body_over_limit_is_rejected(self, translator):
        with pytest.raises(PayloadTooLarge):
            translate(
                translator, "PUT", "/users/u1/files/big.png",
                headers={"content-type": "image/png"}, body=b"\x00" * 1025,
            )

    def test_body_at_limit_is_accepted(self, translator):
        call = translate(
            translator, "PUT", "/users/u1/files/big.png",
            headers={"content-type": "image/png"}, body=b"\x00" * 1024,
        )

        assert len(call.body) == 1024


class TestMissingParameters:
    """Resolved paths without their variables never reach the backend."""

    def test_file_resource_without_file_name(self, translator):
        resolved = ResolvedPath(resource=ResourceKind.FILE, user_id="u1", key="u1/")
        request = InboundRequest(method="GET", path="/users/u1/files/")

        with pytest.raises(MissingParameter) as exc_info:
            translator.translate(request, resolved)

        assert exc_info.value.parameter == "fileName"

    def test_listing_without_user_id(self, translator):
        resolved = ResolvedPath(
            resource=ResourceKind.FILE_LIST, user_id="", key="/", delimiter="/"
        )
        request = InboundRequest(method="GET", path="/users//files")

        with pytest.raises(MissingParameter) as exc_info:
            translator.translate(request, resolved)

        assert exc_info.value.parameter == "userId"
