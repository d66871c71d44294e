"""
User file endpoints.

These routes do no work of their own: each one hands the raw request to
the ProxyRouter, which resolves the path, translates the call, talks to
storage and classifies the result. The explicit routes exist for the
OpenAPI schema; the catch-all at the bottom sends everything else under
/users (unsupported methods, malformed paths) through the same pipeline
so it is rejected with a 400 and the CORS headers instead of a bare 404.

OPTIONS never reaches these handlers; the preflight middleware answers it.
"""

import logging
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Request, Response, status

from ...core.mapping import InboundRequest, PayloadTooLarge, ProxyResponse
from ..dependencies import ProxyRouterDep, SettingsDep
from ..middleware import relative_raw_path

logger = logging.getLogger(__name__)

router = APIRouter()

BINARY_FALLBACK_MEDIA_TYPE = "application/octet-stream"

PROXY_RESPONSES = {
    400: {"description": "Rejected request or storage client error (e.g. missing file)"},
    500: {"description": "Storage server error, timeout or unexpected storage status"},
}


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

async def read_limited_body(request: Request, max_bytes: Optional[int]) -> bytes:
    """
    Read the request body, refusing to buffer more than `max_bytes`.

    A declared Content-Length over the limit is rejected before anything
    is read; chunked bodies are cut off as soon as they pass it.

    Raises:
        PayloadTooLarge: the body is, or claims to be, over the limit.
    """
    if max_bytes is None:
        return await request.body()

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLarge(
            f"Body of {declared} bytes exceeds limit of {max_bytes}"
        )

    chunks: list[bytes] = []
    total = 0
    async for chunk in request.stream():
        total += len(chunk)
        if total > max_bytes:
            raise PayloadTooLarge(
                f"Body exceeds limit of {max_bytes} bytes"
            )
        chunks.append(chunk)
    return b"".join(chunks)


def to_inbound_request(request: Request, stage_prefix: str) -> InboundRequest:
    """Headers and path only; the body is attached once it is known to be wanted."""
    return InboundRequest(
        method=request.method,
        path=relative_raw_path(request, stage_prefix),
        headers={name.lower(): value for name, value in request.headers.items()},
    )


def to_http_response(result: ProxyResponse) -> Response:
    """
    Bytes go out exactly as storage returned them; nothing is re-encoded.

    Binary bodies without a stored content type are labelled as an octet
    stream rather than left untyped.
    """
    headers = dict(result.headers)
    media_type = None
    if result.binary and not any(name.lower() == "content-type" for name in headers):
        media_type = BINARY_FALLBACK_MEDIA_TYPE
    return Response(
        content=result.body,
        status_code=result.status_code,
        headers=headers,
        media_type=media_type,
    )


async def proxy(request: Request, proxy_router: ProxyRouterDep, settings: SettingsDep) -> Response:
    inbound = to_inbound_request(request, settings.stage_prefix)

    if proxy_router.expects_body(inbound.method, inbound.path):
        try:
            body = await read_limited_body(request, proxy_router.config.max_body_bytes)
        except PayloadTooLarge as e:
            return to_http_response(proxy_router.reject(inbound, e))
        inbound = replace(inbound, body=body)

    result = await proxy_router.handle(inbound)

    logger.debug(
        "Proxied request",
        extra={
            "method": inbound.method,
            "path": inbound.path,
            "status_code": result.status_code,
            "state": result.state.value,
            "binary": result.binary,
        }
    )

    return to_http_response(result)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/users/{user_id}/files",
    status_code=status.HTTP_200_OK,
    summary="List a user's files",
    description="Lists the direct children of the user's folder as JSON.",
    responses=PROXY_RESPONSES,
)
async def list_files(
    user_id: str,
    request: Request,
    proxy_router: ProxyRouterDep,
    settings: SettingsDep,
) -> Response:
    return await proxy(request, proxy_router, settings)


@router.get(
    "/users/{user_id}/files/{file_name:path}",
    status_code=status.HTTP_200_OK,
    summary="Fetch one file",
    description="Returns the stored bytes. The Accept header is forwarded to storage.",
    responses=PROXY_RESPONSES,
)
async def get_file(
    user_id: str,
    file_name: str,
    request: Request,
    proxy_router: ProxyRouterDep,
    settings: SettingsDep,
) -> Response:
    return await proxy(request, proxy_router, settings)


@router.put(
    "/users/{user_id}/files/{file_name:path}",
    status_code=status.HTTP_200_OK,
    summary="Upload or overwrite one file",
    description="Stores the raw request body under the file name. Content-Type is required.",
    responses=PROXY_RESPONSES,
)
async def put_file(
    user_id: str,
    file_name: str,
    request: Request,
    proxy_router: ProxyRouterDep,
    settings: SettingsDep,
) -> Response:
    return await proxy(request, proxy_router, settings)


@router.delete(
    "/users/{user_id}/files/{file_name:path}",
    status_code=status.HTTP_200_OK,
    summary="Delete one file",
    responses=PROXY_RESPONSES,
)
async def delete_file(
    user_id: str,
    file_name: str,
    request: Request,
    proxy_router: ProxyRouterDep,
    settings: SettingsDep,
) -> Response:
    return await proxy(request, proxy_router, settings)


@router.api_route(
    "/users/{resource_path:path}",
    methods=["GET", "PUT", "POST", "PATCH", "DELETE", "HEAD"],
    include_in_schema=False,
)
async def unmatched_resource(
    resource_path: str,
    request: Request,
    proxy_router: ProxyRouterDep,
    settings: SettingsDep,
) -> Response:
    return await proxy(request, proxy_router, settings)
