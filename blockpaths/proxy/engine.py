"""Transparent reverse proxy for requests the path gate lets through.

  - Shared httpx.AsyncClient at app.state.http_client — never instantiated per-request
  - Catch-all route /{path:path}: forwards method, escaped path, query, headers
    (minus hop-by-hop) and body to config.upstream.url
  - Response bytes are streamed back raw (content-encoding preserved); a body
    the transport already read is returned buffered instead
  - Repeated headers (X-Forwarded-For, Set-Cookie) are forwarded line by line

Failure modes:
  - No upstream configured → HTTP 404
  - httpx.ConnectError / TimeoutException / RemoteProtocolError → HTTP 502
  - httpx.InvalidURL → HTTP 500 (configuration error)
  - Upstream 4xx/5xx → forwarded unchanged
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from blockpaths.config import Config
from blockpaths.gate.middleware import escaped_path
from blockpaths.proxy.headers import build_client_response_headers, build_upstream_headers
from blockpaths.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["proxy"])

# ─── Constants ────────────────────────────────────────────────────────────────

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 100
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
PROXY_TIMEOUT: float = 30.0  # total request timeout

_PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]


def create_http_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient with connection pooling configured.

    Created once at lifespan startup and stored in app.state.http_client.

    Args:
        transport: Optional transport override (tests pass httpx.MockTransport).
    """
    return httpx.AsyncClient(
        transport=transport,
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(PROXY_TIMEOUT),
        follow_redirects=False,  # pass 3xx through to the client
    )


def build_upstream_url(base_url: str, path: str, query: str) -> str:
    """Join the upstream base URL with the escaped request path and raw query."""
    url = base_url.rstrip("/") + path
    if query:
        url = f"{url}?{query}"
    return url


@router.api_route("/{path:path}", methods=_PROXY_METHODS)
async def proxy_handler(request: Request, path: str) -> Response:
    """Forward an allowed request to the configured upstream.

    Blocked requests never get here: BlockPathsMiddleware answers them first.
    """
    config: Config = request.app.state.config

    if not config.upstream.url:
        return JSONResponse(
            status_code=404,
            content={"error": {"message": f"Not found: /{path}", "code": "not_found"}},
        )

    http_client: httpx.AsyncClient = request.app.state.http_client
    upstream_url = build_upstream_url(
        config.upstream.url, escaped_path(request), request.url.query
    )

    upstream_request = http_client.build_request(
        method=request.method,
        url=upstream_url,
        headers=build_upstream_headers(request.headers.items()),
        content=await request.body(),
    )

    try:
        upstream_response = await http_client.send(upstream_request, stream=True)
    except (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError) as exc:
        logger.warning(
            "upstream_unavailable",
            upstream_url=upstream_url,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return JSONResponse(
            status_code=502,
            content={
                "error": {
                    "message": "Upstream service unavailable",
                    "code": "upstream_unavailable",
                    "reason": type(exc).__name__,
                }
            },
        )
    except httpx.InvalidURL as exc:
        logger.error("invalid_upstream_url", upstream_url=upstream_url, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"error": {"message": "Internal configuration error", "code": "config_error"}},
        )

    logger.info(
        "request_proxied",
        method=request.method,
        path=upstream_request.url.raw_path.decode("ascii", errors="replace"),
        status_code=upstream_response.status_code,
    )

    headers = build_client_response_headers(upstream_response.headers)

    # Transports that hand back an already-read body (e.g. in-process
    # MockTransport) cannot be iterated raw again.
    if upstream_response.is_stream_consumed:
        await upstream_response.aclose()
        response: Response = Response(
            content=upstream_response.content,
            status_code=upstream_response.status_code,
        )
        # .content is decoded; the upstream content-encoding no longer applies
        headers = [(name, value) for name, value in headers if name.lower() != "content-encoding"]
    else:
        response = StreamingResponse(
            content=upstream_response.aiter_raw(),
            status_code=upstream_response.status_code,
            background=BackgroundTask(upstream_response.aclose),
        )

    for name, value in headers:
        response.headers.append(name, value)
    return response
