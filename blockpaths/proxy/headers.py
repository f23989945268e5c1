"""HTTP header processing for the blockpaths proxy.

  - build_upstream_headers(): strips hop-by-hop headers, forwards the rest.
  - build_client_response_headers(): strips hop-by-hop headers from the
    upstream response, forwards the rest.

RFC 7230 §6.1 — hop-by-hop headers MUST NOT be forwarded by intermediaries.
Forwarding headers (X-Forwarded-For, X-Real-IP) are end-to-end and pass through.
"""

from __future__ import annotations

from typing import Iterable

import httpx

# host is derived from the upstream URL; httpx computes content-length itself.
HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)


def build_upstream_headers(request_headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Build the header list to send upstream from the incoming request headers.

    A list of pairs rather than a dict, so repeated lines such as several
    X-Forwarded-For headers reach the upstream one by one.

    Args:
        request_headers: Iterable of (name, value) tuples, typically
                         ``request.headers.items()``.
    """
    return [
        (name, value)
        for name, value in request_headers
        if name.lower() not in HOP_BY_HOP_HEADERS
    ]


def build_client_response_headers(upstream_headers: httpx.Headers) -> list[tuple[str, str]]:
    """Build the header list returned to the client from the upstream response.

    Every Set-Cookie line is kept separately; they must never be comma-joined.
    """
    return [
        (name, value)
        for name, value in upstream_headers.multi_items()
        if name.lower() not in HOP_BY_HOP_HEADERS
    ]
