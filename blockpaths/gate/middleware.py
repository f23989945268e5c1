"""Starlette middleware wrapping the path gate.

Registration (in create_app() in blockpaths/main.py):
    gate = PathGate.from_config(config.gate)
    application.add_middleware(BlockPathsMiddleware, gate=gate)

The gate is compiled BEFORE add_middleware() so that a configuration error
aborts application startup. Starlette builds the middleware stack lazily on
the first request; compiling inside __init__ would defer the failure until then.

Blocked requests receive the configured status code with an empty body and
never reach the next handler. All other requests pass through unchanged.
"""

from __future__ import annotations

from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from blockpaths.gate.decision import PathGate


def escaped_path(request: Request) -> str:
    """Return the request path exactly as received on the wire.

    Uses the ASGI ``raw_path`` (percent-encoding preserved). Some servers and
    test transports include the query string in ``raw_path``; it is cut off.
    Falls back to re-quoting the decoded ``path`` when ``raw_path`` is absent.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1").split("?", 1)[0]
    return quote(request.scope.get("path", "/"), safe="/:@!$&'()*+,;=-._~")


class BlockPathsMiddleware(BaseHTTPMiddleware):
    """Short-circuit requests whose escaped path matches a block rule."""

    def __init__(self, app: ASGIApp, gate: PathGate) -> None:
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        decision = self.gate.evaluate(
            escaped_path(request),
            request.headers,
            host=request.headers.get("host", request.url.netloc),
            url=str(request.url),
        )

        if decision.blocked:
            return Response(status_code=decision.status_code)

        return await call_next(request)
