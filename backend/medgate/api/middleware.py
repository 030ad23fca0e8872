"""HTTP Middleware — CORS gate, per-request access logging and the unhandled-error net.

Invariants:
    - OPTIONS (preflight) is answered with 200 before any route or pipeline runs
    - Access-Control-Allow-Origin is set ONLY for origins on the allow-list (echoed back)
    - Methods, headers and credentials policy are fixed
    - Every HTTP request produces exactly one access log record, including failures
    - Exceptions no handler claimed become a classified 500 INSIDE the CORS gate,
      so browsers on allow-listed origins can read the error body

Design Decisions:
    - Pure ASGI middleware (not BaseHTTPMiddleware): no response body buffering
    - Access log re-raises after logging: the global handlers still own the response
"""

import logging
import time
from collections.abc import Awaitable, Callable

from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from medgate.infrastructure.observability import EventLogger

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
ALLOWED_HEADERS = "Origin, X-Requested-With, Content-Type, Accept, Authorization"


class CORSGateMiddleware:
    """Echo allow-listed origins and short-circuit preflight requests."""

    def __init__(self, app: ASGIApp, allow_origins: list[str] | None = None):
        self.app = app
        self.allow_origins = frozenset(allow_origins or [])

    def cors_headers(self, origin: str | None) -> dict[str, str]:
        headers = {
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
            "Access-Control-Allow-Credentials": "true",
        }
        if origin and origin in self.allow_origins:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Vary"] = "Origin"
        return headers

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        cors_headers = self.cors_headers(origin)
        if origin and origin not in self.allow_origins:
            logger.info(f"CORS origin not allowed: {origin}")

        if scope["method"] == "OPTIONS":
            response = PlainTextResponse("OK", status_code=200, headers=cors_headers)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in cors_headers.items():
                    headers[key] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)


class AccessLogMiddleware:
    """One structured log line per request: method, path, status, duration."""

    def __init__(self, app: ASGIApp, events: EventLogger | None = None):
        self.app = app
        self.events = events or EventLogger()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500
        headers = Headers(scope=scope)
        client = scope.get("client")
        context = {
            "method": scope["method"],
            "path": scope.get("path", ""),
            "client_key": client[0] if client else "unknown",
            "user_agent": headers.get("user-agent"),
        }

        async def send_capturing_status(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_capturing_status)
        finally:
            self.events.request_completed(
                context, status_code, (time.perf_counter() - start) * 1000,
            )


class UnhandledErrorMiddleware:
    """Render exceptions that escaped the exception handlers with error_handler."""

    def __init__(
        self,
        app: ASGIApp,
        error_handler: Callable[[Request, Exception], Awaitable[Response]],
    ):
        self.app = app
        self.error_handler = error_handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking_start(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_tracking_start)
        except Exception as exc:
            # Headers already sent: nothing left to replace
            if response_started:
                raise
            response = await self.error_handler(Request(scope), exc)
            await response(scope, receive, send)
