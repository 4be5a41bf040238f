"""
Request guards that run before any route: per-IP rate limiting and a body size cap.

Both answer with the standard error envelope directly; nothing downstream
(authentication, quota, Claude) runs for a rejected request.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

from fastapi import HTTPException, Request, Response
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from journal_api.shared.errors import (
    JournalServiceError,
    PayloadTooLarge,
    RateLimitExceeded,
    error_response,
)

logger = logging.getLogger("JournalAI.Middleware")


def _reject(exc: JournalServiceError, headers: Optional[Dict[str, str]] = None) -> Response:
    return error_response(
        error=exc.error,
        message=exc.message,
        status_code=exc.status_code,
        code=exc.code,
        headers=headers,
    )


@dataclass
class _Window:
    count: int
    reset_at: float


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip()
        if ip:
            return ip
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window request limit per client IP.

    Windows live in process memory, so the limit applies per instance.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int = 100,
        window_seconds: int = 15 * 60,
        exempt_paths: Iterable[str] = ("/health",),
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.exempt_paths = frozenset(exempt_paths)
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = asyncio.Lock()
        self._next_purge = 0.0

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exempt_paths or request.method == "OPTIONS":
            return await call_next(request)

        identifier = client_ip(request)
        allowed, remaining, reset_at = await self._hit(identifier)
        headers = {
            "X-RateLimit-Limit": str(self.max_requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(int(reset_at)),
        }

        if not allowed:
            retry_after = max(1, math.ceil(reset_at - self._clock()))
            logger.warning(
                "Rate limit exceeded for %s on %s %s", identifier, request.method, request.url.path,
            )
            headers["Retry-After"] = str(retry_after)
            return _reject(
                RateLimitExceeded(f"Too many requests, please try again in {retry_after} seconds"),
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    async def _hit(self, identifier: str) -> Tuple[bool, int, float]:
        """Count one request. Returns (allowed, remaining, reset epoch seconds)."""
        async with self._lock:
            now = self._clock()
            if now >= self._next_purge:
                self._purge(now)

            window = self._windows.get(identifier)
            if window is None or now >= window.reset_at:
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._windows[identifier] = window

            window.count += 1
            allowed = window.count <= self.max_requests
            return allowed, max(0, self.max_requests - window.count), window.reset_at

    def _purge(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Purged %s expired rate limit windows", len(expired))
        self._next_purge = now + self.window_seconds


class BodySizeLimitMiddleware:
    """
    Reject request bodies larger than ``max_bytes``.

    A declared Content-Length over the cap is answered before the app runs.
    Bodies without one (chunked uploads) are counted as they are received;
    the read that crosses the cap raises a 413 ``HTTPException``, which the
    app's handlers turn into the envelope.
    """

    def __init__(self, app: ASGIApp, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_bytes:
            self._log(scope, declared)
            await self._rejection()(scope, receive, send)
            return

        received = 0
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    self._log(scope, f"over {received}")
                    raise HTTPException(status_code=413, detail=self._message)
            return message

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracking_send)
        except HTTPException as exc:
            if exc.status_code != 413 or response_started:
                raise
            await self._rejection()(scope, receive, send)

    @property
    def _message(self) -> str:
        return f"Request body must not exceed {self.max_bytes:,} bytes"

    def _rejection(self) -> Response:
        return _reject(PayloadTooLarge(self._message))

    @staticmethod
    def _log(scope: Scope, size: str) -> None:
        logger.warning("Rejected %s byte body on %s %s", size, scope["method"], scope["path"])
