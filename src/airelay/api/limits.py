"""Inbound body-size limits.

:class:`BodySizeLimitMiddleware` is a pure ASGI middleware that counts the
request bytes actually received, so chunked bodies without a
``Content-Length`` header are bounded the same way as declared ones.

- Multipart bodies are capped at ``max_upload_bytes`` plus
  :data:`MULTIPART_OVERHEAD` for boundaries and part headers, and rejected
  with 413 ``file_too_large``.  The exact per-file check still happens in the
  upload routes.
- Every other body is parsed as JSON by the routes and is capped at
  ``max_json_bytes`` (413 ``payload_too_large``).

A declared ``Content-Length`` over the cap is rejected before any byte is
read.  Otherwise the wrapped ``receive`` raises once the running count passes
the cap; whatever response the application then produces is replaced by the
413 envelope.
"""

from __future__ import annotations

import logging

from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from airelay.api.models import ErrorResponse

logger = logging.getLogger(__name__)

MULTIPART_OVERHEAD = 64 * 1024


class BodyTooLarge(Exception):
    """Raised from the wrapped ``receive`` once a body passes its cap."""


class BodySizeLimitMiddleware:
    def __init__(self, app: ASGIApp, *, max_json_bytes: int, max_upload_bytes: int) -> None:
        self.app = app
        self.max_json_bytes = max_json_bytes
        self.max_multipart_bytes = max_upload_bytes + MULTIPART_OVERHEAD

    def limit_for(self, content_type: str) -> tuple[int, str]:
        """Return ``(cap, error_code)`` for a request content type."""
        if content_type.lower().startswith("multipart/"):
            return self.max_multipart_bytes, "file_too_large"
        return self.max_json_bytes, "payload_too_large"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        limit, error = self.limit_for(headers.get("content-type", ""))
        path = scope.get("path", "")

        length = headers.get("content-length", "")
        if length.isdigit() and int(length) > limit:
            logger.warning(f"{path}: declared body of {length} bytes rejected")
            await self._reject(scope, receive, send, error, limit)
            return

        received = 0
        exceeded = False
        response_started = False

        async def receive_limited() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message.get("type") == "http.request":
                received += len(message.get("body") or b"")
                if received > limit:
                    exceeded = True
                    raise BodyTooLarge(f"Body exceeds {limit} bytes")
            return message

        async def send_guarded(message: Message) -> None:
            nonlocal response_started
            # The application's own reaction to BodyTooLarge is discarded.
            if exceeded:
                return
            if message.get("type") == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive_limited, send_guarded)
        except BodyTooLarge:
            pass

        if exceeded and not response_started:
            logger.warning(f"{path}: body rejected after {received} bytes")
            await self._reject(scope, receive, send, error, limit)

    @staticmethod
    async def _reject(scope: Scope, receive: Receive, send: Send, error: str, limit: int) -> None:
        body = ErrorResponse(error=error, details=f"Body exceeds {limit} bytes")
        response = JSONResponse(status_code=413, content=body.model_dump(exclude_none=True))
        await response(scope, receive, send)
