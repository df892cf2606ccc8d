"""Application middleware: request body size limit and security headers."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

_BODY_METHODS = ("POST", "PATCH", "PUT")


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized write bodies up front, based on Content-Length.

    Job photos and avatars are URLs, so legitimate payloads stay small.
    """

    def __init__(self, app, max_bytes: int = 1_048_576) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
        if request.method not in _BODY_METHODS:
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length is None:
            return await call_next(request)
        try:
            size = int(content_length)
        except ValueError:
            return JSONResponse(
                status_code=400,
                content={"detail": "Invalid Content-Length header", "code": "bad_request"},
            )
        if size > self.max_bytes:
            logger.warning(
                "Rejected %s %s: body of %d bytes exceeds %d",
                request.method, request.url.path, size, self.max_bytes,
            )
            return JSONResponse(
                status_code=413,
                content={
                    "detail": f"Request body too large (max {self.max_bytes} bytes)",
                    "code": "payload_too_large",
                },
            )
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Security headers on every response, errors included."""

    HEADERS = {
        "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        # Responses are per-caller (own jobs, own bids)
        "Cache-Control": "no-store",
    }

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)
        return response
