"""Security headers for API responses."""

import logging
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Swagger UI needs inline scripts and styles
DOCS_CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "img-src 'self' data: https:; "
    "frame-ancestors 'none'; "
    "base-uri 'self'"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers to every response."""

    DEFAULT_HEADERS: dict[str, str] = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
        "X-DNS-Prefetch-Control": "off",
    }

    def __init__(self, app: Any, custom_headers: dict[str, str] | None = None):
        """Initialize security headers middleware.

        Args:
            app: ASGI application
            custom_headers: Optional headers to add or override
        """
        super().__init__(app)
        self.security_headers = {**self.DEFAULT_HEADERS, **(custom_headers or {})}
        logger.debug(
            f"Security headers middleware initialized with {len(self.security_headers)} headers"
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)

        for header_name, header_value in self.security_headers.items():
            response.headers.setdefault(header_name, header_value)

        if "text/html" in response.headers.get("content-type", "").lower():
            response.headers["Content-Security-Policy"] = DOCS_CONTENT_SECURITY_POLICY

        return response
