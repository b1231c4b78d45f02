"""Request validation middleware."""

import logging
import re

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger(__name__)

TRAVERSAL_PATTERNS = [
    re.compile(r"\.\./"),
    re.compile(r"\.\.\\"),
    re.compile(r"%2e%2e", re.IGNORECASE),
    re.compile(r"\.\.%2f", re.IGNORECASE),
]


def contains_path_traversal(value: str) -> bool:
    """Check if value contains path traversal attempts."""
    return any(pattern.search(value) for pattern in TRAVERSAL_PATTERNS)


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Rejects oversized bodies, unexpected content types and traversal paths."""

    # The setup form is a handful of short text fields
    MAX_CONTENT_LENGTH = 64 * 1024
    ALLOWED_CONTENT_TYPES = [
        "multipart/form-data",
        "application/x-www-form-urlencoded",
        "application/json",
    ]
    SKIP_PATHS = ["/health", "/docs", "/redoc", "/openapi.json"]

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Validate incoming requests before processing.

        Args:
            request: The incoming request
            call_next: The next middleware/handler in the chain

        Returns:
            Error response, or the response from the next handler
        """
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        client_host = request.client.host if request.client else "unknown"

        content_length = request.headers.get("content-length")
        length = 0
        if content_length:
            try:
                length = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400, content={"error": "Invalid Content-Length header"}
                )
            if length > self.MAX_CONTENT_LENGTH:
                logger.warning(f"Request too large: {length} bytes from {client_host}")
                return JSONResponse(
                    status_code=413,
                    content={
                        "error": f"Request too large. Maximum size: {self.MAX_CONTENT_LENGTH} bytes"
                    },
                )

        # Empty bodies carry no content type
        if request.method == "POST" and length > 0:
            content_type = request.headers.get("content-type", "").lower()
            base_content_type = content_type.split(";")[0].strip()

            if base_content_type not in self.ALLOWED_CONTENT_TYPES:
                logger.warning(
                    f"Invalid content type: {content_type} from {client_host}"
                )
                return JSONResponse(
                    status_code=415,
                    content={"error": f"Unsupported content type: {base_content_type}"},
                )

        raw_path = request.scope.get("raw_path", b"").decode("latin-1")
        if contains_path_traversal(request.url.path) or contains_path_traversal(
            raw_path
        ):
            logger.warning(
                f"Path traversal attempt in URL from {client_host}: {request.url.path}"
            )
            return JSONResponse(
                status_code=400, content={"error": "Potential path traversal detected"}
            )

        return await call_next(request)
