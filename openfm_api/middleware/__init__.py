"""Middleware for the openfm-api application."""

from .rate_limiter import (
    QUERY_RATE_LIMIT,
    WRITE_RATE_LIMIT,
    RateLimitMiddleware,
    get_limiter,
)
from .security import SecurityHeadersMiddleware
from .validation import RequestValidationMiddleware

__all__ = [
    "QUERY_RATE_LIMIT",
    "WRITE_RATE_LIMIT",
    "RateLimitMiddleware",
    "get_limiter",
    "SecurityHeadersMiddleware",
    "RequestValidationMiddleware",
]
