"""Rate limiting for the query and config endpoints."""

import logging
from typing import Any, cast

from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from ..config import Config

logger = logging.getLogger(__name__)

QUERY_RATE_LIMIT = "120 per minute"
WRITE_RATE_LIMIT = "10 per minute"


def get_client_identifier(request: Request) -> str:
    """Get client identifier for rate limiting.

    Uses the first X-Forwarded-For address when behind a proxy, otherwise the
    peer address.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    return get_remote_address(request)


# Create the limiter instance
limiter = Limiter(key_func=get_client_identifier)


def get_limiter() -> Limiter:
    """Get the configured limiter instance."""
    return limiter


class RateLimitMiddleware:
    """Switches the shared limiter on or off according to configuration."""

    def __init__(self, app: FastAPI, config: Config):
        """Initialize rate limiting.

        Args:
            app: FastAPI application instance
            config: Application configuration
        """
        self.app = app
        self.config = config

        if self.config.security.rate_limit.enabled:
            limiter.enabled = True
            app.state.limiter = limiter

            app.add_exception_handler(
                RateLimitExceeded, cast(Any, _rate_limit_exceeded_handler)
            )

            logger.info(
                f"Rate limiting enabled: queries {QUERY_RATE_LIMIT}, "
                f"config writes {WRITE_RATE_LIMIT}"
            )
        else:
            limiter.enabled = False
            app.state.limiter = limiter
            logger.info("Rate limiting disabled")
