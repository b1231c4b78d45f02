"""API module for openfm-api."""

from .app import create_app
from .query import router as query_router
from .setup import router as setup_router

__all__ = ["create_app", "query_router", "setup_router"]
