"""Database module for openfm-api."""

from .connection import DatabaseManager
from .operations import DatabaseOperations

__all__ = ["DatabaseManager", "DatabaseOperations"]
