"""Utility modules for the host connection layer."""

from .logging import setup_logging, get_logger
from .security import PathValidator, validate_filename, validate_path
from .shutdown import GracefulShutdownHandler, register_connection_cache

__all__ = [
    "setup_logging",
    "get_logger",
    "PathValidator",
    "validate_filename",
    "validate_path",
    "GracefulShutdownHandler",
    "register_connection_cache",
]
