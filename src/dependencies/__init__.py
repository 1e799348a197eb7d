"""Dependencies package for the host connection and compose layer."""

from .services import ServiceContainer

__all__ = ["ServiceContainer"]
