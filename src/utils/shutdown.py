"""Graceful shutdown handling for long-lived connections."""

import asyncio
from typing import TYPE_CHECKING, Awaitable, Callable, List

import structlog

if TYPE_CHECKING:
    from ..services.connection.cache import ConnectionCache


logger = structlog.get_logger(__name__)


class GracefulShutdownHandler:
    """Handler for graceful application shutdown."""

    def __init__(self, callback_timeout: float = 10.0):
        """Initialize shutdown handler."""
        self._shutdown_callbacks: List[Callable[[], Awaitable[None]]] = []
        self._is_shutting_down = False
        self._shutdown_lock = asyncio.Lock()
        self._callback_timeout = callback_timeout

    @property
    def is_shutting_down(self) -> bool:
        return self._is_shutting_down

    def add_shutdown_callback(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Add a callback to be executed during shutdown."""
        self._shutdown_callbacks.append(callback)

    async def shutdown(self) -> None:
        """Perform graceful shutdown."""
        async with self._shutdown_lock:
            if self._is_shutting_down:
                return

            self._is_shutting_down = True
            logger.info("Starting graceful shutdown")

            # Execute shutdown callbacks in reverse order with timeout
            for callback in reversed(self._shutdown_callbacks):
                callback_name = getattr(callback, "__name__", str(callback))
                try:
                    await asyncio.wait_for(callback(), timeout=self._callback_timeout)
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Shutdown callback {callback_name} timed out after {self._callback_timeout} seconds"
                    )
                except Exception as e:
                    logger.error(f"Error in shutdown callback {callback_name}", error=str(e))

            logger.info("Graceful shutdown completed")


def register_connection_cache(handler: GracefulShutdownHandler, cache: "ConnectionCache") -> None:
    """Close every cached engine connection when the process shuts down."""

    async def close_connections() -> None:
        logger.info("Closing cached connections", count=len(cache))
        await cache.remove_all()
        logger.info("Cached connections closed")

    handler.add_shutdown_callback(close_connections)
