"""Registry of live engine connections, one per host identity."""

import asyncio
from typing import Callable, Dict, Optional

import docker
import structlog

from ...models.errors import ConnectionCloseError, HostConnectionError
from ...models.host import CertificateStore, HostDescriptor
from .base import DockerConnection
from .factory import create_connection

logger = structlog.get_logger(__name__)


class ConnectionCache:
    """Creates, reuses and tears down engine connections keyed by host id.

    Lookups take no lock. Creation happens under a lock that re-checks the
    registry, so concurrent callers for the same host share one connection.
    Constructing a connection does not dial; dialling happens on first
    ``connect`` and is itself serialized per connection.
    """

    def __init__(
        self,
        cert_store: Optional[CertificateStore] = None,
        factory: Callable[..., DockerConnection] = create_connection,
    ):
        self.cert_store = cert_store
        self._factory = factory
        self._connections: Dict[str, DockerConnection] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, host_id: str) -> bool:
        return host_id in self._connections

    async def get(self, host: HostDescriptor) -> DockerConnection:
        """Return the cached connection for ``host``, creating it if needed."""
        conn = self._connections.get(host.id)
        if conn is not None:
            return conn

        async with self._lock:
            conn = self._connections.get(host.id)
            if conn is None:
                conn = self._factory(host, self.cert_store)
                self._connections[host.id] = conn
                logger.info("Connection registered", host_id=host.id, type=conn.kind.value)
            return conn

    async def get_client(self, host: HostDescriptor) -> docker.DockerClient:
        """Return a connected engine client for ``host``."""
        conn = await self.get(host)
        return await conn.connect()

    async def remove(self, host_id: str) -> None:
        """Close and evict one connection. Unknown ids are ignored."""
        async with self._lock:
            conn = self._connections.pop(host_id, None)

        if conn is None:
            return

        try:
            await conn.close()
        except Exception as e:
            raise HostConnectionError(f"Failed to close connection: {e}", host=host_id) from e
        logger.info("Connection removed", host_id=host_id)

    async def remove_all(self) -> None:
        """Close every connection and clear the registry.

        All connections are closed even if some fail; failures are raised
        together as one ``ConnectionCloseError``.
        """
        async with self._lock:
            connections, self._connections = self._connections, {}

        failures: Dict[str, BaseException] = {}
        for host_id, conn in connections.items():
            try:
                await conn.close()
            except Exception as e:
                logger.error("Failed to close connection", host_id=host_id, error=str(e))
                failures[host_id] = e

        if failures:
            raise ConnectionCloseError(failures)

    async def test(self, host: HostDescriptor) -> None:
        """Check that ``host`` is reachable without touching the registry."""
        conn = self._factory(host, self.cert_store)
        try:
            await conn.test()
        finally:
            try:
                await conn.close()
            except Exception as e:
                logger.warning("Failed to close test connection", host_id=host.id, error=str(e))
