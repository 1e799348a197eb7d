"""Engine connection contract shared by every transport."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, TypeVar

import docker
import structlog
from docker.errors import DockerException

from ...models.errors import ConfigurationError, HostConnectionError
from ...models.host import HostDescriptor, TransportKind

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking SDK call on the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


class DockerConnection(ABC):
    """A lazily dialled engine client for one host.

    ``connect`` is idempotent: the first call dials, later calls return the
    same client. Concurrent first callers are serialized so only one dial
    happens. Once connected the client handle is shared read-only.
    """

    kind: TransportKind

    def __init__(self, host: HostDescriptor):
        self.host = host
        self.client: Optional[docker.DockerClient] = None
        self._connect_lock = asyncio.Lock()
        self._closed = False

    async def connect(self) -> docker.DockerClient:
        """Return the engine client, dialling on first use."""
        if self.client is not None:
            return self.client

        async with self._connect_lock:
            if self.client is not None:
                return self.client
            if self._closed:
                raise HostConnectionError("Connection has been closed", host=self.host.id)

            logger.info("Connecting to Docker host", host_id=self.host.id, **self.info())
            try:
                self.client = await run_blocking(self._dial)
            except (ConfigurationError, HostConnectionError):
                raise
            except (DockerException, OSError) as e:
                raise HostConnectionError(
                    f"Failed to create {self.kind.value} Docker client: {e}", host=self.host.id
                ) from e
            return self.client

    async def close(self) -> None:
        """Release the client and any transport. A second call is a no-op."""
        if self._closed:
            return
        self._closed = True
        client, self.client = self.client, None
        await run_blocking(self._release, client)

    async def test(self) -> None:
        """Connect and issue a liveness probe."""
        client = await self.connect()
        try:
            await run_blocking(client.ping)
        except (DockerException, OSError) as e:
            raise HostConnectionError(f"Docker ping failed: {e}", host=self.host.id) from e

    @abstractmethod
    def info(self) -> Dict[str, str]:
        """Diagnostic metadata. Must never contain secrets."""

    @abstractmethod
    def _dial(self) -> docker.DockerClient:
        """Create the engine client. Runs on a worker thread."""

    def _release(self, client: Optional[docker.DockerClient]) -> None:
        """Close the engine client. Runs on a worker thread."""
        if client is not None:
            client.close()
