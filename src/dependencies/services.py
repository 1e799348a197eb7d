"""Composition root wiring the connection cache, executors and compose."""

from dataclasses import dataclass, field
from typing import Callable, Optional

import docker
import structlog

from ..models.host import CertificateStore, HostDescriptor
from ..services.compose import ComposeService
from ..services.connection import ConnectionCache, create_connection
from ..services.executor import CommandExecutor, create_executor
from ..utils.shutdown import GracefulShutdownHandler, register_connection_cache

logger = structlog.get_logger(__name__)


@dataclass
class ServiceContainer:
    """Owns the process's long-lived services and hands out per-call ones.

    Engine connections are cached here for the life of the process.
    Executors are not: every ``executor_for`` call returns a fresh
    instance the caller must close.
    """

    cert_store: Optional[CertificateStore] = None
    executor_factory: Callable[[HostDescriptor], CommandExecutor] = create_executor
    connections: ConnectionCache = field(init=False)

    def __post_init__(self):
        self.connections = ConnectionCache(cert_store=self.cert_store, factory=create_connection)

    async def docker_client(self, host: HostDescriptor) -> docker.DockerClient:
        """Engine client for ``host``, dialling on first use."""
        return await self.connections.get_client(host)

    def executor_for(self, host: HostDescriptor) -> CommandExecutor:
        return self.executor_factory(host)

    def compose_for(self, host: HostDescriptor) -> ComposeService:
        """Compose service bound to a new executor for ``host``.

        Close it with ``await service.executor.close()`` when done.
        """
        return ComposeService(self.executor_for(host))

    def register_shutdown(self, handler: GracefulShutdownHandler) -> None:
        register_connection_cache(handler, self.connections)

    async def close(self) -> None:
        logger.info("Closing cached connections", count=len(self.connections))
        await self.connections.remove_all()
