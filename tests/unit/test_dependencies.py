"""Unit tests for the service container."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.dependencies import ServiceContainer
from src.services.compose import ComposeService
from src.services.executor import LocalExecutor
from src.utils.shutdown import GracefulShutdownHandler


class TestServiceContainer:
    """Tests for ServiceContainer wiring."""

    def test_cache_gets_cert_store(self):
        store = MagicMock()

        container = ServiceContainer(cert_store=store)

        assert container.connections.cert_store is store

    def test_executor_per_call(self, local_host):
        container = ServiceContainer()

        first = container.executor_for(local_host)
        second = container.executor_for(local_host)

        assert isinstance(first, LocalExecutor)
        assert first is not second

    def test_compose_for(self, local_host):
        executor = MagicMock()
        container = ServiceContainer(executor_factory=lambda host: executor)

        service = container.compose_for(local_host)

        assert isinstance(service, ComposeService)
        assert service.executor is executor

    @pytest.mark.asyncio
    async def test_docker_client_is_cached(self, local_host):
        container = ServiceContainer()
        client = MagicMock()

        with patch("src.services.connection.local.docker.from_env", return_value=client) as from_env:
            first = await container.docker_client(local_host)
            second = await container.docker_client(local_host)

        assert first is second is client
        from_env.assert_called_once()
        await container.close()
        client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_shutdown_closes_connections(self):
        container = ServiceContainer()
        container.connections.remove_all = AsyncMock()
        handler = GracefulShutdownHandler()

        container.register_shutdown(handler)
        await handler.shutdown()

        container.connections.remove_all.assert_awaited_once()
