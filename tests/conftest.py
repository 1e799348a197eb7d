"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.host import HostDescriptor
from src.services.executor.base import CommandExecutor
from src.services.executor.stream import BufferedStream


@pytest.fixture
def local_host() -> HostDescriptor:
    """Descriptor for the engine on this machine."""
    return HostDescriptor(id="host-local", name="local", type="local")


@pytest.fixture
def tcp_host() -> HostDescriptor:
    """Descriptor for a TLS protected remote engine."""
    return HostDescriptor(id="host-tcp", name="build box", type="tcp", host="10.0.0.5")


@pytest.fixture
def ssh_host() -> HostDescriptor:
    """Descriptor for an engine reached over SSH with a password."""
    return HostDescriptor(
        id="host-ssh",
        name="edge",
        type="ssh",
        host="edge.example.com",
        ssh_user="deploy",
        ssh_auth_type="password",
        ssh_password="hunter2",
    )


def make_mock_executor(
    scratch_path: str = "/tmp/dockhand-compose/abc123/docker-compose.yml",
    output: bytes = b"",
    stream_data: bytes = b"",
) -> MagicMock:
    """A ``CommandExecutor`` double whose calls can be inspected."""
    executor = MagicMock(spec=CommandExecutor)
    executor.write_file = AsyncMock(return_value=scratch_path)
    executor.remove_file = AsyncMock()
    executor.execute = AsyncMock(return_value=output)
    executor.execute_stream = AsyncMock(side_effect=lambda *a, **kw: BufferedStream(stream_data, list(a)))
    executor.close = AsyncMock()
    return executor


@pytest.fixture
def executor_factory():
    """Build executor doubles with custom scratch paths or output."""
    return make_mock_executor


@pytest.fixture
def mock_executor() -> MagicMock:
    return make_mock_executor()
