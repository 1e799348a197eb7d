"""Command executors.

- base.py: executor contract shared by every host kind
- stream.py: output streams with exactly-once close
- local.py: subprocesses and the local filesystem
- ssh.py: sessions and shell utilities over one SSH connection
"""

from ...models.errors import ConfigurationError
from ...models.host import HostDescriptor, TransportKind
from ..connection.factory import parse_transport_kind
from .base import CommandExecutor
from .local import LocalExecutor
from .ssh import SSHExecutor, build_remote_command, parse_ls_output
from .stream import (
    BufferedStream,
    ChannelStream,
    CleanupStream,
    CommandStream,
    ProcessStream,
)


def create_executor(host: HostDescriptor) -> CommandExecutor:
    """Create the executor matching a host's transport.

    Only local and SSH hosts can run the compose CLI; a TCP host exposes
    the engine API alone.
    """
    kind = parse_transport_kind(host.type)
    if kind == TransportKind.LOCAL:
        return LocalExecutor()
    if kind == TransportKind.SSH:
        return SSHExecutor(host)
    raise ConfigurationError(f"Command execution is not supported for host type: {kind.value}")


__all__ = [
    "CommandExecutor",
    "LocalExecutor",
    "SSHExecutor",
    "build_remote_command",
    "parse_ls_output",
    "create_executor",
    "CommandStream",
    "ProcessStream",
    "ChannelStream",
    "BufferedStream",
    "CleanupStream",
]
