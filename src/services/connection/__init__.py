"""Engine connections.

- base.py: connection contract and lazy, idempotent dialling
- local.py / tcp.py / ssh_tunnel.py: transport variants
- tunnel.py: HTTP over per-request SSH forwarded channels
- factory.py: transport selection
- cache.py: per-host connection registry
"""

from .base import DockerConnection
from .cache import ConnectionCache
from .factory import create_connection, parse_transport_kind
from .local import LocalConnection
from .ssh_tunnel import SSHConnection
from .tcp import TCPConnection

__all__ = [
    "DockerConnection",
    "ConnectionCache",
    "create_connection",
    "parse_transport_kind",
    "LocalConnection",
    "SSHConnection",
    "TCPConnection",
]
