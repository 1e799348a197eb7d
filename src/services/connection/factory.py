"""Transport selection for engine connections."""

from typing import Callable, Dict, Optional

from ...models.errors import ConfigurationError
from ...models.host import CertificateStore, HostDescriptor, TransportKind
from .base import DockerConnection
from .local import LocalConnection
from .ssh_tunnel import SSHConnection
from .tcp import TCPConnection

ConnectionFactory = Callable[[HostDescriptor, Optional[CertificateStore]], DockerConnection]

# Every TransportKind must have an entry; checked at import time below
CONNECTION_FACTORIES: Dict[TransportKind, ConnectionFactory] = {
    TransportKind.LOCAL: lambda host, cert_store: LocalConnection(host),
    TransportKind.TCP: lambda host, cert_store: TCPConnection(host, cert_store=cert_store),
    TransportKind.SSH: lambda host, cert_store: SSHConnection(host),
}

_missing = set(TransportKind) - set(CONNECTION_FACTORIES)
if _missing:
    raise RuntimeError(f"No connection factory for transport(s): {sorted(k.value for k in _missing)}")


def parse_transport_kind(value: str) -> TransportKind:
    """Map a stored host type to a transport, rejecting unknown values."""
    try:
        return TransportKind(value)
    except ValueError:
        raise ConfigurationError(f"Unsupported host type: {value}") from None


def create_connection(host: HostDescriptor, cert_store: Optional[CertificateStore] = None) -> DockerConnection:
    """Build an unconnected engine connection for ``host``."""
    kind = parse_transport_kind(host.type)
    return CONNECTION_FACTORIES[kind](host, cert_store)
