"""HTTP adapter that carries engine API requests over SSH forwarded channels.

Every request opens its own ``direct-tcpip`` channel to the engine port on
the remote loopback interface, writes the raw HTTP request onto it and reads
the raw response back. Channels are closed when the response is released and
are never pooled.
"""

import paramiko
import requests.adapters
import structlog
import urllib3.connection
import urllib3.connectionpool
from urllib3.exceptions import NewConnectionError

logger = structlog.get_logger(__name__)

_REMOTE_LOOPBACK = "127.0.0.1"


class TunnelHTTPConnection(urllib3.connection.HTTPConnection):
    """An HTTP connection whose socket is a fresh SSH channel."""

    def __init__(self, ssh_transport: paramiko.Transport, remote_port: int, timeout: float = 60):
        super().__init__("localhost", timeout=timeout)
        self.ssh_transport = ssh_transport
        self.remote_port = remote_port
        self.channel_timeout = timeout

    def connect(self):
        try:
            channel = self.ssh_transport.open_channel(
                "direct-tcpip",
                dest_addr=(_REMOTE_LOOPBACK, self.remote_port),
                src_addr=(_REMOTE_LOOPBACK, 0),
                timeout=self.channel_timeout,
            )
        except (paramiko.SSHException, OSError) as e:
            raise NewConnectionError(
                self, f"Failed to open SSH channel to {_REMOTE_LOOPBACK}:{self.remote_port}: {e}"
            ) from e

        channel.settimeout(self.channel_timeout)
        self.sock = channel


class TunnelConnectionPool(urllib3.connectionpool.HTTPConnectionPool):
    """Pool that hands out a new tunnelled connection for every request."""

    scheme = "http"

    def __init__(self, ssh_transport: paramiko.Transport, remote_port: int, timeout: float = 60):
        super().__init__("localhost", timeout=timeout, maxsize=1)
        self.ssh_transport = ssh_transport
        self.remote_port = remote_port
        self.channel_timeout = timeout

    def _new_conn(self):
        self.num_connections += 1
        return TunnelHTTPConnection(self.ssh_transport, self.remote_port, self.channel_timeout)

    def _put_conn(self, conn):
        # One request, one channel: never return a used connection to the pool
        if conn is not None:
            conn.close()
        super()._put_conn(None)


class SSHTunnelHTTPAdapter(requests.adapters.HTTPAdapter):
    """requests adapter routing every request through ``TunnelConnectionPool``."""

    def __init__(self, ssh_transport: paramiko.Transport, remote_port: int, timeout: float = 60):
        self.ssh_transport = ssh_transport
        self.remote_port = remote_port
        self.timeout = timeout
        self.pool = TunnelConnectionPool(ssh_transport, remote_port, timeout)
        super().__init__()

    def get_connection(self, url, proxies=None):
        return self.pool

    def get_connection_with_tls_context(self, request, verify, proxies=None, cert=None):
        return self.pool

    def request_url(self, request, proxies):
        return request.path_url

    def close(self):
        self.pool.close()
        super().close()
