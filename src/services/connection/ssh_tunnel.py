"""Docker engine connection tunnelled through SSH."""

from typing import Dict, List, Optional

import docker
import paramiko
import structlog
from docker.constants import DEFAULT_DOCKER_API_VERSION

from ...config import settings
from ...models.errors import HostConnectionError
from ...models.host import HostDescriptor, TransportKind
from .base import DockerConnection
from .ssh import create_ssh_client, resolve_ssh_port, ssh_transport
from .tunnel import SSHTunnelHTTPAdapter

logger = structlog.get_logger(__name__)


class SSHConnection(DockerConnection):
    """Reaches an engine listening on the remote host's loopback port.

    The SSH session is dialled once per connection. The engine client talks
    plain HTTP to ``localhost`` and every request is carried by a new
    forwarded channel (see ``SSHTunnelHTTPAdapter``).
    """

    kind = TransportKind.SSH

    def __init__(self, host: HostDescriptor, timeout: Optional[int] = None):
        super().__init__(host)
        self.timeout = timeout or settings.ssh_tunnel_http_timeout
        self.docker_port = host.docker_port or settings.docker_ssh_tunnel_port
        self.ssh_port = resolve_ssh_port(host)
        self.ssh_client: Optional[paramiko.SSHClient] = None

    def info(self) -> Dict[str, str]:
        return {
            "type": self.kind.value,
            "host": self.host.host,
            "ssh_port": str(self.ssh_port),
            "ssh_user": self.host.ssh_user,
            "auth_type": self.host.ssh_auth_type,
            "docker_port": str(self.docker_port),
            "desc": "SSH tunnel connection",
        }

    def _dial(self) -> docker.DockerClient:
        ssh_client = create_ssh_client(self.host)
        try:
            # A pinned version keeps the constructor from calling the API
            # before the tunnel adapter is mounted
            client = docker.DockerClient(
                base_url=f"tcp://localhost:{self.docker_port}",
                version=DEFAULT_DOCKER_API_VERSION,
                timeout=self.timeout,
            )
            adapter = SSHTunnelHTTPAdapter(ssh_transport(ssh_client), self.docker_port, self.timeout)
            client.api.mount("http://", adapter)

            # Negotiate the API version through the tunnel
            server_version = client.api.version(api_version=False)
            client.api._version = server_version.get("ApiVersion", DEFAULT_DOCKER_API_VERSION)
        except Exception:
            ssh_client.close()
            raise

        self.ssh_client = ssh_client
        logger.info(
            "SSH tunnel established",
            host_id=self.host.id,
            api_version=client.api.api_version,
        )
        return client

    def _release(self, client: Optional[docker.DockerClient]) -> None:
        errors: List[str] = []

        if client is not None:
            try:
                client.close()
            except Exception as e:
                errors.append(f"docker client: {e}")

        ssh_client, self.ssh_client = self.ssh_client, None
        if ssh_client is not None:
            try:
                ssh_client.close()
            except Exception as e:
                errors.append(f"ssh client: {e}")

        if errors:
            raise HostConnectionError(f"Errors while closing connection: {'; '.join(errors)}", host=self.host.id)
