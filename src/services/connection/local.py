"""Local Docker engine connection."""

from typing import Dict, Optional

import docker

from ...config import settings
from ...models.host import HostDescriptor, TransportKind
from .base import DockerConnection


class LocalConnection(DockerConnection):
    """Connects through the platform default endpoint (``DOCKER_HOST`` or the local socket)."""

    kind = TransportKind.LOCAL

    def __init__(self, host: HostDescriptor, timeout: Optional[int] = None):
        super().__init__(host)
        self.timeout = timeout or settings.docker_timeout

    def info(self) -> Dict[str, str]:
        return {"type": self.kind.value, "desc": "Local Docker connection"}

    def _dial(self) -> docker.DockerClient:
        return docker.from_env(timeout=self.timeout)
