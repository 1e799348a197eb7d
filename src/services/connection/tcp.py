"""Remote Docker engine connection over TCP, optionally with TLS."""

import os
import shutil
import tempfile
from typing import Dict, Optional

import docker
import structlog
from docker.tls import TLSConfig
from docker.utils import kwargs_from_env

from ...config import settings
from ...models.errors import ConfigurationError, HostConnectionError
from ...models.host import CertificateStore, HostDescriptor, TransportKind
from .base import DockerConnection

logger = structlog.get_logger(__name__)


class TCPConnection(DockerConnection):
    """Connects to ``tcp://host:port``.

    TLS material comes from the certificate store when the host references a
    certificate and a store is available, otherwise from the standard Docker
    environment variables, otherwise the system trust store is used to verify
    the daemon without a client certificate.
    """

    kind = TransportKind.TCP

    def __init__(
        self,
        host: HostDescriptor,
        cert_store: Optional[CertificateStore] = None,
        timeout: Optional[int] = None,
    ):
        super().__init__(host)
        if not host.host:
            raise ConfigurationError(f"TCP host {host.id} has no address")
        self.cert_store = cert_store
        self.timeout = timeout or settings.docker_timeout
        self.use_tls = not host.skip_tls_verify
        default_port = settings.docker_tcp_tls_port if self.use_tls else settings.docker_tcp_plain_port
        self.port = host.docker_port or default_port
        self._cert_dir: Optional[str] = None

    @property
    def base_url(self) -> str:
        return f"tcp://{self.host.host}:{self.port}"

    def info(self) -> Dict[str, str]:
        return {
            "type": self.kind.value,
            "host": self.host.host,
            "port": str(self.port),
            "tls": str(self.use_tls).lower(),
            "desc": "Remote TCP connection",
        }

    def _dial(self) -> docker.DockerClient:
        tls = self._build_tls_config() if self.use_tls else False
        try:
            return docker.DockerClient(base_url=self.base_url, tls=tls, timeout=self.timeout)
        except Exception:
            self._remove_cert_dir()
            raise

    def _build_tls_config(self):
        """Resolve the TLS configuration for a verified connection."""
        if self.host.tls_cert_id and self.cert_store is not None:
            return self._tls_from_store(self.host.tls_cert_id)

        env_tls = kwargs_from_env().get("tls")
        if env_tls:
            logger.debug("Using TLS configuration from environment", host_id=self.host.id)
            return env_tls

        if self.host.tls_cert_id:
            logger.warning(
                "Host references a TLS certificate but no certificate store is configured",
                host_id=self.host.id,
                tls_cert_id=self.host.tls_cert_id,
            )
        return TLSConfig(verify=True)

    def _tls_from_store(self, cert_id: str) -> TLSConfig:
        """Materialize stored PEM material into a private directory for the SDK."""
        try:
            bundle = self.cert_store.get_certificate(cert_id)
        except Exception as e:
            raise HostConnectionError(f"Failed to load TLS certificate {cert_id}: {e}", host=self.host.id) from e

        self._cert_dir = tempfile.mkdtemp(prefix="dockhand-tls-")
        os.chmod(self._cert_dir, 0o700)

        def _write(name: str, content: str) -> str:
            path = os.path.join(self._cert_dir, name)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            return path

        cert_path = _write("cert.pem", bundle.client_cert)
        key_path = _write("key.pem", bundle.client_key)
        ca_path = _write("ca.pem", bundle.ca_cert) if bundle.ca_cert else None

        return TLSConfig(client_cert=(cert_path, key_path), ca_cert=ca_path, verify=True)

    def _remove_cert_dir(self) -> None:
        if self._cert_dir:
            shutil.rmtree(self._cert_dir, ignore_errors=True)
            self._cert_dir = None

    def _release(self, client: Optional[docker.DockerClient]) -> None:
        try:
            super()._release(client)
        finally:
            self._remove_cert_dir()
