"""Host descriptor models.

A host descriptor is owned by the persistence layer; this package only reads
it. Secrets arrive already decrypted.
"""

from enum import Enum
from typing import Any, Dict, Protocol

from pydantic import BaseModel, ConfigDict, Field


class TransportKind(str, Enum):
    """Supported ways of reaching a container engine."""

    LOCAL = "local"
    TCP = "tcp"
    SSH = "ssh"


class SSHAuthKind(str, Enum):
    """Supported SSH authentication methods."""

    KEY = "key"
    PASSWORD = "password"


SENSITIVE_FIELDS = frozenset({"ssh_private_key", "ssh_password"})


class HostDescriptor(BaseModel):
    """Connection settings for one registered container-engine host.

    ``type`` and ``ssh_auth_type`` stay plain strings so an unsupported value
    is reported by the component that dispatches on it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable host identity")
    name: str = Field(default="")
    type: str = Field(default=TransportKind.LOCAL.value, description="local, tcp or ssh")
    host: str = Field(default="", description="Remote address")
    docker_port: int = Field(default=0, ge=0, le=65535, description="0 selects the transport default")
    skip_tls_verify: bool = Field(default=False)
    tls_cert_id: str = Field(default="")

    ssh_user: str = Field(default="")
    ssh_auth_type: str = Field(default="", description="key or password")
    ssh_private_key: str = Field(default="", repr=False)
    ssh_password: str = Field(default="", repr=False)
    ssh_port: int = Field(default=0, ge=0, le=65535, description="0 selects the default SSH port")

    def safe_dict(self) -> Dict[str, Any]:
        """Descriptor fields without secrets, for logs and API responses."""
        return self.model_dump(exclude=set(SENSITIVE_FIELDS))


class CertificateBundle(BaseModel):
    """PEM encoded TLS material for a TCP host."""

    ca_cert: str = Field(default="", repr=False)
    client_cert: str = Field(..., repr=False)
    client_key: str = Field(..., repr=False)


class CertificateStore(Protocol):
    """Lookup of TLS material referenced by ``HostDescriptor.tls_cert_id``."""

    def get_certificate(self, cert_id: str) -> CertificateBundle:
        ...
