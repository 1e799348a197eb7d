"""SSH dialling shared by the tunnel connection and the SSH executor.

Host key verification follows ``settings.ssh_host_key_policy``. The default
``auto_add`` accepts any host key, matching how hosts are registered today;
``reject`` only accepts keys present in the system known hosts or in
``settings.ssh_known_hosts_file``.
"""

import io
from typing import Optional

import paramiko
import structlog

from ...config import Settings, settings as default_settings
from ...models.errors import ConfigurationError, HostConnectionError
from ...models.host import HostDescriptor, SSHAuthKind

logger = structlog.get_logger(__name__)

_KEY_CLASSES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


def load_private_key(pem: str) -> paramiko.PKey:
    """Parse PEM/OpenSSH private key material of any supported type."""
    if not pem or not pem.strip():
        raise ConfigurationError("SSH private key is empty")

    last_error: Optional[Exception] = None
    for key_cls in _KEY_CLASSES:
        try:
            return key_cls.from_private_key(io.StringIO(pem))
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
    raise ConfigurationError(f"Failed to parse SSH private key: {last_error}")


def resolve_ssh_port(host: HostDescriptor, config: Optional[Settings] = None) -> int:
    config = config or default_settings
    return host.ssh_port or config.ssh_default_port


def _apply_host_key_policy(client: paramiko.SSHClient, config: Settings) -> None:
    policy = config.ssh_host_key_policy
    if policy == "reject":
        client.load_system_host_keys()
        known_hosts = config.known_hosts_path()
        if known_hosts is not None:
            if known_hosts.exists():
                client.load_host_keys(str(known_hosts))
            else:
                logger.warning("Known hosts file not found", path=str(known_hosts))
        client.set_missing_host_key_policy(paramiko.RejectPolicy())
    elif policy == "warning":
        client.set_missing_host_key_policy(paramiko.WarningPolicy())
    else:
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())


def create_ssh_client(host: HostDescriptor, config: Optional[Settings] = None) -> paramiko.SSHClient:
    """Dial and authenticate an SSH session to ``host``. Blocking."""
    config = config or default_settings

    connect_kwargs = {
        "hostname": host.host,
        "port": resolve_ssh_port(host, config),
        "username": host.ssh_user,
        "timeout": config.ssh_connect_timeout,
        "banner_timeout": config.ssh_connect_timeout,
        "auth_timeout": config.ssh_connect_timeout,
        "allow_agent": False,
        "look_for_keys": False,
    }

    if host.ssh_auth_type == SSHAuthKind.KEY.value:
        connect_kwargs["pkey"] = load_private_key(host.ssh_private_key)
    elif host.ssh_auth_type == SSHAuthKind.PASSWORD.value:
        connect_kwargs["password"] = host.ssh_password
    else:
        raise ConfigurationError(f"Unsupported SSH auth type: {host.ssh_auth_type}")

    if not host.host:
        raise ConfigurationError(f"SSH host {host.id} has no address")

    client = paramiko.SSHClient()
    _apply_host_key_policy(client, config)

    logger.info(
        "Establishing SSH connection",
        host_id=host.id,
        host=host.host,
        port=connect_kwargs["port"],
        user=host.ssh_user,
        auth_type=host.ssh_auth_type,
    )
    try:
        client.connect(**connect_kwargs)
    except (paramiko.SSHException, OSError) as e:
        client.close()
        raise HostConnectionError(
            f"SSH connection to {host.host}:{connect_kwargs['port']} failed: {e}", host=host.id
        ) from e

    return client


def ssh_transport(client: paramiko.SSHClient) -> paramiko.Transport:
    """Get the client's transport, raising if it is not active."""
    transport = client.get_transport()
    if transport is None or not transport.is_active():
        raise HostConnectionError("SSH transport is not active")
    return transport
