"""SSH transport configuration."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class SSHConfig(BaseSettings):
    """SSH dial and tunnel settings."""

    default_port: int = Field(default=22, ge=1, le=65535, alias="ssh_default_port")
    connect_timeout: int = Field(default=30, ge=1, alias="ssh_connect_timeout")
    tunnel_http_timeout: int = Field(default=120, ge=1, alias="ssh_tunnel_http_timeout")

    # Host key handling: auto_add accepts unknown keys silently, warning accepts
    # them with a log line, reject requires a match in the known hosts file.
    host_key_policy: Literal["auto_add", "warning", "reject"] = Field(
        default="auto_add", alias="ssh_host_key_policy"
    )
    known_hosts_file: str | None = Field(default=None, alias="ssh_known_hosts_file")

    class Config:
        env_prefix = ""
        extra = "ignore"
