"""Docker engine connection configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class DockerConfig(BaseSettings):
    """Engine client settings shared by every transport."""

    timeout: int = Field(default=60, ge=5, alias="docker_timeout")
    tcp_tls_port: int = Field(default=2376, ge=1, le=65535, alias="docker_tcp_tls_port")
    tcp_plain_port: int = Field(default=2375, ge=1, le=65535, alias="docker_tcp_plain_port")
    ssh_tunnel_port: int = Field(default=2375, ge=1, le=65535, alias="docker_ssh_tunnel_port")

    class Config:
        env_prefix = ""
        extra = "ignore"
