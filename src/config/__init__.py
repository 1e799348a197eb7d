"""Configuration management for the host connection layer.

This module provides a unified Settings class with flat fields read from the
environment (or a ``.env`` file) and grouped views over them.

Usage:
    from src.config import settings

    # Access grouped settings
    settings.docker.tcp_tls_port
    settings.ssh.connect_timeout
    settings.compose.binary

    # Or the flat fields directly
    settings.docker_tcp_tls_port
    settings.compose_operation_timeout
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Import grouped configurations
from .compose import ComposeConfig
from .docker import DockerConfig
from .logging import LoggingConfig
from .ssh import SSHConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # ========================================================================
    # FLAT FIELDS
    # ========================================================================

    # Docker engine
    docker_timeout: int = Field(default=60, ge=5, description="Engine API call timeout (seconds)")
    docker_tcp_tls_port: int = Field(default=2376, ge=1, le=65535)
    docker_tcp_plain_port: int = Field(default=2375, ge=1, le=65535)
    docker_ssh_tunnel_port: int = Field(
        default=2375,
        ge=1,
        le=65535,
        description="Engine port on the remote loopback interface reached through SSH",
    )

    # SSH
    ssh_default_port: int = Field(default=22, ge=1, le=65535)
    ssh_connect_timeout: int = Field(default=30, ge=1)
    ssh_tunnel_http_timeout: int = Field(default=120, ge=1)
    ssh_host_key_policy: Literal["auto_add", "warning", "reject"] = Field(
        default="auto_add",
        description="How unknown SSH host keys are treated",
    )
    ssh_known_hosts_file: str | None = Field(default=None)

    # Compose
    compose_binary: str = Field(default="docker", description="CLI providing the compose subcommand")
    compose_default_file: str = Field(default="docker-compose.yml")
    compose_temp_dir_name: str = Field(default="dockhand-compose")
    compose_remote_temp_root: str = Field(default="/tmp")
    compose_operation_timeout: int = Field(default=600, ge=1, description="Deadline for one compose invocation")
    cleanup_timeout: int = Field(default=5, ge=1)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: str | None = Field(default=None)
    log_max_size_mb: int = Field(default=100, ge=1)
    log_backup_count: int = Field(default=5, ge=1)

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator("compose_temp_dir_name")
    @classmethod
    def validate_temp_dir_name(cls, v):
        """Scratch directory name must be a single path component."""
        if not v or "/" in v or v in (".", ".."):
            raise ValueError("compose_temp_dir_name must be a plain directory name")
        return v

    @field_validator("compose_remote_temp_root")
    @classmethod
    def validate_remote_temp_root(cls, v):
        """Remote scratch root must be absolute."""
        if not v.startswith("/"):
            raise ValueError("compose_remote_temp_root must be an absolute path")
        return v.rstrip("/") or "/"

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def docker(self) -> DockerConfig:
        """Access Docker engine configuration group."""
        return DockerConfig(
            docker_timeout=self.docker_timeout,
            docker_tcp_tls_port=self.docker_tcp_tls_port,
            docker_tcp_plain_port=self.docker_tcp_plain_port,
            docker_ssh_tunnel_port=self.docker_ssh_tunnel_port,
        )

    @property
    def ssh(self) -> SSHConfig:
        """Access SSH configuration group."""
        return SSHConfig(
            ssh_default_port=self.ssh_default_port,
            ssh_connect_timeout=self.ssh_connect_timeout,
            ssh_tunnel_http_timeout=self.ssh_tunnel_http_timeout,
            ssh_host_key_policy=self.ssh_host_key_policy,
            ssh_known_hosts_file=self.ssh_known_hosts_file,
        )

    @property
    def compose(self) -> ComposeConfig:
        """Access compose configuration group."""
        return ComposeConfig(
            compose_binary=self.compose_binary,
            compose_default_file=self.compose_default_file,
            compose_temp_dir_name=self.compose_temp_dir_name,
            compose_remote_temp_root=self.compose_remote_temp_root,
            compose_operation_timeout=self.compose_operation_timeout,
            cleanup_timeout=self.cleanup_timeout,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            log_max_size_mb=self.log_max_size_mb,
            log_backup_count=self.log_backup_count,
        )

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def get_remote_scratch_root(self) -> str:
        """Remote directory holding per-operation compose scratch files."""
        root = self.compose_remote_temp_root.rstrip("/")
        return f"{root}/{self.compose_temp_dir_name}"

    def known_hosts_path(self) -> Path | None:
        """Known hosts file, if one is configured."""
        if not self.ssh_known_hosts_file:
            return None
        return Path(self.ssh_known_hosts_file).expanduser()


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    # Grouped configs
    "DockerConfig",
    "SSHConfig",
    "ComposeConfig",
    "LoggingConfig",
]
