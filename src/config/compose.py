"""Compose orchestration configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class ComposeConfig(BaseSettings):
    """Settings for compose CLI invocations and their scratch files."""

    binary: str = Field(default="docker", alias="compose_binary")
    default_file: str = Field(default="docker-compose.yml", alias="compose_default_file")
    temp_dir_name: str = Field(default="dockhand-compose", alias="compose_temp_dir_name")
    remote_temp_root: str = Field(default="/tmp", alias="compose_remote_temp_root")

    # Upper bound for a single foreground operation such as ``up``
    operation_timeout: int = Field(default=600, ge=1, alias="compose_operation_timeout")
    cleanup_timeout: int = Field(default=5, ge=1, alias="cleanup_timeout")

    class Config:
        env_prefix = ""
        extra = "ignore"
