"""Compose project option and status models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import settings


class ComposeSourceType(str, Enum):
    """Where a compose definition lives."""

    CONTENT = "content"  # Inline YAML, materialized per command
    DIRECTORY = "directory"  # Already on the target host's filesystem


@dataclass
class ComposeOptions:
    """Options shared by every compose invocation."""

    project_name: str = ""
    work_dir: str = ""
    env_file: str = ""
    compose_file: str = ""
    use_work_dir: bool = False

    @classmethod
    def from_project(
        cls,
        name: str,
        source_type: str = ComposeSourceType.CONTENT.value,
        work_dir: str = "",
        compose_file: str = "",
        env_file: str = "",
    ) -> "ComposeOptions":
        """Build options from a stored project record."""
        if source_type == ComposeSourceType.DIRECTORY.value:
            return cls(
                project_name=name,
                work_dir=work_dir,
                compose_file=compose_file or settings.compose_default_file,
                env_file=env_file,
                use_work_dir=True,
            )
        return cls(project_name=name)


@dataclass
class UpOptions(ComposeOptions):
    """``compose up`` options."""

    build: bool = False
    detach: bool = False
    remove_orphans: bool = True
    timeout: int = 0
    services: List[str] = field(default_factory=list)


@dataclass
class DownOptions:
    """``compose down`` options."""

    remove_images: str = ""  # "", "all" or "local"
    remove_volumes: bool = False
    remove_orphans: bool = False
    timeout: int = 0


@dataclass
class LogsOptions(ComposeOptions):
    """``compose logs`` options."""

    tail: str = ""
    follow: bool = False
    timestamps: bool = False
    since: str = ""
    services: List[str] = field(default_factory=list)


class PortPublisher(BaseModel):
    """A published port of a compose service container."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(default="", alias="URL")
    target_port: int = Field(default=0, alias="TargetPort")
    published_port: int = Field(default=0, alias="PublishedPort")
    protocol: str = Field(default="", alias="Protocol")


class ServiceStatus(BaseModel):
    """One container row of ``compose ps --format json``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="", alias="Name")
    command: str = Field(default="", alias="Command")
    state: str = Field(default="", alias="State")
    status: str = Field(default="", alias="Status")
    health: str = Field(default="", alias="Health")
    exit_code: int = Field(default=0, alias="ExitCode")
    publishers: List[PortPublisher] = Field(default_factory=list, alias="Publishers")

    id: Optional[str] = Field(default=None, alias="ID")
    service: Optional[str] = Field(default=None, alias="Service")
    project: Optional[str] = Field(default=None, alias="Project")
    image: Optional[str] = Field(default=None, alias="Image")
