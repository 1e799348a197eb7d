"""Filesystem entry models returned by command executors."""

# Third-party imports
from pydantic import BaseModel, Field


class FileInfo(BaseModel):
    """One directory entry on a local or remote host."""

    name: str = Field(..., description="Entry name without its directory")
    path: str = Field(..., description="Absolute path of the entry")
    is_dir: bool = Field(default=False)
    size: int = Field(default=0, ge=0, description="Size in bytes as reported by the host")
