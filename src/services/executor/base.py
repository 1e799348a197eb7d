"""Uniform process and filesystem contract for local and remote hosts."""

import posixpath
from abc import ABC, abstractmethod
from typing import List, Optional, Set

from ...models.files import FileInfo
from .stream import CommandStream


class CommandExecutor(ABC):
    """Runs commands and touches files on one host.

    Instances are short-lived and not shared between concurrent callers.
    Every path argument is validated before any I/O; paths containing a
    ``..`` segment raise ``PathValidationError``. ``close`` releases the
    transport and removes every scratch directory the instance created.
    """

    def __init__(self, scratch_root: str):
        self.scratch_root = scratch_root
        self._scratch_dirs: Set[str] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    async def execute(self, cmd: str, *args: str, timeout: Optional[float] = None) -> bytes:
        """Run to completion and return stdout.

        Raises ``CommandError`` carrying stderr on a non-zero exit and
        ``CommandTimeoutError`` when ``timeout`` elapses first.
        """

    @abstractmethod
    async def execute_stream(self, cmd: str, *args: str, timeout: Optional[float] = None) -> CommandStream:
        """Start a command and return its merged stdout/stderr stream."""

    @abstractmethod
    async def write_file(self, content: str, filename: str) -> str:
        """Write ``content`` into a new uniquely named scratch directory.

        Returns the absolute path of the written file.
        """

    @abstractmethod
    async def write_file_to_path(self, content: str, path: str) -> None:
        """Write ``content`` to ``path``, creating parent directories."""

    @abstractmethod
    async def read_file(self, path: str) -> str:
        ...

    @abstractmethod
    async def mkdir_all(self, path: str) -> None:
        ...

    @abstractmethod
    async def remove_file(self, path: str) -> None:
        """Remove a file written by ``write_file`` along with its scratch directory."""

    @abstractmethod
    async def remove_dir(self, path: str) -> None:
        ...

    @abstractmethod
    async def file_exists(self, path: str) -> bool:
        ...

    @abstractmethod
    async def list_dir(self, path: str) -> List[FileInfo]:
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release every resource owned by the executor. Idempotent."""

    async def __aenter__(self) -> "CommandExecutor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _scratch_parent(self, path: str) -> Optional[str]:
        """The scratch directory holding ``path``, if it is one of ours to delete.

        Only direct children of the scratch root qualify, so ``remove_file``
        never deletes a directory it did not create through ``write_file``.
        """
        parent = posixpath.dirname(posixpath.normpath(path))
        if parent and parent != self.scratch_root and posixpath.dirname(parent) == self.scratch_root:
            return parent
        return None
