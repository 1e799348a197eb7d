"""Command execution on the machine running this process."""

import asyncio
import os
import posixpath
import shutil
import tempfile
import uuid
from typing import List, Optional

import structlog

from ...config import settings
from ...models.errors import (
    CleanupError,
    CommandError,
    CommandTimeoutError,
    ExecutorError,
    PathValidationError,
)
from ...models.files import FileInfo
from ...utils.security import PathValidator
from ..connection.base import run_blocking
from .base import CommandExecutor
from .stream import CommandStream, ProcessStream

logger = structlog.get_logger(__name__)


def default_scratch_root() -> str:
    """Process-wide scratch directory under the system temp dir."""
    return os.path.join(tempfile.gettempdir(), settings.compose_temp_dir_name)


async def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


class LocalExecutor(CommandExecutor):
    """Spawns processes directly and uses the local filesystem.

    The scratch root is shared by the whole process; each ``write_file``
    gets its own uuid-named subdirectory, so executors never collide.
    """

    def __init__(self, scratch_root: Optional[str] = None):
        super().__init__(scratch_root or default_scratch_root())

    async def execute(self, cmd: str, *args: str, timeout: Optional[float] = None) -> bytes:
        command = [cmd, *args]
        logger.debug("Executing local command", command=command)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExecutorError(f"Failed to start command {cmd}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await _kill(process)
            raise CommandTimeoutError(command, timeout) from None
        except asyncio.CancelledError:
            await _kill(process)
            raise

        if process.returncode != 0:
            raise CommandError(command, process.returncode, stderr.decode("utf-8", errors="replace"))
        return stdout

    async def execute_stream(self, cmd: str, *args: str, timeout: Optional[float] = None) -> CommandStream:
        command = [cmd, *args]
        logger.debug("Starting local command stream", command=command)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise ExecutorError(f"Failed to start command {cmd}: {e}") from e

        stream = ProcessStream(process, command)
        stream.set_deadline(timeout)
        return stream

    async def write_file(self, content: str, filename: str) -> str:
        PathValidator.validate_filename(filename)
        request_dir = os.path.join(self.scratch_root, uuid.uuid4().hex)
        file_path = os.path.join(request_dir, filename)

        def _write() -> None:
            os.makedirs(request_dir, mode=0o755)
            with open(file_path, "w", encoding="utf-8") as f:
                f.write(content)

        try:
            await run_blocking(_write)
        except OSError as e:
            shutil.rmtree(request_dir, ignore_errors=True)
            raise ExecutorError(f"Failed to write scratch file {file_path}: {e}") from e

        self._scratch_dirs.add(request_dir)
        return file_path

    async def write_file_to_path(self, content: str, path: str) -> None:
        path = PathValidator.validate_path(path)

        def _write() -> None:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, mode=0o755, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)

        try:
            await run_blocking(_write)
        except OSError as e:
            raise ExecutorError(f"Failed to write file {path}: {e}") from e

    async def read_file(self, path: str) -> str:
        path = PathValidator.validate_path(path)

        def _read() -> str:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                return f.read()

        try:
            return await run_blocking(_read)
        except OSError as e:
            raise ExecutorError(f"Failed to read file {path}: {e}") from e

    async def mkdir_all(self, path: str) -> None:
        path = PathValidator.validate_path(path)
        try:
            await run_blocking(lambda: os.makedirs(path, mode=0o755, exist_ok=True))
        except OSError as e:
            raise ExecutorError(f"Failed to create directory {path}: {e}") from e

    async def remove_file(self, path: str) -> None:
        path = PathValidator.validate_path(path)
        scratch_dir = self._scratch_parent(path)

        def _remove() -> None:
            if scratch_dir is not None:
                shutil.rmtree(scratch_dir)
            else:
                os.remove(path)

        try:
            await run_blocking(_remove)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CleanupError(path, f"Failed to remove {path}: {e}") from e
        finally:
            if scratch_dir is not None:
                self._scratch_dirs.discard(scratch_dir)

    async def remove_dir(self, path: str) -> None:
        path = PathValidator.validate_path(path)
        if path == "/":
            raise PathValidationError(path, "refusing to remove the filesystem root")
        try:
            await run_blocking(shutil.rmtree, path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CleanupError(path, f"Failed to remove directory {path}: {e}") from e

    async def file_exists(self, path: str) -> bool:
        path = PathValidator.validate_path(path)
        try:
            await run_blocking(os.stat, path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ExecutorError(f"Failed to check {path}: {e}") from e
        return True

    async def list_dir(self, path: str) -> List[FileInfo]:
        path = PathValidator.validate_path(path)

        def _list() -> List[FileInfo]:
            files = []
            with os.scandir(path) as entries:
                for entry in sorted(entries, key=lambda e: e.name):
                    try:
                        is_dir = entry.is_dir()
                        size = entry.stat(follow_symlinks=False).st_size
                    except OSError:
                        # Skip entries that vanished or cannot be stat'ed
                        continue
                    files.append(
                        FileInfo(
                            name=entry.name,
                            path=posixpath.join(path, entry.name),
                            is_dir=is_dir,
                            size=size,
                        )
                    )
            return files

        try:
            return await run_blocking(_list)
        except OSError as e:
            raise ExecutorError(f"Failed to list directory {path}: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        scratch_dirs, self._scratch_dirs = self._scratch_dirs, set()
        for scratch_dir in scratch_dirs:
            try:
                await run_blocking(shutil.rmtree, scratch_dir)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Failed to remove scratch directory", path=scratch_dir, error=str(e))
