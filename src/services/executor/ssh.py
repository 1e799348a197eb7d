"""Command execution on a remote host over SSH.

One SSH connection is dialled lazily and shared by every operation of the
executor; each command runs in its own session channel. Filesystem
operations shell out to standard utilities (``mkdir -p``, ``cat``,
``rm -rf``, ``test -e``, ``ls -la``).
"""

import asyncio
import posixpath
import shlex
import threading
import time
import uuid
from typing import List, Optional, Sequence, Tuple

import paramiko
import structlog

from ...config import Settings, settings as default_settings
from ...models.errors import (
    CleanupError,
    CommandError,
    CommandTimeoutError,
    ExecutorError,
    HostConnectionError,
    PathValidationError,
)
from ...models.files import FileInfo
from ...models.host import HostDescriptor
from ...utils.security import PathValidator
from ..connection.base import run_blocking
from ..connection.ssh import create_ssh_client, ssh_transport
from .base import CommandExecutor
from .stream import ChannelStream, CommandStream

logger = structlog.get_logger(__name__)

_BUFFER_SIZE = 32 * 1024

_POLL_SECONDS = 0.01


def build_remote_command(cmd: str, args: Sequence[str]) -> str:
    """Join a command and its arguments into one shell-safe command line.

    Arguments containing whitespace, quotes or other shell syntax are
    quoted so the remote shell sees each one as a single token.
    """
    return " ".join(shlex.quote(part) for part in (cmd, *args))


def parse_ls_output(output: str, dir_path: str) -> List[FileInfo]:
    """Parse ``ls -la`` output into directory entries.

    Expected line shape (C locale)::

        drwxr-xr-x  2 user group 4096 Jan 01 12:00 name with spaces

    The name is every field from the ninth onward; ``.`` and ``..`` are
    skipped and symlink targets are dropped.
    """
    files = []
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith("total "):
            continue

        fields = line.split()
        if len(fields) < 9:
            continue

        perms = fields[0]
        name = " ".join(fields[8:])
        if perms.startswith("l") and " -> " in name:
            name = name.split(" -> ", 1)[0]
        if name in (".", ".."):
            continue

        try:
            size = int(fields[4])
        except ValueError:
            size = 0

        files.append(
            FileInfo(
                name=name,
                path=posixpath.join(dir_path, name),
                is_dir=perms.startswith("d"),
                size=size,
            )
        )
    return files


class SSHExecutor(CommandExecutor):
    """Executor for hosts reached with SSH credentials."""

    def __init__(self, host: HostDescriptor, config: Optional[Settings] = None):
        self.config = config or default_settings
        super().__init__(self.config.get_remote_scratch_root())
        self.host = host
        self.ssh_client: Optional[paramiko.SSHClient] = None
        self._connect_lock = asyncio.Lock()

    async def _connect(self) -> paramiko.SSHClient:
        if self.ssh_client is not None:
            return self.ssh_client

        async with self._connect_lock:
            if self._closed:
                raise ExecutorError("Executor has been closed")
            if self.ssh_client is None:
                self.ssh_client = await run_blocking(create_ssh_client, self.host, self.config)
            return self.ssh_client

    def _open_session(self) -> paramiko.Channel:
        """Open a new session channel on the shared connection. Blocking."""
        try:
            return ssh_transport(self.ssh_client).open_session(timeout=self.config.ssh_connect_timeout)
        except paramiko.SSHException as e:
            raise HostConnectionError(f"Failed to open SSH session: {e}", host=self.host.id) from e

    def _run_blocking(
        self,
        command: str,
        stdin: Optional[bytes],
        deadline: Optional[float],
        cancelled: threading.Event,
    ) -> Tuple[Optional[int], bytes, bytes]:
        """Run ``command`` in a new session and collect its output.

        Returns ``(None, ...)`` when the deadline passed or the caller was
        cancelled; the session is closed either way.
        """
        channel = self._open_session()
        stdout: List[bytes] = []
        stderr: List[bytes] = []
        try:
            channel.exec_command(command)
            if stdin is not None:
                channel.sendall(stdin)
                channel.shutdown_write()

            while True:
                received = False
                while channel.recv_ready():
                    stdout.append(channel.recv(_BUFFER_SIZE))
                    received = True
                while channel.recv_stderr_ready():
                    stderr.append(channel.recv_stderr(_BUFFER_SIZE))
                    received = True

                # Data precedes the exit status on the channel, so once the
                # status is in and the buffers are empty the output is complete
                if channel.exit_status_ready() and not channel.recv_ready() and not channel.recv_stderr_ready():
                    return channel.recv_exit_status(), b"".join(stdout), b"".join(stderr)

                if cancelled.is_set() or (deadline is not None and time.monotonic() > deadline):
                    return None, b"".join(stdout), b"".join(stderr)

                if not received:
                    time.sleep(_POLL_SECONDS)
        except (paramiko.SSHException, OSError) as e:
            raise ExecutorError(f"SSH command failed to run: {e}") from e
        finally:
            channel.close()

    async def _run(
        self,
        command: str,
        argv: Sequence[str],
        stdin: Optional[bytes] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[int, bytes, bytes]:
        await self._connect()
        deadline = time.monotonic() + timeout if timeout else None
        cancelled = threading.Event()
        try:
            exit_code, stdout, stderr = await run_blocking(self._run_blocking, command, stdin, deadline, cancelled)
        except asyncio.CancelledError:
            cancelled.set()
            raise

        if exit_code is None:
            raise CommandTimeoutError(argv, timeout)
        return exit_code, stdout, stderr

    async def execute(self, cmd: str, *args: str, timeout: Optional[float] = None) -> bytes:
        argv = [cmd, *args]
        command = build_remote_command(cmd, args)
        logger.debug("Executing remote command", host_id=self.host.id, command=command)

        exit_code, stdout, stderr = await self._run(command, argv, timeout=timeout)
        if exit_code != 0:
            raise CommandError(argv, exit_code, stderr.decode("utf-8", errors="replace"))
        return stdout

    async def execute_stream(self, cmd: str, *args: str, timeout: Optional[float] = None) -> CommandStream:
        argv = [cmd, *args]
        command = build_remote_command(cmd, args)
        logger.debug("Starting remote command stream", host_id=self.host.id, command=command)
        await self._connect()

        def _start() -> paramiko.Channel:
            channel = self._open_session()
            try:
                channel.set_combine_stderr(True)
                channel.exec_command(command)
            except (paramiko.SSHException, OSError) as e:
                channel.close()
                raise ExecutorError(f"Failed to start remote command: {e}") from e
            return channel

        stream = ChannelStream(await run_blocking(_start), argv)
        stream.set_deadline(timeout)
        return stream

    async def _write_remote(self, content: str, path: str) -> None:
        argv = ["cat", ">", path]
        exit_code, _, stderr = await self._run(f"cat > {shlex.quote(path)}", argv, stdin=content.encode("utf-8"))
        if exit_code != 0:
            raise CommandError(argv, exit_code, stderr.decode("utf-8", errors="replace"))

    async def write_file(self, content: str, filename: str) -> str:
        PathValidator.validate_filename(filename)
        request_dir = posixpath.join(self.scratch_root, uuid.uuid4().hex)
        remote_path = posixpath.join(request_dir, filename)

        try:
            await self.execute("mkdir", "-p", request_dir)
        except CommandError as e:
            raise ExecutorError(f"Failed to create remote directory {request_dir}: {e.stderr.strip()}") from e
        self._scratch_dirs.add(request_dir)

        try:
            await self._write_remote(content, remote_path)
        except CommandError as e:
            raise ExecutorError(f"Failed to write remote file {remote_path}: {e.stderr.strip()}") from e
        return remote_path

    async def write_file_to_path(self, content: str, path: str) -> None:
        path = PathValidator.validate_path(path)
        parent = PathValidator.parent_dir(path)
        try:
            if parent:
                await self.execute("mkdir", "-p", parent)
            await self._write_remote(content, path)
        except CommandError as e:
            raise ExecutorError(f"Failed to write file {path}: {e.stderr.strip()}") from e

    async def read_file(self, path: str) -> str:
        path = PathValidator.validate_path(path)
        try:
            output = await self.execute("cat", path)
        except CommandError as e:
            raise ExecutorError(f"Failed to read file {path}: {e.stderr.strip()}") from e
        return output.decode("utf-8", errors="replace")

    async def mkdir_all(self, path: str) -> None:
        path = PathValidator.validate_path(path)
        try:
            await self.execute("mkdir", "-p", path)
        except CommandError as e:
            raise ExecutorError(f"Failed to create directory {path}: {e.stderr.strip()}") from e

    async def remove_file(self, path: str) -> None:
        path = PathValidator.validate_path(path)
        scratch_dir = self._scratch_parent(path)
        try:
            if scratch_dir is not None:
                await self.execute("rm", "-rf", scratch_dir)
            else:
                await self.execute("rm", "-f", path)
        except CommandError as e:
            raise CleanupError(path, f"Failed to remove {path}: {e.stderr.strip()}") from e
        finally:
            if scratch_dir is not None:
                self._scratch_dirs.discard(scratch_dir)

    async def remove_dir(self, path: str) -> None:
        path = PathValidator.validate_path(path)
        if path == "/":
            raise PathValidationError(path, "refusing to remove the filesystem root")
        try:
            await self.execute("rm", "-rf", path)
        except CommandError as e:
            raise CleanupError(path, f"Failed to remove directory {path}: {e.stderr.strip()}") from e

    async def file_exists(self, path: str) -> bool:
        path = PathValidator.validate_path(path)
        exit_code, _, _ = await self._run(build_remote_command("test", ["-e", path]), ["test", "-e", path])
        return exit_code == 0

    async def list_dir(self, path: str) -> List[FileInfo]:
        path = PathValidator.validate_path(path)
        try:
            output = await self.execute("env", "LC_ALL=C", "ls", "-la", path)
        except CommandError as e:
            raise ExecutorError(f"Directory not found: {path}: {e.stderr.strip()}") from e
        return parse_ls_output(output.decode("utf-8", errors="replace"), path)

    async def close(self) -> None:
        async with self._connect_lock:
            if self._closed:
                return
            self._closed = True

        client, self.ssh_client = self.ssh_client, None
        if client is None:
            return

        scratch_dirs, self._scratch_dirs = self._scratch_dirs, set()
        try:
            if scratch_dirs:
                self.ssh_client = client
                try:
                    await self.execute("rm", "-rf", *sorted(scratch_dirs))
                except Exception as e:
                    logger.warning(
                        "Failed to remove remote scratch directories",
                        host_id=self.host.id,
                        paths=sorted(scratch_dirs),
                        error=str(e),
                    )
                finally:
                    self.ssh_client = None
        finally:
            await run_blocking(client.close)
