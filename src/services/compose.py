"""Compose project orchestration through a command executor.

Every operation turns a project source and an option set into a single
``<binary> compose ...`` invocation. In content mode the definition is
written to a scratch file first and that file is removed afterwards,
whatever the outcome; in directory mode the definition already lives on
the host and nothing is written or removed.
"""

import asyncio
import posixpath
from typing import List, Optional, Sequence

import structlog

from ..config import settings
from ..models.compose import (
    ComposeOptions,
    DownOptions,
    LogsOptions,
    ServiceStatus,
    UpOptions,
)
from .compose_output import parse_ps_output
from .executor.base import CommandExecutor
from .executor.stream import BufferedStream, CleanupStream, CommandStream

logger = structlog.get_logger(__name__)

SCRATCH_FILENAME = "docker-compose.yml"


async def collect_output(stream: CommandStream) -> str:
    """Read a stream to the end, close it and return the decoded output."""
    async with stream:
        return await stream.read_text()


class ComposeService:
    """Runs compose verbs for one host through its executor."""

    def __init__(
        self,
        executor: CommandExecutor,
        binary: Optional[str] = None,
        operation_timeout: Optional[float] = None,
        cleanup_timeout: Optional[float] = None,
    ):
        self.executor = executor
        self.binary = binary or settings.compose_binary
        self.operation_timeout = operation_timeout or settings.compose_operation_timeout
        self.cleanup_timeout = cleanup_timeout or settings.cleanup_timeout

    async def up(self, content: str, opts: UpOptions) -> CommandStream:
        """Create and start the project's services.

        Detached runs block until compose returns and yield the captured
        output; foreground runs stream output until the stream is closed.
        """
        file_path = await self._prepare_source(content, opts)
        try:
            args = self._build_base_args(file_path, opts)
            args.append("up")
            if opts.build:
                args.append("--build")
            if opts.remove_orphans:
                args.append("--remove-orphans")
            if opts.timeout > 0:
                args.extend(["--timeout", str(opts.timeout)])
            if not opts.detach:
                args.append("--abort-on-container-exit")
            args.extend(opts.services)

            if opts.detach:
                try:
                    output = await self.executor.execute(self.binary, *args, timeout=self.operation_timeout)
                finally:
                    await self._cleanup_file(file_path)
                return BufferedStream(output, [self.binary, *args])

            stream = await self.executor.execute_stream(self.binary, *args, timeout=self.operation_timeout)
        except BaseException:
            if not opts.detach:
                await self._cleanup_file(file_path)
            raise
        return self._wrap_stream(stream, file_path)

    async def down(self, content: str, opts: ComposeOptions, down_opts: DownOptions) -> bytes:
        """Stop the project and remove its containers and networks."""
        args: List[str] = ["down"]
        if down_opts.remove_images:
            args.extend(["--rmi", down_opts.remove_images])
        if down_opts.remove_volumes:
            args.append("--volumes")
        if down_opts.remove_orphans:
            args.append("--remove-orphans")
        if down_opts.timeout > 0:
            args.extend(["--timeout", str(down_opts.timeout)])
        return await self._run_buffered(content, opts, args)

    async def start(self, content: str, opts: ComposeOptions, services: Sequence[str] = ()) -> bytes:
        return await self._run_buffered(content, opts, ["start", *services])

    async def stop(
        self,
        content: str,
        opts: ComposeOptions,
        timeout: int = 0,
        services: Sequence[str] = (),
    ) -> bytes:
        args = ["stop"]
        if timeout > 0:
            args.extend(["--timeout", str(timeout)])
        args.extend(services)
        return await self._run_buffered(content, opts, args)

    async def restart(
        self,
        content: str,
        opts: ComposeOptions,
        timeout: int = 0,
        services: Sequence[str] = (),
    ) -> bytes:
        args = ["restart"]
        if timeout > 0:
            args.extend(["--timeout", str(timeout)])
        args.extend(services)
        return await self._run_buffered(content, opts, args)

    async def logs(self, content: str, opts: LogsOptions) -> CommandStream:
        """Stream service logs; ends when compose exits or the stream is closed."""
        file_path = await self._prepare_source(content, opts)
        try:
            args = self._build_base_args(file_path, opts)
            args.append("logs")
            if opts.tail:
                args.extend(["--tail", opts.tail])
            if opts.follow:
                args.append("--follow")
            if opts.timestamps:
                args.append("--timestamps")
            if opts.since:
                args.extend(["--since", opts.since])
            args.extend(opts.services)

            # Followed logs run until the caller closes the stream
            timeout = None if opts.follow else self.operation_timeout
            stream = await self.executor.execute_stream(self.binary, *args, timeout=timeout)
        except BaseException:
            await self._cleanup_file(file_path)
            raise
        return self._wrap_stream(stream, file_path)

    async def ps(self, content: str, opts: ComposeOptions) -> List[ServiceStatus]:
        """List the project's containers."""
        output = await self._run_buffered(content, opts, ["ps", "--format", "json"])
        return parse_ps_output(output.decode("utf-8", errors="replace"))

    async def config(self, content: str, opts: ComposeOptions) -> bytes:
        """Validate the definition and return compose's resolved view of it."""
        return await self._run_buffered(content, opts, ["config"])

    async def _run_buffered(self, content: str, opts: ComposeOptions, verb_args: List[str]) -> bytes:
        file_path = await self._prepare_source(content, opts)
        try:
            args = self._build_base_args(file_path, opts)
            args.extend(verb_args)
            return await self.executor.execute(self.binary, *args, timeout=self.operation_timeout)
        finally:
            await self._cleanup_file(file_path)

    async def _prepare_source(self, content: str, opts: ComposeOptions) -> Optional[str]:
        """Write the definition to a scratch file in content mode.

        Returns the scratch path, or None in directory mode.
        """
        if opts.use_work_dir:
            return None
        return await self.executor.write_file(content, SCRATCH_FILENAME)

    def _build_base_args(self, file_path: Optional[str], opts: ComposeOptions) -> List[str]:
        if opts.use_work_dir:
            compose_file = opts.compose_file or settings.compose_default_file
            args = ["compose", "-f", posixpath.join(opts.work_dir, compose_file)]
        else:
            args = ["compose", "-f", file_path]

        if opts.project_name:
            args.extend(["-p", opts.project_name])
        if opts.env_file:
            args.extend(["--env-file", opts.env_file])
        return args

    def _wrap_stream(self, stream: CommandStream, file_path: Optional[str]) -> CommandStream:
        if file_path is None:
            return stream
        return CleanupStream(stream, lambda: self._cleanup_file(file_path))

    async def _cleanup_file(self, file_path: Optional[str]) -> None:
        """Remove a scratch file and its directory. Failures are logged only."""
        if file_path is None:
            return
        try:
            await asyncio.wait_for(self.executor.remove_file(file_path), timeout=self.cleanup_timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out removing compose scratch file", path=file_path, timeout=self.cleanup_timeout)
        except Exception as e:
            logger.warning("Failed to remove compose scratch file", path=file_path, error=str(e))
