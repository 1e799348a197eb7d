"""Readable command output streams with exactly-once close.

A stream owns whatever produces its bytes (a local process, an SSH channel,
a buffer) and releases it on ``close``. Closing twice is a no-op, and
closing always reaps the producer even if a read failed or the caller
stopped reading early.
"""

import asyncio
import io
from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence

import paramiko
import structlog

from ...models.errors import CommandTimeoutError

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 32 * 1024

# Time a process gets to exit after SIGTERM before it is killed
TERMINATE_GRACE_SECONDS = 5.0


class CommandStream(ABC):
    """Async byte stream over command output."""

    def __init__(self, command: Sequence[str] = ()):
        self.command: List[str] = list(command)
        self.timed_out = False
        self._timeout: Optional[float] = None
        self._deadline_handle: Optional[asyncio.TimerHandle] = None
        self._closed = False
        self._close_lock = asyncio.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exit_code(self) -> Optional[int]:
        """Exit status of the producer, when known."""
        return None

    def set_deadline(self, timeout: Optional[float]) -> None:
        """Terminate the producer if it is still running after ``timeout`` seconds."""
        if not timeout:
            return
        self._timeout = timeout
        loop = asyncio.get_running_loop()
        self._deadline_handle = loop.call_later(timeout, self._on_deadline)

    def _on_deadline(self) -> None:
        if self._closed:
            return
        logger.warning("Command exceeded its deadline", command=self.command, timeout=self._timeout)
        self.timed_out = True
        self._terminate()

    def _terminate(self) -> None:
        """Stop the producer immediately. Called from the event loop."""

    async def read(self, n: int = CHUNK_SIZE) -> bytes:
        """Read up to ``n`` bytes; ``b""`` at end of stream or after close."""
        if self._closed:
            return b""
        data = await self._read(n)
        if not data and self.timed_out:
            raise CommandTimeoutError(self.command, self._timeout)
        return data

    async def read_all(self) -> bytes:
        chunks = []
        while True:
            chunk = await self.read(CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    async def read_text(self, encoding: str = "utf-8") -> str:
        return (await self.read_all()).decode(encoding, errors="replace")

    async def iter_lines(self, encoding: str = "utf-8") -> AsyncIterator[str]:
        """Yield decoded lines without their trailing newline."""
        buffer = b""
        while True:
            chunk = await self.read(CHUNK_SIZE)
            if not chunk:
                break
            buffer += chunk
            *lines, buffer = buffer.split(b"\n")
            for line in lines:
                yield line.rstrip(b"\r").decode(encoding, errors="replace")
        if buffer:
            yield buffer.rstrip(b"\r").decode(encoding, errors="replace")

    def __aiter__(self) -> AsyncIterator[str]:
        return self.iter_lines()

    async def close(self) -> None:
        """Release the producer. Only the first call has an effect."""
        async with self._close_lock:
            if self._closed:
                return
            self._closed = True
            if self._deadline_handle is not None:
                self._deadline_handle.cancel()
            await self._close()

    async def __aenter__(self) -> "CommandStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @abstractmethod
    async def _read(self, n: int) -> bytes:
        ...

    @abstractmethod
    async def _close(self) -> None:
        ...


class ProcessStream(CommandStream):
    """Merged stdout/stderr of a local subprocess."""

    def __init__(self, process: asyncio.subprocess.Process, command: Sequence[str] = ()):
        super().__init__(command)
        self.process = process

    @property
    def exit_code(self) -> Optional[int]:
        return self.process.returncode

    def _terminate(self) -> None:
        try:
            self.process.kill()
        except ProcessLookupError:
            pass

    async def _read(self, n: int) -> bytes:
        return await self.process.stdout.read(n)

    async def _close(self) -> None:
        process = self.process
        if process.returncode is None and not process.stdout.at_eof():
            # Reader stopped early; the process would otherwise block on a full pipe
            try:
                process.terminate()
            except ProcessLookupError:
                pass

        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Process did not exit after terminate, killing", pid=process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()


class ChannelStream(CommandStream):
    """Merged stdout/stderr of a command running in an SSH session."""

    def __init__(self, channel: paramiko.Channel, command: Sequence[str] = ()):
        super().__init__(command)
        self.channel = channel
        self._exit_code: Optional[int] = None

    @property
    def exit_code(self) -> Optional[int]:
        if self._exit_code is None and self.channel.exit_status_ready():
            self._exit_code = self.channel.recv_exit_status()
        return self._exit_code

    def _terminate(self) -> None:
        self.channel.close()

    async def _read(self, n: int) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.channel.recv, n if n > 0 else CHUNK_SIZE)

    async def _close(self) -> None:
        loop = asyncio.get_running_loop()
        if self.channel.exit_status_ready():
            self._exit_code = self.channel.recv_exit_status()
        await loop.run_in_executor(None, self.channel.close)


class BufferedStream(CommandStream):
    """Stream over output that has already been captured."""

    def __init__(self, data: bytes, command: Sequence[str] = (), exit_code: Optional[int] = 0):
        super().__init__(command)
        self._buffer = io.BytesIO(data)
        self._exit_code = exit_code

    @property
    def exit_code(self) -> Optional[int]:
        return self._exit_code

    async def _read(self, n: int) -> bytes:
        return self._buffer.read(n)

    async def _close(self) -> None:
        self._buffer.close()


class CleanupStream(CommandStream):
    """Wraps a stream and runs ``cleanup`` once after the inner stream closes."""

    def __init__(self, inner: CommandStream, cleanup: Callable[[], Awaitable[None]]):
        super().__init__(inner.command)
        self.inner = inner
        self._cleanup = cleanup

    @property
    def exit_code(self) -> Optional[int]:
        return self.inner.exit_code

    async def read(self, n: int = CHUNK_SIZE) -> bytes:
        if self._closed:
            return b""
        return await self.inner.read(n)

    async def _read(self, n: int) -> bytes:
        return await self.inner.read(n)

    async def _close(self) -> None:
        try:
            await self.inner.close()
        finally:
            await self._cleanup()
