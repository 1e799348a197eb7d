"""Unit tests for command output streams."""

import asyncio
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.errors import CommandTimeoutError
from src.services.executor.stream import (
    BufferedStream,
    ChannelStream,
    CleanupStream,
    ProcessStream,
)


async def spawn(script: str) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        sys.executable,
        "-c",
        script,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )


class TestBufferedStream:
    """Tests for BufferedStream."""

    @pytest.mark.asyncio
    async def test_read_all(self):
        stream = BufferedStream(b"hello\nworld\n")

        assert await stream.read_all() == b"hello\nworld\n"
        assert await stream.read() == b""
        assert stream.exit_code == 0

    @pytest.mark.asyncio
    async def test_iter_lines_handles_crlf_and_tail(self):
        stream = BufferedStream(b"one\r\ntwo\nthree")

        assert [line async for line in stream] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_read_after_close_is_empty(self):
        stream = BufferedStream(b"data")
        await stream.close()

        assert stream.closed
        assert await stream.read() == b""

    @pytest.mark.asyncio
    async def test_double_close_is_noop(self):
        stream = BufferedStream(b"data")

        await stream.close()
        await stream.close()

        assert stream.closed


class TestCleanupStream:
    """Tests for CleanupStream."""

    @pytest.mark.asyncio
    async def test_cleanup_runs_once(self):
        cleanup = AsyncMock()
        stream = CleanupStream(BufferedStream(b"x"), cleanup)

        await stream.close()
        await stream.close()

        cleanup.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_close_runs_cleanup_once(self):
        cleanup = AsyncMock()
        stream = CleanupStream(BufferedStream(b"x"), cleanup)

        await asyncio.gather(stream.close(), stream.close(), stream.close())

        cleanup.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cleanup_runs_when_inner_close_fails(self):
        inner = BufferedStream(b"x")
        inner._close = AsyncMock(side_effect=OSError("broken pipe"))
        cleanup = AsyncMock()
        stream = CleanupStream(inner, cleanup)

        with pytest.raises(OSError):
            await stream.close()

        cleanup.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reads_delegate_to_inner(self):
        stream = CleanupStream(BufferedStream(b"abc", exit_code=3), AsyncMock())

        assert await stream.read_all() == b"abc"
        assert stream.exit_code == 3

    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        cleanup = AsyncMock()

        async with CleanupStream(BufferedStream(b""), cleanup) as stream:
            await stream.read_all()

        cleanup.assert_awaited_once()


class TestProcessStream:
    """Tests for ProcessStream against real subprocesses."""

    @pytest.mark.asyncio
    async def test_reads_merged_output(self):
        process = await spawn("import sys; print('out'); print('err', file=sys.stderr)")
        stream = ProcessStream(process, ["python"])

        output = await stream.read_text()
        await stream.close()

        assert "out" in output
        assert "err" in output
        assert stream.exit_code == 0

    @pytest.mark.asyncio
    async def test_close_without_reading_reaps_process(self):
        """Abandoning a long running process still terminates and waits for it."""
        process = await spawn("import time; print('started', flush=True); time.sleep(30)")
        stream = ProcessStream(process, ["python"])

        await stream.read(7)
        await stream.close()

        assert process.returncode is not None

    @pytest.mark.asyncio
    async def test_close_twice(self):
        process = await spawn("print('x')")
        stream = ProcessStream(process)

        await stream.close()
        await stream.close()

        assert process.returncode is not None

    @pytest.mark.asyncio
    async def test_deadline_kills_and_raises(self):
        process = await spawn("import time; time.sleep(30)")
        stream = ProcessStream(process, ["sleep"])
        stream.set_deadline(0.2)

        with pytest.raises(CommandTimeoutError):
            await stream.read_all()
        await stream.close()

        assert stream.timed_out
        assert process.returncode is not None


class TestChannelStream:
    """Tests for ChannelStream over a fake SSH channel."""

    def make_channel(self, chunks, exit_status=0):
        channel = MagicMock()
        channel.recv.side_effect = list(chunks) + [b""]
        channel.exit_status_ready.return_value = True
        channel.recv_exit_status.return_value = exit_status
        return channel

    @pytest.mark.asyncio
    async def test_reads_until_eof(self):
        channel = self.make_channel([b"Pulling web\n", b"Started\n"])
        stream = ChannelStream(channel, ["docker", "compose", "up"])

        assert await stream.read_all() == b"Pulling web\nStarted\n"

    @pytest.mark.asyncio
    async def test_close_records_exit_and_closes_channel_once(self):
        channel = self.make_channel([], exit_status=2)
        stream = ChannelStream(channel)

        await stream.close()
        await stream.close()

        channel.close.assert_called_once()
        assert stream.exit_code == 2
