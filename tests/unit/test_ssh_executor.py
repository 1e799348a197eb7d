"""Unit tests for the SSH command executor."""

import shlex
from unittest.mock import MagicMock, patch

import pytest

from src.models.errors import (
    CleanupError,
    CommandError,
    ConfigurationError,
    ExecutorError,
    PathValidationError,
)
from src.services.executor import LocalExecutor, SSHExecutor, create_executor
from src.services.executor.ssh import build_remote_command, parse_ls_output
from src.services.executor.stream import ChannelStream

LS_OUTPUT = """total 16
drwxr-xr-x  4 deploy deploy 4096 Jan 01 12:00 .
drwxr-xr-x 10 root   root   4096 Jan 01 11:00 ..
-rw-r--r--  1 deploy deploy  512 Jan 01 12:00 docker-compose.yml
drwxr-xr-x  2 deploy deploy 4096 Jan 01 12:00 my data
lrwxrwxrwx  1 deploy deploy   11 Jan 01 12:00 current -> releases/42
"""


class FakeChannel:
    """Session channel that replays canned output for one command."""

    def __init__(self, stdout=b"", stderr=b"", exit_status=0):
        self._stdout = [stdout] if stdout else []
        self._stderr = [stderr] if stderr else []
        self.exit_status = exit_status
        self.command = None
        self.sent = b""
        self.closed = False
        self.combined = False

    def exec_command(self, command):
        self.command = command

    def sendall(self, data):
        self.sent += data

    def shutdown_write(self):
        pass

    def set_combine_stderr(self, combine):
        self.combined = combine

    def recv_ready(self):
        return bool(self._stdout)

    def recv(self, n):
        return self._stdout.pop(0) if self._stdout else b""

    def recv_stderr_ready(self):
        return bool(self._stderr)

    def recv_stderr(self, n):
        return self._stderr.pop(0)

    def exit_status_ready(self):
        return True

    def recv_exit_status(self):
        return self.exit_status

    def settimeout(self, timeout):
        pass

    def close(self):
        self.closed = True


@pytest.fixture
def channels():
    """Channels handed out in order, one per opened session."""
    return []


@pytest.fixture
def ssh_client(channels):
    client = MagicMock()
    transport = client.get_transport.return_value
    transport.is_active.return_value = True
    opened = []

    def open_session(timeout=None):
        channel = channels.pop(0) if channels else FakeChannel()
        opened.append(channel)
        return channel

    transport.open_session.side_effect = open_session
    client.opened = opened
    return client


@pytest.fixture
def executor(ssh_host, ssh_client):
    with patch("src.services.executor.ssh.create_ssh_client", return_value=ssh_client) as dial:
        executor = SSHExecutor(ssh_host)
        executor.dial = dial
        yield executor


class TestBuildRemoteCommand:
    """Tests for shell quoting of remote commands."""

    def test_space_stays_one_token(self):
        command = build_remote_command("docker", ["compose", "logs", "web app"])

        assert command == "docker compose logs 'web app'"
        assert shlex.split(command) == ["docker", "compose", "logs", "web app"]

    def test_shell_syntax_is_inert(self):
        command = build_remote_command("cat", ["/tmp/x; rm -rf /", "$(id)"])

        assert shlex.split(command) == ["cat", "/tmp/x; rm -rf /", "$(id)"]

    def test_plain_arguments_unquoted(self):
        assert build_remote_command("mkdir", ["-p", "/tmp/dockhand-compose"]) == "mkdir -p /tmp/dockhand-compose"


class TestParseLsOutput:
    """Tests for parse_ls_output."""

    def test_entries(self):
        files = parse_ls_output(LS_OUTPUT, "/srv/shop")

        assert [f.name for f in files] == ["docker-compose.yml", "my data", "current"]

    def test_names_with_spaces_and_dirs(self):
        entry = parse_ls_output(LS_OUTPUT, "/srv/shop")[1]

        assert entry.name == "my data"
        assert entry.is_dir is True
        assert entry.path == "/srv/shop/my data"

    def test_file_size(self):
        entry = parse_ls_output(LS_OUTPUT, "/srv/shop")[0]

        assert entry.size == 512
        assert entry.is_dir is False

    def test_symlink_target_dropped(self):
        assert parse_ls_output(LS_OUTPUT, "/srv")[2].name == "current"

    def test_short_and_blank_lines_skipped(self):
        assert parse_ls_output("\n\nls: cannot access\ntotal 0\n", "/srv") == []

    def test_unparseable_size(self):
        line = "-rw-r--r-- 1 deploy deploy ? Jan 01 12:00 weird"

        entry = parse_ls_output(line, "/srv")[0]

        assert entry.size == 0
        assert entry.name == "weird"


class TestExecute:
    """Tests for running commands over SSH."""

    @pytest.mark.asyncio
    async def test_returns_stdout(self, executor, channels):
        channels.append(FakeChannel(stdout=b"Docker Compose version v2.24.0\n"))

        output = await executor.execute("docker", "compose", "version")

        assert output == b"Docker Compose version v2.24.0\n"

    @pytest.mark.asyncio
    async def test_quotes_arguments(self, executor, ssh_client):
        await executor.execute("docker", "compose", "logs", "web app")

        assert ssh_client.opened[0].command == "docker compose logs 'web app'"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, executor, channels):
        channels.append(FakeChannel(stderr=b"no such service: api\n", exit_status=1))

        with pytest.raises(CommandError) as exc_info:
            await executor.execute("docker", "compose", "start", "api")

        assert exc_info.value.exit_code == 1
        assert "no such service: api" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_one_session_per_command_one_connection(self, executor, ssh_client):
        await executor.execute("true")
        await executor.execute("true")

        assert executor.dial.call_count == 1
        assert len(ssh_client.opened) == 2
        assert all(channel.closed for channel in ssh_client.opened)

    @pytest.mark.asyncio
    async def test_stream(self, executor, channels):
        channels.append(FakeChannel(stdout=b"Attaching to web-1\n"))

        stream = await executor.execute_stream("docker", "compose", "up")

        assert isinstance(stream, ChannelStream)
        assert stream.channel.combined is True
        assert await stream.read_all() == b"Attaching to web-1\n"
        await stream.close()

    @pytest.mark.asyncio
    async def test_execute_after_close(self, executor):
        await executor.close()

        with pytest.raises(ExecutorError):
            await executor.execute("true")


class TestFilesystem:
    """Tests for filesystem operations over SSH."""

    @pytest.mark.asyncio
    async def test_write_file(self, executor, ssh_client):
        path = await executor.write_file("services: {}\n", "docker-compose.yml")

        mkdir, cat = ssh_client.opened
        scratch_dir = path.rsplit("/", 1)[0]
        assert path.startswith("/tmp/dockhand-compose/")
        assert path.endswith("/docker-compose.yml")
        assert mkdir.command == f"mkdir -p {scratch_dir}"
        assert cat.command == f"cat > {path}"
        assert cat.sent == b"services: {}\n"

    @pytest.mark.asyncio
    async def test_write_file_mkdir_failure(self, executor, channels):
        channels.append(FakeChannel(stderr=b"Permission denied", exit_status=1))

        with pytest.raises(ExecutorError, match="Permission denied"):
            await executor.write_file("x", "docker-compose.yml")

    @pytest.mark.asyncio
    async def test_remove_file_removes_scratch_dir(self, executor, ssh_client):
        path = await executor.write_file("x", "docker-compose.yml")

        await executor.remove_file(path)

        assert ssh_client.opened[-1].command == f"rm -rf {path.rsplit('/', 1)[0]}"

    @pytest.mark.asyncio
    async def test_remove_file_elsewhere(self, executor, ssh_client):
        await executor.remove_file("/srv/shop/old.yml")

        assert ssh_client.opened[-1].command == "rm -f /srv/shop/old.yml"

    @pytest.mark.asyncio
    async def test_remove_file_failure(self, executor, channels):
        channels.append(FakeChannel(stderr=b"Operation not permitted", exit_status=1))

        with pytest.raises(CleanupError):
            await executor.remove_file("/srv/shop/old.yml")

    @pytest.mark.asyncio
    async def test_read_file(self, executor, channels, ssh_client):
        channels.append(FakeChannel(stdout=b"KEY=value\n"))

        assert await executor.read_file("/srv/shop/.env") == "KEY=value\n"
        assert ssh_client.opened[0].command == "cat /srv/shop/.env"

    @pytest.mark.asyncio
    async def test_write_file_to_path(self, executor, ssh_client):
        await executor.write_file_to_path("x", "/srv/shop/conf/app.yml")

        mkdir, cat = ssh_client.opened
        assert mkdir.command == "mkdir -p /srv/shop/conf"
        assert cat.command == "cat > /srv/shop/conf/app.yml"

    @pytest.mark.asyncio
    async def test_file_exists(self, executor, channels):
        channels.extend([FakeChannel(), FakeChannel(exit_status=1)])

        assert await executor.file_exists("/srv/shop") is True
        assert await executor.file_exists("/srv/missing") is False

    @pytest.mark.asyncio
    async def test_list_dir(self, executor, channels, ssh_client):
        channels.append(FakeChannel(stdout=LS_OUTPUT.encode()))

        files = await executor.list_dir("/srv/my shop")

        assert [f.name for f in files] == ["docker-compose.yml", "my data", "current"]
        assert ssh_client.opened[0].command == "env LC_ALL=C ls -la '/srv/my shop'"

    @pytest.mark.asyncio
    async def test_list_missing_dir(self, executor, channels):
        channels.append(
            FakeChannel(stderr=b"ls: cannot access '/srv/missing': No such file or directory\n", exit_status=2)
        )

        with pytest.raises(ExecutorError, match="Directory not found: /srv/missing"):
            await executor.list_dir("/srv/missing")

    @pytest.mark.asyncio
    async def test_list_dir_trusts_exit_status_over_entry_names(self, executor, channels):
        listing = (
            "total 4\n"
            "drwxr-xr-x 2 deploy deploy 4096 Jan 01 12:00 .\n"
            "drwxr-xr-x 9 deploy deploy 4096 Jan 01 12:00 ..\n"
            "-rw-r--r-- 1 deploy deploy   10 Jan 01 12:00 report_DIR_NOT_FOUND\n"
        )
        channels.append(FakeChannel(stdout=listing.encode()))

        files = await executor.list_dir("/srv/data")

        assert [f.name for f in files] == ["report_DIR_NOT_FOUND"]
        assert files[0].path == "/srv/data/report_DIR_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_remove_dir_refuses_root(self, executor):
        with pytest.raises(PathValidationError):
            await executor.remove_dir("/")

    @pytest.mark.asyncio
    async def test_close_removes_scratch_and_disconnects(self, executor, ssh_client):
        path = await executor.write_file("x", "docker-compose.yml")

        await executor.close()
        await executor.close()

        assert ssh_client.opened[-1].command == f"rm -rf {path.rsplit('/', 1)[0]}"
        ssh_client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_without_connecting(self, executor):
        await executor.close()

        executor.dial.assert_not_called()


class TestPathValidation:
    """Traversal is rejected before any SSH traffic."""

    TRAVERSAL = "/srv/app/../../etc/passwd"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "operation,args",
        [
            ("write_file", ("x", "../evil.yml")),
            ("write_file_to_path", ("x", TRAVERSAL)),
            ("read_file", (TRAVERSAL,)),
            ("mkdir_all", (TRAVERSAL,)),
            ("remove_file", (TRAVERSAL,)),
            ("remove_dir", (TRAVERSAL,)),
            ("file_exists", (TRAVERSAL,)),
            ("list_dir", (TRAVERSAL,)),
        ],
    )
    async def test_rejects_dotdot(self, executor, operation, args):
        with pytest.raises(PathValidationError):
            await getattr(executor, operation)(*args)

        executor.dial.assert_not_called()


class TestCreateExecutor:
    """Tests for executor selection by host type."""

    def test_local(self, local_host):
        assert isinstance(create_executor(local_host), LocalExecutor)

    def test_ssh(self, ssh_host):
        executor = create_executor(ssh_host)

        assert isinstance(executor, SSHExecutor)
        assert executor.scratch_root == "/tmp/dockhand-compose"

    def test_tcp_not_supported(self, tcp_host):
        with pytest.raises(ConfigurationError):
            create_executor(tcp_host)

    def test_unknown_type(self, local_host):
        with pytest.raises(ConfigurationError, match="Unsupported host type"):
            create_executor(local_host.model_copy(update={"type": "serial"}))
