"""Unit tests for the paramiko-based shell backend."""

import io
import socket
from unittest.mock import MagicMock, patch

import paramiko
import pytest

from plugin_release.config_manager import ReleaseConfig
from plugin_release.errors import (
    AuthError,
    ConfigurationError,
    NetworkError,
    NoAuthMethod,
    RemoteIOError,
)
from plugin_release.remote_backends.ssh_shell import SSHShellBackend, stat_command, upload_command

SSH_CLIENT = "plugin_release.remote_backends.ssh_shell.paramiko.SSHClient"


def make_config(**overrides) -> ReleaseConfig:
    values = {
        "main_php_file": "plugin.php",
        "ssh_host": "example.com",
        "ssh_port": "2222",
        "ssh_user": "deploy",
        "ssh_password": "secret",
        "ssh_timeout": 5.0,
    }
    values.update(overrides)
    return ReleaseConfig(**values)


def exec_result(stdout: bytes = b"", stderr: bytes = b"", status: int = 0):
    """Mocks for the (stdin, stdout, stderr) triple returned by exec_command."""
    stdin = MagicMock()
    stdin.written = bytearray()
    stdin.write.side_effect = stdin.written.extend
    out = MagicMock()
    out.read.return_value = stdout
    out.channel.recv_exit_status.return_value = status
    err = MagicMock()
    err.read.return_value = stderr
    return stdin, out, err


@pytest.fixture
def connected_backend():
    backend = SSHShellBackend(make_config())
    backend.client = MagicMock()
    return backend


class TestCommands:
    def test_stat_tries_gnu_then_bsd(self):
        command = stat_command("/var/www/a.zip")
        assert command == (
            "stat -c %Y /var/www/a.zip 2>/dev/null || "
            "stat -f %m /var/www/a.zip 2>/dev/null || echo"
        )

    def test_upload_creates_directory_and_streams(self):
        assert upload_command("/var/www/a/b.zip") == "mkdir -p /var/www/a && cat > /var/www/a/b.zip"

    def test_paths_are_quoted(self):
        assert upload_command("/var/www/my dir/b.zip") == (
            "mkdir -p '/var/www/my dir' && cat > '/var/www/my dir/b.zip'"
        )


class TestConnect:
    def test_invalid_port(self):
        with pytest.raises(ConfigurationError, match="ssh_port"):
            SSHShellBackend(make_config(ssh_port="ssh"))

    def test_no_credentials_fails_before_dialing(self):
        backend = SSHShellBackend(make_config(ssh_password="", ssh_key_file=""))
        with patch(SSH_CLIENT) as client_class:
            with pytest.raises(NoAuthMethod):
                backend.connect()
        client_class.assert_not_called()

    def test_no_auth_method_is_an_auth_error(self):
        with pytest.raises(AuthError):
            SSHShellBackend(make_config(ssh_password="")).connect()

    def test_password_connection(self):
        backend = SSHShellBackend(make_config())
        with patch(SSH_CLIENT) as client_class:
            backend.connect()
        client = client_class.return_value
        client.load_system_host_keys.assert_called_once()
        kwargs = client.connect.call_args.kwargs
        assert kwargs["hostname"] == "example.com"
        assert kwargs["port"] == 2222
        assert kwargs["username"] == "deploy"
        assert kwargs["password"] == "secret"
        assert kwargs["timeout"] == 5.0
        assert kwargs["look_for_keys"] is False
        assert backend.client is client

    def test_unknown_hosts_rejected_when_strict(self):
        backend = SSHShellBackend(make_config(ssh_strict_host_key=True))
        with patch(SSH_CLIENT) as client_class:
            backend.connect()
        policy = client_class.return_value.set_missing_host_key_policy.call_args.args[0]
        assert isinstance(policy, paramiko.RejectPolicy)

    def test_unreadable_key_falls_back_to_password(self):
        backend = SSHShellBackend(make_config(ssh_key_file="/nonexistent/id_ed25519"))
        with patch(
            "plugin_release.remote_backends.ssh_shell.paramiko.PKey.from_path",
            side_effect=FileNotFoundError("no such file"),
        ), patch(SSH_CLIENT) as client_class:
            backend.connect()
        kwargs = client_class.return_value.connect.call_args.kwargs
        assert "pkey" not in kwargs
        assert kwargs["password"] == "secret"

    def test_unusable_key_without_password(self):
        backend = SSHShellBackend(make_config(ssh_key_file="/tmp/bad_key", ssh_password=""))
        with patch(
            "plugin_release.remote_backends.ssh_shell.paramiko.PKey.from_path",
            side_effect=paramiko.SSHException("not a valid key"),
        ):
            with pytest.raises(NoAuthMethod):
                backend.connect()

    def test_key_authentication(self):
        key = MagicMock()
        backend = SSHShellBackend(make_config(ssh_key_file="/home/me/.ssh/id_ed25519", ssh_password=""))
        with patch(
            "plugin_release.remote_backends.ssh_shell.paramiko.PKey.from_path", return_value=key
        ), patch(SSH_CLIENT) as client_class:
            backend.connect()
        assert client_class.return_value.connect.call_args.kwargs["pkey"] is key

    def test_rejected_credentials(self):
        backend = SSHShellBackend(make_config())
        with patch(SSH_CLIENT) as client_class:
            client_class.return_value.connect.side_effect = paramiko.AuthenticationException("denied")
            with pytest.raises(AuthError):
                backend.connect()
        client_class.return_value.close.assert_called_once()
        assert backend.client is None

    def test_unreachable_host(self):
        backend = SSHShellBackend(make_config())
        with patch(SSH_CLIENT) as client_class:
            client_class.return_value.connect.side_effect = socket.timeout("timed out")
            with pytest.raises(NetworkError):
                backend.connect()

    def test_context_manager_closes(self):
        with patch(SSH_CLIENT) as client_class:
            with SSHShellBackend(make_config()) as backend:
                assert backend.client is client_class.return_value
        client_class.return_value.close.assert_called_once()


class TestStat:
    def test_existing_file(self, connected_backend):
        connected_backend.client.exec_command.return_value = exec_result(b"1700000000\n")
        assert connected_backend.stat("/var/www/a.zip") == 1_700_000_000.0
        command = connected_backend.client.exec_command.call_args.args[0]
        assert command == stat_command("/var/www/a.zip")

    def test_empty_output_means_absent(self, connected_backend):
        connected_backend.client.exec_command.return_value = exec_result(b"\n")
        assert connected_backend.stat("/var/www/a.zip") is None

    def test_garbage_output(self, connected_backend):
        connected_backend.client.exec_command.return_value = exec_result(b"stat: weird\n")
        with pytest.raises(RemoteIOError):
            connected_backend.stat("/var/www/a.zip")

    def test_not_connected(self):
        with pytest.raises(NetworkError):
            SSHShellBackend(make_config()).stat("/var/www/a.zip")


class TestPut:
    def test_streams_bytes_and_closes_input(self, connected_backend):
        stdin, stdout, stderr = exec_result()
        connected_backend.client.exec_command.return_value = (stdin, stdout, stderr)

        size = connected_backend.put("/var/www/a/b.zip", io.BytesIO(b"x" * 100_000))

        assert size == 100_000
        assert bytes(stdin.written) == b"x" * 100_000
        stdout.channel.shutdown_write.assert_called_once()
        stdout.channel.close.assert_called_once()
        command = connected_backend.client.exec_command.call_args.args[0]
        assert command == "mkdir -p /var/www/a && cat > /var/www/a/b.zip"

    def test_non_zero_exit_status(self, connected_backend):
        connected_backend.client.exec_command.return_value = exec_result(
            stderr=b"cat: permission denied", status=1
        )
        with pytest.raises(RemoteIOError) as exc_info:
            connected_backend.put("/var/www/a/b.zip", io.BytesIO(b"data"))
        assert exc_info.value.exit_status == 1
        assert "permission denied" in str(exc_info.value)

    def test_broken_stream(self, connected_backend):
        stdin, stdout, stderr = exec_result()
        stdin.write.side_effect = OSError("broken pipe")
        connected_backend.client.exec_command.return_value = (stdin, stdout, stderr)
        with pytest.raises(RemoteIOError):
            connected_backend.put("/var/www/a/b.zip", io.BytesIO(b"data"))
        stdout.channel.close.assert_called_once()


class TestMakeDirs:
    def test_runs_mkdir(self, connected_backend):
        connected_backend.client.exec_command.return_value = exec_result()
        connected_backend.make_dirs("/var/www/a")
        assert connected_backend.client.exec_command.call_args.args[0] == "mkdir -p /var/www/a"

    def test_failure(self, connected_backend):
        connected_backend.client.exec_command.return_value = exec_result(status=1)
        with pytest.raises(RemoteIOError):
            connected_backend.make_dirs("/var/www/a")
