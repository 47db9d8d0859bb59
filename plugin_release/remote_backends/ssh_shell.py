"""Remote backend that transfers files through plain shell commands over SSH.

Only ``mkdir -p``, ``cat`` and ``stat`` are required on the remote host, so
servers without an SFTP subsystem work too.
"""

import logging
import posixpath
import shlex
from typing import Any, BinaryIO

import paramiko
from paramiko.pkey import UnknownKeyType

from plugin_release.config_manager import ReleaseConfig
from plugin_release.errors import (
    AuthError,
    ConfigurationError,
    NetworkError,
    NoAuthMethod,
    RemoteIOError,
)
from plugin_release.remote_backends.base import RemoteBackend

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def stat_command(remote_path: str) -> str:
    """GNU stat, then BSD stat, then empty output for a missing file."""
    quoted = shlex.quote(remote_path)
    return f"stat -c %Y {quoted} 2>/dev/null || stat -f %m {quoted} 2>/dev/null || echo"


def upload_command(remote_path: str) -> str:
    directory = posixpath.dirname(remote_path) or "."
    return f"mkdir -p {shlex.quote(directory)} && cat > {shlex.quote(remote_path)}"


class SSHShellBackend(RemoteBackend):
    """Uploads via ``mkdir -p <dir> && cat > <path>`` on an SSH exec channel."""

    name = "ssh"

    def __init__(self, config: ReleaseConfig):
        """Initialize the backend.

        Args:
            config: Settings providing host, port, user, and credentials
        """
        self.host = config.ssh_host
        try:
            self.port = int(config.ssh_port or 22)
        except ValueError as e:
            raise ConfigurationError(f"Invalid ssh_port: {config.ssh_port!r}") from e
        self.user = config.ssh_user
        self.key_file = config.ssh_key_file
        self.password = config.ssh_password
        self.timeout = config.ssh_timeout
        self.strict_host_key = config.ssh_strict_host_key
        self.client: paramiko.SSHClient | None = None

    def _auth_options(self) -> dict[str, Any]:
        """Collect usable credentials.

        A key file that cannot be read or parsed only produces a warning.

        Raises:
            NoAuthMethod: If neither a key nor a password is usable
        """
        options: dict[str, Any] = {}

        if self.key_file:
            try:
                options["pkey"] = paramiko.PKey.from_path(self.key_file)
                logger.info("SSH key authentication added")
            except (OSError, paramiko.SSHException, UnknownKeyType, ValueError) as e:
                logger.warning(f"SSH key {self.key_file} not usable: {e}")

        if self.password:
            options["password"] = self.password
            logger.info("SSH password authentication added")

        if not options:
            raise NoAuthMethod()
        return options

    def connect(self) -> None:
        auth = self._auth_options()

        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if self.strict_host_key:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        address = f"{self.host}:{self.port}"
        logger.info(f"Connecting to {address} as {self.user}")
        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.user,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
                look_for_keys=False,
                allow_agent=False,
                **auth,
            )
        except paramiko.AuthenticationException as e:
            client.close()
            raise AuthError(f"SSH authentication to {address} failed: {e}") from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise NetworkError(f"SSH connection to {address} failed: {e}") from e

        self.client = client
        logger.info(f"Connected to {address}")

    def _require_client(self) -> paramiko.SSHClient:
        if self.client is None:
            raise NetworkError("SSH backend is not connected")
        return self.client

    def run(self, command: str, stream: BinaryIO | None = None) -> tuple[int, bytes, bytes]:
        """Run a remote command, optionally feeding a stream to its stdin.

        Returns:
            Exit status, stdout, and stderr of the command

        Raises:
            RemoteIOError: If the channel fails while running the command
        """
        client = self._require_client()
        try:
            stdin, stdout, stderr = client.exec_command(command)
        except (paramiko.SSHException, OSError) as e:
            raise RemoteIOError(f"Failed to start remote command: {e}") from e

        channel = stdout.channel
        try:
            if stream is not None:
                while chunk := stream.read(CHUNK_SIZE):
                    stdin.write(chunk)
                stdin.flush()
            # EOF tells the remote cat that the file is complete
            channel.shutdown_write()
            output = stdout.read()
            errors = stderr.read()
            status = channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise RemoteIOError(f"Remote command stream failed: {e}") from e
        finally:
            channel.close()

        return status, output, errors

    def stat(self, remote_path: str) -> float | None:
        status, output, errors = self.run(stat_command(remote_path))
        text = output.decode("utf-8", errors="replace").strip()
        if not text:
            return None
        try:
            return float(int(text.splitlines()[-1]))
        except ValueError as e:
            raise RemoteIOError(
                f"Unexpected stat output for {remote_path}: {text!r}", path=remote_path
            ) from e

    def put(self, remote_path: str, stream: BinaryIO) -> int:
        counter = _CountingReader(stream)
        status, _, errors = self.run(upload_command(remote_path), counter)
        if status != 0:
            raise RemoteIOError(
                f"Upload to {remote_path} failed with exit status {status}: "
                f"{errors.decode('utf-8', errors='replace').strip()}",
                path=remote_path,
                exit_status=status,
            )
        return counter.count

    def make_dirs(self, remote_dir: str) -> None:
        status, _, errors = self.run(f"mkdir -p {shlex.quote(remote_dir)}")
        if status != 0:
            raise RemoteIOError(
                f"mkdir -p {remote_dir} failed with exit status {status}: "
                f"{errors.decode('utf-8', errors='replace').strip()}",
                path=remote_dir,
                exit_status=status,
            )

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
            logger.debug("SSH connection closed")


class _CountingReader:
    """Wraps a binary stream and counts the bytes read from it."""

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        data = self.stream.read(size)
        self.count += len(data)
        return data
