"""Abstract base class for remote storage backends."""

from abc import ABC, abstractmethod
from typing import BinaryIO


class RemoteBackend(ABC):
    """Moves bytes to named remote paths and reports their modification time.

    Each transport (remote shell, object storage) implements this interface
    so that RemoteSync does not depend on how files are transferred.
    """

    name = "remote"

    @abstractmethod
    def connect(self) -> None:
        """Open the connection.

        Raises:
            AuthError: If no usable credentials exist or they are rejected
            NetworkError: If the host cannot be reached
        """

    @abstractmethod
    def stat(self, remote_path: str) -> float | None:
        """Return the remote file's modification time, or None if absent."""

    @abstractmethod
    def put(self, remote_path: str, stream: BinaryIO) -> int:
        """Write the stream to remote_path, creating parent directories.

        Returns:
            Number of bytes transferred

        Raises:
            RemoteIOError: If the transfer fails
        """

    @abstractmethod
    def make_dirs(self, remote_dir: str) -> None:
        """Create remote_dir and its parents if needed."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection. Safe to call more than once."""

    def __enter__(self) -> "RemoteBackend":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
