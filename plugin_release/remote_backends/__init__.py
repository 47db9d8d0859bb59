"""Remote storage backends used to publish release files."""

from plugin_release.config_manager import ReleaseConfig
from plugin_release.errors import ConfigurationError
from plugin_release.remote_backends.base import RemoteBackend
from plugin_release.remote_backends.s3 import S3Backend
from plugin_release.remote_backends.ssh_shell import SSHShellBackend

BACKENDS: dict[str, type[RemoteBackend]] = {
    SSHShellBackend.name: SSHShellBackend,
    S3Backend.name: S3Backend,
}


def create_backend(config: ReleaseConfig) -> RemoteBackend:
    """Instantiate the backend selected by ``remote_backend``.

    Raises:
        ConfigurationError: If the backend name is unknown
    """
    try:
        backend_class = BACKENDS[config.remote_backend]
    except KeyError as e:
        raise ConfigurationError(f"Unknown remote backend: {config.remote_backend}") from e
    return backend_class(config)


__all__ = ["BACKENDS", "RemoteBackend", "S3Backend", "SSHShellBackend", "create_backend"]
