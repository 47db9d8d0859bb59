"""Publishes the release archive, descriptor, and image assets to the remote host."""

import logging
import posixpath
from pathlib import Path
from urllib.parse import urlsplit

import requests

from plugin_release.config import DESCRIPTOR_FILE_NAME
from plugin_release.errors import (
    InvalidDownloadUrl,
    ReleaseError,
    RemoteIOError,
    UrlEndsInDirectory,
    UrlHasNoFilename,
)
from plugin_release.models import RemoteTarget, UpdateInfo
from plugin_release.remote_backends.base import RemoteBackend

logger = logging.getLogger(__name__)


def derive_remote_target(download_url: str, base_dir: str) -> RemoteTarget:
    """Map a public download URL onto a directory below base_dir.

    ``https://example.com/a/b/file.zip`` with base ``/var/www`` resolves to
    ``/var/www/a/b``.

    Raises:
        InvalidDownloadUrl: If the URL has no scheme or host
        UrlEndsInDirectory: If the URL path ends with "/"
        UrlHasNoFilename: If the last path segment is not a file name
    """
    try:
        parts = urlsplit(download_url)
    except ValueError as e:
        raise InvalidDownloadUrl(f"Invalid download URL {download_url!r}: {e}") from e
    if not parts.scheme or not parts.netloc:
        raise InvalidDownloadUrl(f"Invalid download URL {download_url!r}: scheme and host required")

    path = parts.path
    if not path.startswith("/"):
        path = "/" + path
    if path.endswith("/"):
        raise UrlEndsInDirectory(f"Download URL ends in a directory: {download_url}")

    directory, filename = path.rsplit("/", 1)
    if filename in (".", ".."):
        raise UrlHasNoFilename(f"Download URL has no file name: {download_url}")

    base_dir = base_dir.rstrip("/")
    return RemoteTarget(base_dir=base_dir, directory=base_dir + directory, filename=filename)


def _is_well_formed_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc and parts.path)


class RemoteSync:
    """Uploads files through a RemoteBackend, skipping ones that are current."""

    def __init__(self, backend: RemoteBackend, base_dir: str = ""):
        """Initialize the synchronizer.

        Args:
            backend: Connected remote backend
            base_dir: Remote directory (or key prefix) the URL path is appended to
        """
        self.backend = backend
        self.base_dir = base_dir

    def remote_mtime(self, remote_path: str) -> float | None:
        """Modification time of remote_path, or None when absent or unknown."""
        try:
            return self.backend.stat(remote_path)
        except RemoteIOError as e:
            logger.warning(f"Could not query {remote_path}, assuming it is absent: {e}")
            return None

    def upload_file(self, local_path: Path | str, remote_path: str) -> bool:
        """Upload one file unless the remote copy is not older than it.

        Returns:
            True if bytes were transferred, False if the upload was skipped

        Raises:
            RemoteIOError: If the local file cannot be read or the transfer fails
        """
        local_path = Path(local_path)
        logger.info(f"Uploading {local_path} to {remote_path}")

        try:
            local_mtime = local_path.stat().st_mtime
        except OSError as e:
            raise RemoteIOError(f"Cannot read {local_path}: {e}", path=str(local_path)) from e

        remote_mtime = self.remote_mtime(remote_path)
        if remote_mtime is not None and local_mtime <= remote_mtime:
            logger.info(f"{local_path.name} is already current on the remote host")
            return False

        try:
            with open(local_path, "rb") as stream:
                size = self.backend.put(remote_path, stream)
        except OSError as e:
            raise RemoteIOError(f"Cannot read {local_path}: {e}", path=str(local_path)) from e

        logger.info(f"Uploaded {local_path.name} ({size} bytes)")
        return True

    def _upload_assets(
        self, kind: str, assets: dict[str, str], updates_dir: Path, target: RemoteTarget
    ) -> int:
        """Upload declared banner or icon files found in the updates directory.

        A malformed URL or missing local file only produces a warning.
        """
        uploaded = 0
        for key in sorted(assets):
            url = assets[key]
            if not _is_well_formed_url(url):
                logger.warning(f"{kind} '{key}' has no valid URL: {url!r}")
                continue

            filename = posixpath.basename(urlsplit(url).path)
            local_path = updates_dir / filename
            if not filename or not local_path.is_file():
                logger.warning(f"{kind} '{key}' not found locally: {local_path}")
                continue

            if self.upload_file(local_path, target.path_for(filename)):
                uploaded += 1
        return uploaded

    def sync_release(
        self,
        archive_path: Path | str,
        descriptor_path: Path | str,
        info: UpdateInfo,
        updates_dir: Path | str,
    ) -> RemoteTarget:
        """Upload archive, descriptor, banners, and icons.

        Returns:
            The remote target the files were written to

        Raises:
            RemotePathError: If the download URL cannot be mapped to a path
            RemoteIOError: If an upload fails
        """
        archive_path = Path(archive_path)
        target = derive_remote_target(info.download_url, self.base_dir)
        logger.info(f"Remote path: {target.directory}")

        try:
            self.backend.make_dirs(target.directory)
            logger.info(f"Remote directory {target.directory} ready")
        except ReleaseError as e:
            logger.warning(f"Could not create remote directory {target.directory}: {e}")

        self.upload_file(archive_path, target.path_for(archive_path.name))
        self.upload_file(descriptor_path, target.path_for(DESCRIPTOR_FILE_NAME))

        updates_dir = Path(updates_dir)
        self._upload_assets("Banner", info.banners, updates_dir, target)
        self._upload_assets("Icon", info.icons, updates_dir, target)

        logger.info("Remote sync completed")
        return target


def verify_public_url(url: str, timeout: float = 10) -> bool:
    """Check with a HEAD request that the published file is reachable.

    Returns:
        True if the server answered 200, False otherwise (logged as a warning)
    """
    try:
        response = requests.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        logger.warning(f"Failed to verify accessibility of {url}: {e}")
        return False

    if response.status_code != 200:
        logger.warning(f"File not accessible: {url} (status: {response.status_code})")
        return False

    logger.info(f"Verified accessibility: {url}")
    return True
