"""Loading, reconciling, and persisting the release descriptor (update_info.json)."""

import json
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from plugin_release.config import DESCRIPTOR_FILE_NAME
from plugin_release.errors import (
    DescriptorMalformed,
    DescriptorMissing,
    DescriptorSchemaMismatch,
    DescriptorUnreadable,
    DescriptorWriteError,
)
from plugin_release.models import UpdateInfo
from plugin_release.utils import DEFAULT_VERSION_POLICY, VersionPolicy, is_newer

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# "my-plugin-v1.2.3.zip" -> "my-plugin"
ARCHIVE_SUFFIX_RE = re.compile(r"(?:-v?[0-9.]*)?\.zip$")


def serialize_descriptor(data: dict[str, Any]) -> bytes:
    """Serialize a descriptor as indented JSON with a trailing newline.

    Keys are sorted, non-ASCII is kept literal, and characters such as &, <
    and > are written as-is.
    """
    text = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def _replace_url_filename(url: str, filename: str) -> str:
    parts = urlsplit(url)
    directory = parts.path.rsplit("/", 1)[0] if "/" in parts.path else ""
    return urlunsplit(parts._replace(path=f"{directory}/{filename}"))


def _url_filename(url: str) -> str:
    path = urlsplit(url).path
    return path.rsplit("/", 1)[-1]


class MetadataStore:
    """Holds the descriptor as an open key/value map plus a typed view."""

    def __init__(
        self,
        path: Path | str,
        raw: dict[str, Any],
        info: UpdateInfo,
        policy: VersionPolicy = DEFAULT_VERSION_POLICY,
    ):
        """Initialize the store. Use MetadataStore.load() to read from disk.

        Args:
            path: Location of update_info.json
            raw: Every top-level key of the document, known or not
            info: Typed view of the known fields
            policy: Version comparison policy used by reconcile()
        """
        self.path = Path(path)
        self.raw = raw
        self.info = info
        self.policy = policy

    @classmethod
    def load(
        cls, path: Path | str, policy: VersionPolicy = DEFAULT_VERSION_POLICY
    ) -> "MetadataStore":
        """Read the descriptor.

        Raises:
            DescriptorMissing: If the file does not exist
            DescriptorUnreadable: If the file cannot be read
            DescriptorMalformed: If the content is not valid JSON
            DescriptorSchemaMismatch: If known fields have the wrong types
        """
        path = Path(path)
        logger.info(f"Reading release descriptor {path}")

        if not path.exists():
            raise DescriptorMissing(f"Release descriptor not found: {path}", path=str(path))

        try:
            data = path.read_bytes()
        except OSError as e:
            raise DescriptorUnreadable(
                f"Failed to read release descriptor {path}: {e}", path=str(path)
            ) from e

        try:
            raw = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DescriptorMalformed(
                f"Release descriptor {path} is not valid JSON: {e}", path=str(path)
            ) from e

        if not isinstance(raw, dict):
            raise DescriptorSchemaMismatch(
                f"Release descriptor {path} must be a JSON object, got {type(raw).__name__}",
                path=str(path),
            )

        try:
            info = UpdateInfo.from_dict(raw)
        except TypeError as e:
            raise DescriptorSchemaMismatch(
                f"Release descriptor {path} has an invalid structure: {e}",
                path=str(path),
            ) from e

        logger.info(f"Descriptor version: {info.version or '<none>'}")
        return cls(path, raw, info, policy)

    def reconcile(self, version: str, now: datetime | None = None) -> bool:
        """Move the descriptor to the winning version if it is behind.

        The version and last_updated fields change only when ``version`` is
        strictly newer than the recorded one, so repeated runs without a
        source change leave the descriptor untouched.

        Returns:
            True if the typed view was changed
        """
        if not is_newer(version, self.info.version, self.policy):
            logger.info(f"Descriptor version {self.info.version} is current")
            return False

        previous = self.info.version
        self.info.version = version
        self.info.last_updated = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
        logger.info(f"Descriptor version updated {previous or '<none>'} -> {version}")
        return True

    def merged(self) -> dict[str, Any]:
        """Open map with the typed fields laid over it."""
        result = dict(self.raw)
        result.update(self.info.to_dict())
        return result

    def persist(self) -> bool:
        """Write the merged descriptor, keeping the previous file as ``.bak``.

        Nothing is written when the serialized document equals the file on
        disk.

        Returns:
            True if the file was rewritten

        Raises:
            DescriptorWriteError: If the backup or the write fails
        """
        merged = self.merged()
        payload = serialize_descriptor(merged)

        try:
            current = self.path.read_bytes() if self.path.exists() else None
        except OSError:
            current = None
        if current == payload:
            logger.info(f"Descriptor {self.path} unchanged, not rewritten")
            self.raw = merged
            return False

        backup = self.path.with_name(self.path.name + ".bak")
        if self.path.exists():
            try:
                os.replace(self.path, backup)
            except OSError as e:
                raise DescriptorWriteError(
                    f"Failed to create descriptor backup {backup}: {e}", path=str(self.path)
                ) from e
            logger.info(f"Descriptor backup written to {backup}")

        try:
            self.path.write_bytes(payload)
        except OSError as e:
            raise DescriptorWriteError(
                f"Failed to write descriptor {self.path}: {e}", path=str(self.path)
            ) from e

        self.raw = merged
        logger.info(f"Descriptor {self.path} written (version {self.info.version})")
        return True

    def require_download_url(self) -> str:
        """Return download_url, which every release step depends on.

        Raises:
            DescriptorSchemaMismatch: If the descriptor has no download_url
                or it names no file
        """
        if not _url_filename(self.info.download_url):
            raise DescriptorSchemaMismatch(
                f"Release descriptor {self.path} needs a download_url ending in a file name",
                path=str(self.path),
                field="download_url",
            )
        return self.info.download_url

    def archive_base_name(self) -> str:
        """Download URL filename without its version suffix and extension."""
        return ARCHIVE_SUFFIX_RE.sub("", _url_filename(self.info.download_url))

    def release_slug(self) -> str:
        """Slug from the descriptor, or derived from the download URL."""
        if not self.info.slug:
            self.info.slug = self.archive_base_name()
            logger.info(f"Slug derived from download URL: {self.info.slug}")
        return self.info.slug

    def archive_name(self, version: str) -> str:
        return f"{self.archive_base_name()}-v{version}.zip"

    def descriptor_url(self) -> str:
        """Public URL of update_info.json, next to the download archive."""
        return _replace_url_filename(self.info.download_url, DESCRIPTOR_FILE_NAME)

    def set_download_archive(self, archive_name: str) -> str:
        """Point download_url at a new archive in the same remote directory."""
        self.info.download_url = _replace_url_filename(self.info.download_url, archive_name)
        logger.info(f"Download URL set to {self.info.download_url}")
        return self.info.download_url

    def set_changelog_html(self, html_text: str) -> None:
        self.info.sections["changelog"] = html_text
        logger.info("Changelog stored in descriptor sections")
