"""Builds the distributable zip archive of a plugin working directory."""

import logging
import os
import zipfile
from collections.abc import Iterator
from fnmatch import fnmatchcase
from pathlib import Path

from plugin_release.config import CONFIG_FILE_NAME, LOG_FILE_NAME, UPDATES_DIR_NAME
from plugin_release.errors import ArchiveWriteError
from plugin_release.models import ArchiveResult

logger = logging.getLogger(__name__)

DEFAULT_SKIP_PATTERNS: tuple[str, ...] = (
    UPDATES_DIR_NAME,
    CONFIG_FILE_NAME,
    LOG_FILE_NAME,
    "*.code-workspace",
    "*.bak",
    "composer.lock",
    "Thumbs.db",
    ".DS_Store",
)


def should_skip(rel_path: str, patterns: list[str] | tuple[str, ...]) -> bool:
    """Check a relative path against exclusion globs.

    A path is excluded when its basename or any of its segments matches one
    of the patterns.

    Args:
        rel_path: Path relative to the archive root, "/" or os.sep separated
        patterns: Shell-style glob patterns

    Returns:
        True if the entry must be left out of the archive
    """
    parts = [p for p in rel_path.replace(os.sep, "/").split("/") if p]
    if not parts:
        return False
    for pattern in patterns:
        if fnmatchcase(parts[-1], pattern):
            return True
        if any(fnmatchcase(part, pattern) for part in parts):
            return True
    return False


class ArchiveBuilder:
    """Creates a deterministic release archive with a synthetic top-level folder."""

    def __init__(self, skip_patterns: list[str] | None = None):
        """Initialize the archive builder.

        Args:
            skip_patterns: Extra exclusion globs; the built-in defaults
                always apply as well
        """
        self.skip_patterns = list(DEFAULT_SKIP_PATTERNS) + list(skip_patterns or [])

    def iter_files(self, source_dir: Path, result: ArchiveResult) -> Iterator[tuple[Path, str]]:
        """Yield (absolute path, relative posix path) in sorted depth-first order.

        Excluded entries and symlinked directories are recorded in
        result.skipped and not descended into.
        """
        yield from self._walk(source_dir, "", result)

    def _walk(self, directory: Path, prefix: str, result: ArchiveResult) -> Iterator[tuple[Path, str]]:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)

        for entry in entries:
            rel_path = f"{prefix}{entry.name}"
            is_dir = entry.is_dir(follow_symlinks=False)

            if should_skip(rel_path, self.skip_patterns):
                result.skipped.append(rel_path)
                if is_dir:
                    logger.info(f"Skipping directory {rel_path}")
                else:
                    logger.info(f"Skipping file {rel_path}")
                continue

            if entry.is_symlink() and entry.is_dir():
                result.skipped.append(rel_path)
                logger.info(f"Skipping symlinked directory {rel_path}")
                continue

            if is_dir:
                yield from self._walk(Path(entry.path), f"{rel_path}/", result)
            else:
                yield Path(entry.path), rel_path

    def create_archive(self, source_dir: Path | str, archive_path: Path | str, slug: str) -> ArchiveResult:
        """Write all non-excluded files of source_dir into archive_path.

        Every entry is stored as ``<slug>/<relative path>`` with forward
        slashes. The first I/O error aborts the build and the partial
        archive is removed.

        Raises:
            ArchiveWriteError: If walking the tree or writing the archive fails
        """
        source_dir = Path(source_dir)
        archive_path = Path(archive_path)
        prefix = slug.strip("/")
        if not prefix:
            raise ArchiveWriteError("Archive slug must not be empty", path=str(archive_path))

        logger.info(f"Creating archive {archive_path}")
        logger.info(f"Skip patterns: {self.skip_patterns}")

        result = ArchiveResult(path=str(archive_path))
        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(
                archive_path, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
            ) as zf:
                for file_path, rel_path in self.iter_files(source_dir, result):
                    arcname = f"{prefix}/{rel_path}"
                    info = zipfile.ZipInfo.from_file(file_path, arcname, strict_timestamps=False)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    with open(file_path, "rb") as src, zf.open(info, "w") as dst:
                        while chunk := src.read(1024 * 1024):
                            dst.write(chunk)
                    result.entries.append(arcname)
                    logger.debug(f"Added {rel_path}")
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            logger.error(f"Archive creation failed: {e}")
            try:
                archive_path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.warning(f"Could not remove partial archive {archive_path}: {cleanup_error}")
            raise ArchiveWriteError(
                f"Failed to create archive {archive_path}: {e}", path=str(archive_path)
            ) from e

        logger.info(f"Archive created with {len(result.entries)} files")
        return result
