"""Rewrites the main plugin source to match the release being built."""

import logging
import os
import re
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from plugin_release.errors import MissingIntegration, SourceIOError
from plugin_release.models import (
    DeclarationKind,
    IntegrationCall,
    PatchResult,
    SourceEdit,
    VersionDeclaration,
)
from plugin_release.utils import apply_edits
from plugin_release.version_extractor import VersionExtractor

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

LAST_UPDATE_RE = re.compile(
    r"(?:/\*.*?\bLast-Update:\s*|//\s*Last-Update:\s*)"
    r"([0-9]{4}-[0-9]{2}-[0-9]{2}(?: [0-9]{2}:[0-9]{2}(?::[0-9]{2})?)?)",
    re.IGNORECASE | re.DOTALL,
)

UPDATE_CHECKER_RE = re.compile(
    r"\$?[a-zA-Z0-9_]*::buildUpdateChecker\(\s*'([^']*)'\s*,\s*__FILE__,\s*"
    r"(//[^\n]*)?\s*'([-_a-zA-Z0-9]*)'\s*\)",
    re.DOTALL,
)


def find_integration_call(content: str) -> IntegrationCall | None:
    """Locate the buildUpdateChecker(...) registration call."""
    match = UPDATE_CHECKER_RE.search(content)
    if not match:
        return None
    return IntegrationCall(
        start=match.start(),
        end=match.end(),
        url=match.group(1),
        url_start=match.start(1),
        url_end=match.end(1),
        slug=match.group(3),
        slug_start=match.start(3),
        slug_end=match.end(3),
        comment=match.group(2),
    )


def _line_prefix(content: str, position: int) -> str:
    """Text between the preceding newline (inclusive) and position."""
    newline = content.rfind("\n", 0, position)
    if newline < 0:
        return "\n"
    return content[newline:position]


class SourcePatcher:
    """Aligns version declarations, the Last-Update marker, and the update checker."""

    def __init__(
        self,
        extractor: VersionExtractor | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the patcher.

        Args:
            extractor: Version extractor; a default one is created if omitted
            clock: Returns the current local time for the Last-Update marker
        """
        self.extractor = extractor or VersionExtractor()
        self.clock = clock

    def plan_edits(
        self,
        content: str,
        declarations: list[VersionDeclaration],
        version: str,
        checker_url: str,
        slug: str,
        source_path: str = "<source>",
    ) -> list[SourceEdit]:
        """Compute all edits against the unmodified content.

        Raises:
            MissingIntegration: If the update checker call is missing or its
                URL argument is empty
        """
        edits: list[SourceEdit] = []

        for declaration in declarations:
            if declaration.value != version:
                edits.append(SourceEdit(declaration.start, declaration.end, version))
                logger.info(
                    f"Updating {declaration.kind.value} version "
                    f"{declaration.value} -> {version}"
                )

        timestamp = self.clock().strftime(TIMESTAMP_FORMAT)
        last_update = LAST_UPDATE_RE.search(content)
        if last_update:
            edits.append(SourceEdit(last_update.start(1), last_update.end(1), timestamp))
            logger.info(f"Last-Update set to {timestamp}")
        else:
            header = next(
                (d for d in declarations if d.kind is DeclarationKind.DOC_COMMENT), None
            )
            if header is not None:
                line_start = content.rfind("\n", 0, header.start)
                version_label = content.lower().rfind(
                    "version", line_start + 1, header.start
                )
                label_start = version_label if version_label >= 0 else header.start
                prefix = _line_prefix(content, label_start)
                edits.append(
                    SourceEdit(header.end, header.end, f"{prefix}Last-Update: {timestamp}")
                )
                logger.info(f"Last-Update added: {timestamp}")

        call = find_integration_call(content)
        if call is None or not call.url:
            raise MissingIntegration(source_path)

        logger.info(f"Update checker URL: {call.url}")
        if call.comment:
            logger.info(f"Update checker comment: {call.comment}")
        logger.info(f"Update checker slug: {call.slug}")

        if call.url != checker_url:
            edits.append(SourceEdit(call.url_start, call.url_end, checker_url))
        if call.slug != slug:
            edits.append(SourceEdit(call.slug_start, call.slug_end, slug))
        if call.url != checker_url or call.slug != slug:
            logger.info(f"Update checker now points to {checker_url} (slug '{slug}')")

        return edits

    def patch_content(
        self, content: str, checker_url: str, slug: str, source_path: str = "<source>"
    ) -> tuple[str, PatchResult]:
        """Patch source text in memory.

        Returns:
            The rewritten text and a PatchResult describing the changes
        """
        version, declarations = self.extractor.extract(content)
        logger.info(f"Current plugin version: {version}")

        edits = self.plan_edits(
            content, declarations, version, checker_url, slug, source_path
        )
        patched = apply_edits(content, edits)
        result = PatchResult(
            source_path=source_path,
            backup_path=f"{source_path}.bak",
            version=version,
            declarations=declarations,
            edits=edits,
        )
        return patched, result

    def patch_file(self, source_path: Path | str, checker_url: str, slug: str) -> PatchResult:
        """Patch the plugin source file on disk.

        The original file is renamed to ``<file>.bak`` before the new content
        is written; if the rename fails the original is left untouched.

        Raises:
            SourceIOError: If the file cannot be read, backed up, or written
            NoVersionFound: If the source declares no version
            MissingIntegration: If the update checker call is missing
        """
        path = Path(source_path)
        logger.info(f"Processing plugin source {path}")

        try:
            raw = path.read_bytes()
        except OSError as e:
            raise SourceIOError(f"Failed to read plugin source {path}: {e}", path=str(path)) from e

        # surrogateescape keeps undecodable bytes intact on write
        content = raw.decode("utf-8", errors="surrogateescape")
        patched, result = self.patch_content(content, checker_url, slug, str(path))

        backup = Path(result.backup_path)
        try:
            os.replace(path, backup)
        except OSError as e:
            raise SourceIOError(
                f"Failed to rename {path} to backup {backup}: {e}", path=str(path)
            ) from e

        try:
            path.write_bytes(patched.encode("utf-8", errors="surrogateescape"))
        except OSError as e:
            raise SourceIOError(
                f"Failed to write plugin source {path} (original kept in {backup}): {e}",
                path=str(path),
            ) from e

        logger.info(f"Plugin source updated ({len(result.edits)} edits)")
        return result
