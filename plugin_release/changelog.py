"""CHANGELOG.md maintenance and conversion of release notes to HTML."""

import html
import logging
import re
import sys
from collections.abc import Callable
from datetime import date
from pathlib import Path

from plugin_release.config import (
    CHANGELOG_FILE_NAME,
    ENV_AUTO_CHANGELOG,
    ENV_SKIP_CHANGELOG_INPUT,
    get_env_var,
)
from plugin_release.errors import VcsError
from plugin_release.vcs_integration import is_git_work_tree, run_git

logger = logging.getLogger(__name__)

CHANGELOG_HEADER_RE = re.compile(r"^#\s*Changelog[ \t]*\n", re.IGNORECASE)
SECTION_START_RE = re.compile(r"^##(?!#)", re.MULTILINE)


def _version_heading_re(version: str) -> re.Pattern:
    # "## [1.2]" must not match "## [1.2.3]"
    return re.compile(
        rf"^##[ \t]*\[?{re.escape(version)}(?:\]|[ \t]|$)", re.IGNORECASE | re.MULTILINE
    )


def _section_bounds(content: str, version: str) -> tuple[int, int] | None:
    """Start of the version heading and start of the following section."""
    heading = _version_heading_re(version).search(content)
    if heading is None:
        return None
    following = SECTION_START_RE.search(content, heading.end())
    return heading.start(), following.start() if following else len(content)


def read_changelog(workdir: Path | str, version: str) -> str:
    """Body of the ``## [version]`` section, or "" when there is none."""
    path = Path(workdir) / CHANGELOG_FILE_NAME
    if not path.exists():
        return ""

    content = path.read_text(encoding="utf-8", errors="replace")
    bounds = _section_bounds(content, version)
    if bounds is None:
        return ""

    section = content[bounds[0] : bounds[1]]
    newline = section.find("\n")
    body = section[newline + 1 :] if newline >= 0 else ""
    return body.strip()


def write_changelog(workdir: Path | str, version: str, text: str, today: date | None = None) -> Path:
    """Replace or insert the changelog section for version.

    New sections go directly below the ``# Changelog`` header; the file is
    created when missing.

    Returns:
        Path of the changelog file
    """
    path = Path(workdir) / CHANGELOG_FILE_NAME
    entry = f"## [{version}] - {(today or date.today()).isoformat()}\n\n{text.strip()}\n"

    if not path.exists():
        content = f"# Changelog\n\n{entry}"
    else:
        # undecodable bytes in older entries are written back unchanged
        existing = path.read_text(encoding="utf-8", errors="surrogateescape")
        bounds = _section_bounds(existing, version)
        header = CHANGELOG_HEADER_RE.match(existing)
        if bounds is not None:
            start, end = bounds
            separator = "\n" if end < len(existing) else ""
            content = existing[:start] + entry + separator + existing[end:]
        elif header is not None:
            rest = existing[header.end() :].lstrip("\n")
            content = f"{header.group(0)}\n{entry}\n{rest}" if rest else f"{header.group(0)}\n{entry}"
        else:
            content = f"# Changelog\n\n{entry}\n{existing}"

    path.write_text(content, encoding="utf-8", errors="surrogateescape")
    logger.info(f"Changelog updated for version {version}")
    return path


def changelog_to_html(text: str) -> str:
    """Convert plain release notes to escaped HTML.

    Blank lines separate paragraphs, single newlines become ``<br/>``, and
    runs of lines starting with ``- `` become a bullet list.
    """
    blocks = []
    for paragraph in re.split(r"\n\s*\n", text.strip()):
        lines = [line.rstrip() for line in paragraph.splitlines() if line.strip()]
        text_lines: list[str] = []
        items: list[str] = []

        def flush_text():
            if text_lines:
                blocks.append("<p>" + "<br/>".join(text_lines) + "</p>")
                text_lines.clear()

        def flush_items():
            if items:
                blocks.append("<ul>" + "".join(f"<li>{item}</li>" for item in items) + "</ul>")
                items.clear()

        for line in lines:
            stripped = line.lstrip()
            if stripped.startswith("- "):
                flush_text()
                items.append(html.escape(stripped[2:].strip()))
            else:
                flush_items()
                text_lines.append(html.escape(line))
        flush_text()
        flush_items()

    return "".join(blocks)


def get_changed_files(workdir: Path | str) -> list[str]:
    """Files changed since the last tag, or uncommitted changes when untagged.

    Returns an empty list outside git work trees or when git fails.
    """
    if not is_git_work_tree(workdir):
        return []

    try:
        last_tag = run_git(workdir, "describe", "--tags", "--abbrev=0", check=False)
        if last_tag.returncode == 0 and last_tag.stdout.strip():
            diff = run_git(workdir, "diff", "--name-only", last_tag.stdout.strip(), "HEAD", check=False)
        else:
            diff = run_git(workdir, "diff", "--name-only", "HEAD", check=False)
    except VcsError as e:
        logger.warning(f"Could not detect changed files: {e}")
        return []

    if diff.returncode != 0:
        return []
    return [line for line in diff.stdout.splitlines() if line.strip()]


def build_preview(existing_text: str, changed_files: list[str]) -> str:
    parts = []
    if existing_text:
        parts.append(existing_text)
    if changed_files:
        parts.append("Changed files:\n" + "\n".join(f"- {name}" for name in changed_files))
    return "\n\n".join(parts).strip()


def choose_changelog_text(
    version: str, preview: str, prompt: Callable[[str], str] | None = None
) -> str:
    """Ask for the release notes, falling back to the preview.

    The preview is used without asking when SKIP_CHANGELOG_INPUT or
    AUTO_CHANGELOG is set or stdin is not a terminal. Empty input accepts it.
    """
    if preview:
        logger.info(f"Changelog preview:\n{preview}")

    if get_env_var(ENV_SKIP_CHANGELOG_INPUT) or get_env_var(ENV_AUTO_CHANGELOG):
        logger.info("Using auto-generated changelog")
        return preview

    if prompt is None:
        if not sys.stdin.isatty():
            logger.info("Non-interactive terminal detected, using auto-generated changelog")
            return preview
        prompt = input

    try:
        answer = prompt(f"Changelog for version {version} (Enter keeps the preview): ")
    except EOFError:
        logger.info("Error reading input, using auto-generated changelog")
        return preview

    return answer.strip() or preview


def capture_changelog(
    workdir: Path | str, version: str, prompt: Callable[[str], str] | None = None
) -> str:
    """Collect release notes for version and record them in CHANGELOG.md.

    Returns:
        The release notes, or "" when there is nothing to record
    """
    logger.info(f"Reading changelog for version {version}")
    existing_text = read_changelog(workdir, version)

    changed_files = get_changed_files(workdir)
    logger.info(f"Detected {len(changed_files)} changed files")

    text = choose_changelog_text(version, build_preview(existing_text, changed_files), prompt)
    if not text:
        return ""

    write_changelog(workdir, version, text)
    return text
