"""Git commit, tag, and push after a successful release."""

import logging
import re
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

from plugin_release.config import ENV_AUTO_GITHUB_UPDATE, ENV_SKIP_GITHUB_UPDATE, get_env_var
from plugin_release.errors import VcsError

logger = logging.getLogger(__name__)

YES_ANSWERS = {"y", "yes", "j", "ja"}

GITHUB_REMOTE_RE = re.compile(r"github\.com|githubusercontent\.com", re.IGNORECASE)
HTML_TAG_RE = re.compile(r"<[^>]*>")


def run_git(workdir: Path | str, *args: str, check: bool = True) -> subprocess.CompletedProcess:
    """Run a git command in workdir and capture its output.

    Raises:
        VcsError: If git cannot be started, or exits non-zero and check is set
    """
    command = ["git", *args]
    logger.debug(f"Running: {' '.join(command)}")
    try:
        result = subprocess.run(
            command, cwd=workdir, capture_output=True, encoding="utf-8", errors="replace"
        )
    except OSError as e:
        raise VcsError(f"Failed to run git: {e}", path=str(workdir)) from e

    if check and result.returncode != 0:
        raise VcsError(
            f"git {args[0]} failed with exit status {result.returncode}: {result.stderr.strip()}",
            path=str(workdir),
            returncode=result.returncode,
        )
    return result


def is_git_work_tree(workdir: Path | str) -> bool:
    return (Path(workdir) / ".git").exists()


def is_github_repository(workdir: Path | str) -> bool:
    """Whether .git/config references a GitHub remote."""
    git_config = Path(workdir) / ".git" / "config"
    if not git_config.is_file():
        return False
    return bool(GITHUB_REMOTE_RE.search(git_config.read_text(encoding="utf-8", errors="replace")))


def confirm_vcs_update(prompt: Callable[[str], str] | None = None) -> bool:
    """Decide whether to commit, tag, and push.

    AUTO_GITHUB_UPDATE approves, SKIP_GITHUB_UPDATE or a non-interactive
    stdin declines, otherwise the user is asked.
    """
    auto_update = get_env_var(ENV_AUTO_GITHUB_UPDATE, default="")
    if auto_update.strip().lower() in YES_ANSWERS:
        logger.info(f"Auto-approving GitHub update ({ENV_AUTO_GITHUB_UPDATE} is set)")
        return True

    if get_env_var(ENV_SKIP_GITHUB_UPDATE):
        logger.info(f"Skipping GitHub update ({ENV_SKIP_GITHUB_UPDATE} is set)")
        return False

    if prompt is None:
        if not sys.stdin.isatty():
            logger.info("Non-interactive terminal detected, skipping GitHub update")
            return False
        prompt = input

    try:
        answer = prompt("Commit, tag, and push this release to GitHub? [y/N] ")
    except EOFError:
        logger.info("Error reading input, skipping GitHub update")
        return False
    return answer.strip().lower() in YES_ANSWERS


def tag_exists(workdir: Path | str, tag_name: str) -> bool:
    result = run_git(workdir, "tag", "-l", tag_name)
    return result.stdout.strip() == tag_name


def commit_message_from_html(changelog_html: str) -> str:
    """Changelog HTML reduced to plain text for commit and tag messages."""
    return HTML_TAG_RE.sub("", changelog_html).strip()


def commit_and_tag(workdir: Path | str, version: str, message: str = "") -> str:
    """Stage everything, commit, and (re)create the annotated tag ``v<version>``.

    An empty commit is not an error. An existing tag is deleted locally and on
    the remote before it is recreated and pushed.

    Returns:
        The tag name

    Raises:
        VcsError: If staging, committing, tagging, or pushing the tag fails
    """
    message = message or f"Release version {version}"
    tag_name = f"v{version}"

    run_git(workdir, "add", "-A")

    commit = run_git(workdir, "commit", "-m", message, check=False)
    if commit.returncode != 0:
        staged = run_git(workdir, "diff", "--cached", "--quiet", check=False)
        if staged.returncode != 0:
            raise VcsError(
                f"git commit failed: {commit.stderr.strip() or commit.stdout.strip()}",
                path=str(workdir),
                returncode=commit.returncode,
            )
        logger.info("Nothing to commit")
    else:
        logger.info("Changes committed")

    existed = tag_exists(workdir, tag_name)
    if existed:
        logger.info(f"Tag {tag_name} exists, recreating it")
        run_git(workdir, "tag", "-d", tag_name, check=False)

    run_git(workdir, "tag", "-a", tag_name, "-m", message)
    logger.info(f"Created tag {tag_name}")

    if existed:
        run_git(workdir, "push", "origin", f":refs/tags/{tag_name}", check=False)

    run_git(workdir, "push", "origin", tag_name)
    logger.info(f"Pushed tag {tag_name}")
    return tag_name


def publish_release(
    workdir: Path | str,
    version: str,
    changelog_html: str = "",
    prompt: Callable[[str], str] | None = None,
) -> bool:
    """Commit, tag, and push the release when the project lives on GitHub.

    Returns:
        True if the release was pushed, False if the stage was skipped

    Raises:
        VcsError: If a git command fails
    """
    if not is_git_work_tree(workdir) or not is_github_repository(workdir):
        logger.info("No GitHub repository found, skipping version control update")
        return False

    logger.info("GitHub repository detected")
    if not confirm_vcs_update(prompt):
        logger.info("GitHub update skipped")
        return False

    commit_and_tag(workdir, version, commit_message_from_html(changelog_html))
    run_git(workdir, "push")
    logger.info("GitHub update completed")
    return True
