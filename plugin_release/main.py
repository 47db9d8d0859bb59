"""Command-line entry point that runs the full plugin release pipeline."""

import argparse
import logging
import os
import sys
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from plugin_release import __version__
from plugin_release.archive_builder import ArchiveBuilder
from plugin_release.changelog import capture_changelog, changelog_to_html
from plugin_release.config import (
    CONFIG_FILE_NAME,
    DESCRIPTOR_FILE_NAME,
    LOG_FILE_NAME,
    UPDATES_DIR_NAME,
    OperationLogger,
    close_logging,
    setup_logging,
)
from plugin_release.config_manager import ReleaseConfig
from plugin_release.errors import ReleaseError
from plugin_release.image_converter import process_svg_files
from plugin_release.metadata_store import MetadataStore
from plugin_release.models import RemoteTarget
from plugin_release.remote_backends import RemoteBackend, create_backend
from plugin_release.remote_sync import RemoteSync, verify_public_url
from plugin_release.source_patcher import SourcePatcher
from plugin_release.vcs_integration import publish_release

logger = logging.getLogger(__name__)

BackendFactory = Callable[[ReleaseConfig], RemoteBackend]
Prompt = Callable[[str], str]


def _run_optional_stage(operation_logger: OperationLogger, operation: str, func, *args, **kwargs):
    """Run a stage whose failure is logged but does not stop the release."""
    operation_logger.start_operation(operation)
    try:
        result = func(*args, **kwargs)
    except Exception as e:
        operation_logger.log_error(operation, e)
        operation_logger.complete_operation(operation, success=False)
        return None
    operation_logger.complete_operation(operation, success=True)
    return result


def record_changelog(
    workdir: Path, version: str, store: MetadataStore, prompt: Prompt | None = None
) -> str:
    """Capture release notes and store them as HTML in the descriptor."""
    text = capture_changelog(workdir, version, prompt=prompt)
    if text:
        store.set_changelog_html(changelog_to_html(text))
    return text


def sync_release(
    config: ReleaseConfig,
    store: MetadataStore,
    archive_path: Path,
    backend_factory: BackendFactory = create_backend,
) -> RemoteTarget:
    """Upload the release through the configured backend.

    Raises:
        ReleaseError: If the remote path, connection, or an upload fails
    """
    backend = backend_factory(config)
    with backend:
        remote_sync = RemoteSync(backend, config.remote_base_dir)
        target = remote_sync.sync_release(archive_path, store.path, store.info, store.path.parent)

    if config.verify_download:
        verify_public_url(store.info.download_url)
    return target


def run_release(
    workdir: Path | str | None = None,
    *,
    now: datetime | None = None,
    backend_factory: BackendFactory = create_backend,
    changelog_prompt: Prompt | None = None,
    vcs_prompt: Prompt | None = None,
) -> int:
    """Build and publish a release of the plugin in workdir.

    Args:
        workdir: Plugin working directory; defaults to the current directory
        now: Fixed timestamp for the Last-Update marker and descriptor
        backend_factory: Creates the remote backend from the settings
        changelog_prompt: Reads release notes instead of stdin
        vcs_prompt: Reads the push confirmation instead of stdin

    Returns:
        0 on success, 1 if a required stage failed
    """
    workdir = Path(workdir or os.getcwd())
    if not workdir.is_dir():
        print(f"Error: working directory {workdir} does not exist", file=sys.stderr)
        return 1

    config_path = workdir / CONFIG_FILE_NAME
    if not config_path.is_file():
        print(f"Error: config file {config_path} not found", file=sys.stderr)
        return 1

    log_file = str(workdir / LOG_FILE_NAME)
    try:
        system_logger = setup_logging(log_file=log_file)
    except (ReleaseError, OSError) as e:
        print(f"Error: cannot set up logging: {e}", file=sys.stderr)
        return 1
    operation_logger = system_logger.get_operation_logger()
    clock = (lambda: now) if now is not None else datetime.now

    try:
        system_logger.log_system_start(workdir=str(workdir), tool_version=__version__)

        operation_logger.start_operation("config_load")
        config = ReleaseConfig.from_file(config_path)
        if config.log_level != "INFO" or config.log_format != "text":
            system_logger = setup_logging(config.log_level, log_file, config.log_format)
            operation_logger = system_logger.get_operation_logger()
        operation_logger.complete_operation("config_load", success=True)

        operation_logger.start_operation("descriptor_load")
        updates_dir = workdir / UPDATES_DIR_NAME
        store = MetadataStore.load(updates_dir / DESCRIPTOR_FILE_NAME)
        store.require_download_url()
        slug = store.release_slug()
        operation_logger.complete_operation("descriptor_load", success=True, slug=slug)

        operation_logger.start_operation("source_patch")
        patcher = SourcePatcher(clock=clock)
        patch = patcher.patch_file(workdir / config.main_php_file, store.descriptor_url(), slug)
        version = patch.version
        system_logger.set_metric("release_version", version)
        operation_logger.complete_operation(
            "source_patch", success=True, version=version, edits=len(patch.edits)
        )

        operation_logger.start_operation("descriptor_reconcile")
        changed = store.reconcile(version, now=clock())
        operation_logger.complete_operation("descriptor_reconcile", success=True, changed=changed)

        if config.changelog:
            _run_optional_stage(
                operation_logger, "changelog", record_changelog,
                workdir, version, store, changelog_prompt,
            )

        if config.convert_images:
            _run_optional_stage(operation_logger, "image_conversion", process_svg_files, workdir)

        operation_logger.start_operation("archive_build")
        archive_path = updates_dir / store.archive_name(version)
        builder = ArchiveBuilder(config.skip_pattern)
        archive = builder.create_archive(workdir, archive_path, slug)
        system_logger.set_metric("archive_entries", len(archive.entries))
        operation_logger.complete_operation(
            "archive_build", success=True, entries=len(archive.entries)
        )

        operation_logger.start_operation("descriptor_persist")
        store.set_download_archive(archive_path.name)
        written = store.persist()
        operation_logger.complete_operation("descriptor_persist", success=True, written=written)

        if config.sync_enabled:
            _run_optional_stage(
                operation_logger, "remote_sync", sync_release,
                config, store, archive_path, backend_factory,
            )
        else:
            logger.info("No remote host configured, skipping upload")

        if config.git_integration:
            _run_optional_stage(
                operation_logger, "vcs_update", publish_release,
                workdir, version, store.info.sections.get("changelog", ""), vcs_prompt,
            )

        system_logger.increment_metric("releases_completed", 1)
        system_logger.log_system_termination(success=True)
        print(f"Release {version} built: {archive_path}")
        return 0

    except ReleaseError as e:
        operation_logger.log_error("release", e)
        system_logger.increment_metric("releases_failed", 1)
        system_logger.log_system_termination(success=False)
        return 1

    finally:
        close_logging()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wp-plugin-release",
        description="Build and publish a WordPress plugin release.",
    )
    parser.add_argument(
        "workdir",
        nargs="?",
        default=None,
        help="Plugin working directory containing update.config (default: current directory)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Console entry point."""
    args = build_parser().parse_args(argv)
    return run_release(args.workdir)


if __name__ == "__main__":
    raise SystemExit(main())
