"""Shared fixtures for the plugin release tests."""

import json
import textwrap
from pathlib import Path

import pytest

from plugin_release.config import (
    ENV_AUTO_CHANGELOG,
    ENV_AUTO_GITHUB_UPDATE,
    ENV_LOG_LEVEL,
    ENV_SKIP_CHANGELOG_INPUT,
    ENV_SKIP_GITHUB_UPDATE,
    ENV_SSH_PASSWORD,
    close_logging,
)
from plugin_release.errors import RemoteIOError
from plugin_release.remote_backends.base import RemoteBackend

PLUGIN_SOURCE = textwrap.dedent("""\
    <?php
    /**
     * Plugin Name: Sample Plugin
     * Version: 1.0.0
     * Author: Example
     */

    require_once __DIR__ . '/vendor/plugin-update-checker/plugin-update-checker.php';
    use YahnisElsts\\PluginUpdateChecker\\v5\\PucFactory;

    $myUpdateChecker = PucFactory::buildUpdateChecker(
        'https://example.com/old/update_info.json',
        __FILE__, // Full path to the main plugin file
        'old-slug'
    );

    class Sample_Plugin {
        private $version = '1.2.0';
    }
    """)

DOWNLOAD_URL = "https://example.com/plugins/sample-plugin/sample-plugin-v1.0.0.zip"

DESCRIPTOR = {
    "version": "1.0.0",
    "last_updated": "2024-01-01 00:00:00",
    "download_url": DOWNLOAD_URL,
    "name": "Sample Plugin",
    "sections": {"description": "<p>Tools & more</p>"},
    "x": {"y": 1},
}


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the caller's environment from steering prompts and secrets."""
    for name in (
        ENV_AUTO_CHANGELOG,
        ENV_AUTO_GITHUB_UPDATE,
        ENV_LOG_LEVEL,
        ENV_SKIP_CHANGELOG_INPUT,
        ENV_SKIP_GITHUB_UPDATE,
        ENV_SSH_PASSWORD,
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    close_logging()


class FakeBackend(RemoteBackend):
    """In-memory backend recording every call."""

    name = "fake"

    def __init__(self, mtimes: dict[str, float] | None = None):
        self.mtimes = dict(mtimes or {})
        self.files: dict[str, bytes] = {}
        self.dirs: list[str] = []
        self.connected = False
        self.closed = False
        self.fail_put = False
        self.fail_stat = False
        self.fail_make_dirs = False

    def connect(self) -> None:
        self.connected = True

    def stat(self, remote_path: str) -> float | None:
        if self.fail_stat:
            raise RemoteIOError("stat failed", path=remote_path)
        return self.mtimes.get(remote_path)

    def put(self, remote_path: str, stream) -> int:
        if self.fail_put:
            raise RemoteIOError("stream failed", path=remote_path, exit_status=1)
        data = stream.read()
        self.files[remote_path] = data
        return len(data)

    def make_dirs(self, remote_dir: str) -> None:
        if self.fail_make_dirs:
            raise RemoteIOError("mkdir failed", path=remote_dir, exit_status=1)
        self.dirs.append(remote_dir)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def descriptor_file(tmp_path) -> Path:
    updates = tmp_path / "Updates"
    updates.mkdir()
    path = updates / "update_info.json"
    path.write_text(json.dumps(DESCRIPTOR, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def plugin_workdir(tmp_path) -> Path:
    """A complete plugin working directory ready for a release run."""
    workdir = tmp_path / "sample-plugin"
    workdir.mkdir()
    (workdir / "sample-plugin.php").write_text(PLUGIN_SOURCE, encoding="utf-8")
    (workdir / "readme.txt").write_text("=== Sample Plugin ===\n", encoding="utf-8")
    (workdir / "includes").mkdir()
    (workdir / "includes" / "helpers.php").write_text("<?php\n", encoding="utf-8")

    updates = workdir / "Updates"
    updates.mkdir()
    (updates / "update_info.json").write_text(json.dumps(DESCRIPTOR, indent=2), encoding="utf-8")

    config = {
        "main_php_file": "sample-plugin.php",
        "ssh_host": "example.com",
        "ssh_port": 22,
        "ssh_user": "deploy",
        "ssh_password": "secret",
        "ssh_dir_base": "/var/www/",
        "skip_pattern": ["*.log"],
        "changelog": False,
        "convert_images": False,
        "git_integration": False,
        "verify_download": False,
    }
    (workdir / "update.config").write_text(json.dumps(config), encoding="utf-8")
    return workdir
