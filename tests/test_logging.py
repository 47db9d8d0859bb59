"""Unit tests for logging setup and environment helpers in plugin_release/config.py."""

import logging

import pytest

from plugin_release.config import LOGGER_NAME, close_logging, get_env_var, setup_logging
from plugin_release.errors import ConfigurationError


class TestSetupLogging:
    def test_run_log_is_appended(self, tmp_path):
        log_file = tmp_path / "update.log"
        log_file.write_text("previous run\n", encoding="utf-8")

        setup_logging("INFO", log_file=str(log_file))
        logging.getLogger("plugin_release.archive_builder").info("Archive created")
        close_logging()

        content = log_file.read_text(encoding="utf-8")
        assert content.startswith("previous run\n")
        assert "plugin_release.archive_builder - INFO - Archive created" in content

    def test_level_filters_records(self, tmp_path):
        log_file = tmp_path / "update.log"
        setup_logging("WARNING", log_file=str(log_file))
        logger = logging.getLogger("plugin_release.remote_sync")
        logger.info("hidden")
        logger.warning("shown")
        close_logging()

        content = log_file.read_text(encoding="utf-8")
        assert "hidden" not in content
        assert "shown" in content

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        system_logger = setup_logging()
        assert system_logger.logger.level == logging.DEBUG

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path):
        setup_logging("INFO", log_file=str(tmp_path / "update.log"))
        setup_logging("INFO", log_file=str(tmp_path / "update.log"))
        assert len(logging.getLogger(LOGGER_NAME).handlers) == 2

    def test_transport_loggers_quieted(self):
        setup_logging("DEBUG")
        assert logging.getLogger("paramiko").level == logging.WARNING
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_invalid_level(self):
        with pytest.raises(ConfigurationError):
            setup_logging("LOUD")

    def test_invalid_format(self):
        with pytest.raises(ConfigurationError):
            setup_logging("INFO", log_format="xml")


class TestSystemLogger:
    def test_metrics(self):
        system_logger = setup_logging("INFO")
        system_logger.increment_metric("releases_completed")
        system_logger.increment_metric("releases_completed", 2)
        system_logger.set_metric("release_version", "1.2.0")
        assert system_logger.metrics == {"releases_completed": 3, "release_version": "1.2.0"}


class TestGetEnvVar:
    def test_returns_value(self, monkeypatch):
        monkeypatch.setenv("WP_RELEASE_TEST_VAR", "value")
        assert get_env_var("WP_RELEASE_TEST_VAR") == "value"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("WP_RELEASE_TEST_VAR", raising=False)
        assert get_env_var("WP_RELEASE_TEST_VAR", "fallback") == "fallback"
        assert get_env_var("WP_RELEASE_TEST_VAR") == ""

    def test_required_missing(self, monkeypatch):
        monkeypatch.delenv("WP_RELEASE_TEST_VAR", raising=False)
        with pytest.raises(ConfigurationError):
            get_env_var("WP_RELEASE_TEST_VAR", required=True)
