"""Configuration management for the plugin release tool.

Settings live in ``update.config`` inside the plugin working directory. The
file is JSON; YAML is accepted as well. Fields are described by an explicit
schema instead of being discovered from the settings class at runtime.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from plugin_release.config import ENV_SSH_PASSWORD
from plugin_release.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigField:
    """Schema entry for one setting.

    Attributes:
        name: Key in the config file and attribute on ReleaseConfig
        kind: One of "str", "int", "float", "bool", "list[str]"
        default: Value used when the key is absent
        secret: Whether the value must never be logged or shown
        env: Environment variable that overrides the file value
        required: Whether a non-empty value must be present
    """

    name: str
    kind: str
    default: Any = None
    secret: bool = False
    env: str | None = None
    required: bool = False


CONFIG_SCHEMA: tuple[ConfigField, ...] = (
    ConfigField("version", "int", 0),
    ConfigField("main_php_file", "str", "", required=True),
    ConfigField("skip_pattern", "list[str]", ()),
    ConfigField("remote_backend", "str", "ssh"),
    ConfigField("ssh_host", "str", ""),
    ConfigField("ssh_port", "str", "22"),
    ConfigField("ssh_dir_base", "str", ""),
    ConfigField("ssh_user", "str", ""),
    ConfigField("ssh_key_file", "str", ""),
    ConfigField("ssh_password", "str", "", secret=True, env=ENV_SSH_PASSWORD),
    ConfigField("ssh_timeout", "float", 30.0),
    ConfigField("ssh_strict_host_key", "bool", False),
    ConfigField("s3_bucket", "str", ""),
    ConfigField("s3_prefix", "str", ""),
    ConfigField("aws_region", "str", "us-east-1"),
    ConfigField("verify_download", "bool", True),
    ConfigField("changelog", "bool", True),
    ConfigField("convert_images", "bool", True),
    ConfigField("git_integration", "bool", True),
    ConfigField("log_level", "str", "INFO"),
    ConfigField("log_format", "str", "text"),
)

REMOTE_BACKENDS = ("ssh", "s3")

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


def _coerce(spec: ConfigField, value: Any) -> Any:
    """Convert a raw value to the field's kind or raise ValueError."""
    if spec.kind == "str":
        if isinstance(value, bool):
            raise ValueError("expected a string")
        if isinstance(value, int | float):
            # e.g. "ssh_port": 22
            return str(value)
        if not isinstance(value, str):
            raise ValueError("expected a string")
        return value
    if spec.kind == "int":
        if isinstance(value, bool):
            raise ValueError("expected an integer")
        return int(value)
    if spec.kind == "float":
        if isinstance(value, bool):
            raise ValueError("expected a number")
        return float(value)
    if spec.kind == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
            return value.strip().lower() in _TRUE_STRINGS
        raise ValueError("expected a boolean")
    if spec.kind == "list[str]":
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError("expected a list of strings")
        return list(value)
    raise ValueError(f"unsupported kind {spec.kind}")


def _default(spec: ConfigField) -> Any:
    if spec.kind == "list[str]":
        return list(spec.default or ())
    return spec.default


@dataclass
class ReleaseConfig:
    """Populated settings for one release run."""

    main_php_file: str
    version: int = 0
    skip_pattern: list[str] = field(default_factory=list)
    remote_backend: str = "ssh"
    ssh_host: str = ""
    ssh_port: str = "22"
    ssh_dir_base: str = ""
    ssh_user: str = ""
    ssh_key_file: str = ""
    ssh_password: str = field(default="", repr=False)
    ssh_timeout: float = 30.0
    ssh_strict_host_key: bool = False
    s3_bucket: str = ""
    s3_prefix: str = ""
    aws_region: str = "us-east-1"
    verify_download: bool = True
    changelog: bool = True
    convert_images: bool = True
    git_integration: bool = True
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def sync_enabled(self) -> bool:
        """Whether a remote target is configured."""
        if self.remote_backend == "s3":
            return bool(self.s3_bucket)
        return bool(self.ssh_host and self.ssh_user)

    @property
    def remote_base_dir(self) -> str:
        """Base directory (or key prefix) that URL paths are appended to."""
        if self.remote_backend == "s3":
            return self.s3_prefix
        return self.ssh_dir_base

    @classmethod
    def from_mapping(cls, data: dict[str, Any], source: str = "<mapping>") -> "ReleaseConfig":
        """Build a ReleaseConfig from raw settings.

        Args:
            data: Decoded config file contents
            source: Name used in error messages

        Raises:
            ConfigurationError: If a value has the wrong type or a required
                field is missing
        """
        known = {spec.name for spec in CONFIG_SCHEMA}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.debug(f"Ignoring unknown config keys in {source}: {unknown}")

        values: dict[str, Any] = {}
        for spec in CONFIG_SCHEMA:
            raw = data.get(spec.name)
            if spec.env and os.getenv(spec.env):
                raw = os.getenv(spec.env)
            if raw is None:
                values[spec.name] = _default(spec)
                continue
            try:
                values[spec.name] = _coerce(spec, raw)
            except (TypeError, ValueError) as e:
                shown = "<secret>" if spec.secret else repr(raw)
                raise ConfigurationError(
                    f"Invalid value {shown} for '{spec.name}' in {source}: {e}",
                    path=source,
                ) from e

        missing = [
            spec.name for spec in CONFIG_SCHEMA if spec.required and not values[spec.name]
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required config fields in {source}: {missing}", path=source
            )

        if values["remote_backend"] not in REMOTE_BACKENDS:
            raise ConfigurationError(
                f"Unsupported remote_backend {values['remote_backend']!r} in {source}; "
                f"expected one of {list(REMOTE_BACKENDS)}",
                path=source,
            )

        return cls(**values)

    @classmethod
    def from_file(cls, path: Path | str) -> "ReleaseConfig":
        """Load configuration from a JSON (or YAML) file.

        Raises:
            ConfigurationError: If the file is missing, unreadable, or invalid
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ConfigurationError(f"Config file not found: {path}", path=str(path)) from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file {path}: {e}", path=str(path)) from e

        try:
            data = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError:
            try:
                data = yaml.safe_load(text) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Config file {path} is neither valid JSON nor YAML: {e}",
                    path=str(path),
                ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {path} must contain a mapping at the top level",
                path=str(path),
            )

        config = cls.from_mapping(data, source=str(path))
        logger.debug(f"Loaded configuration from {path}: {config}")
        return config
