"""Data models for the plugin release pipeline."""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class DeclarationKind(Enum):
    """Where a version declaration lives in the plugin source."""

    DOC_COMMENT = "doc_comment"
    FIELD = "field"
    CONSTANT = "constant"


@dataclass(frozen=True)
class VersionDeclaration:
    """A single in-source version marker.

    start/end delimit only the version value, not the surrounding statement.
    """

    kind: DeclarationKind
    value: str
    start: int
    end: int
    name: str | None = None


@dataclass(frozen=True)
class SourceEdit:
    """Replace text[start:end] with replacement."""

    start: int
    end: int
    replacement: str


@dataclass(frozen=True)
class IntegrationCall:
    """Spans of the update-checker registration call arguments."""

    start: int
    end: int
    url: str
    url_start: int
    url_end: int
    slug: str
    slug_start: int
    slug_end: int
    comment: str | None = None


@dataclass
class PatchResult:
    """Outcome of patching the main plugin source file."""

    source_path: str
    backup_path: str
    version: str
    declarations: list[VersionDeclaration]
    edits: list[SourceEdit]


@dataclass
class ArchiveResult:
    """A built release archive."""

    path: str
    entries: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RemoteTarget:
    """Remote directory derived from the public download URL."""

    base_dir: str
    directory: str
    filename: str

    def path_for(self, filename: str) -> str:
        """Remote path of a file placed next to the release archive."""
        return f"{self.directory.rstrip('/')}/{filename}"


_STR_FIELDS = (
    "version",
    "last_updated",
    "download_url",
    "details",
    "details_url",
    "upgrade_notice",
    "tested",
    "requires",
    "requires_php",
    "homepage",
    "donate_link",
    "added",
    "slug",
    "name",
    "author",
    "author_homepage",
)
_STR_MAP_FIELDS = ("sections", "banners", "icons", "contributors")
_INT_FIELDS = ("num_ratings", "downloaded", "active_installs")

# Serialized even when empty
ALWAYS_SERIALIZED = ("version", "last_updated", "download_url")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_str_map(value: Any) -> bool:
    return isinstance(value, dict) and all(isinstance(v, str) for v in value.values())


def _check_type(name: str, value: Any) -> bool:
    if value is None:
        return True
    if name in _STR_FIELDS:
        return isinstance(value, str)
    if name in _STR_MAP_FIELDS:
        return _is_str_map(value)
    if name in _INT_FIELDS:
        return _is_int(value)
    if name == "rating":
        return _is_int(value) or isinstance(value, float)
    if name == "ratings":
        return isinstance(value, dict) and all(_is_int(v) for v in value.values())
    if name == "tags":
        return isinstance(value, list) and all(isinstance(v, str) for v in value)
    if name == "screenshots":
        return isinstance(value, list) and all(_is_str_map(v) for v in value)
    return True


@dataclass
class UpdateInfo:
    """Typed view of update_info.json.

    Only the fields listed here are known; everything else in the document
    lives in the open map kept by MetadataStore.
    """

    version: str = ""
    last_updated: str = ""
    download_url: str = ""
    details: str = ""
    details_url: str = ""
    upgrade_notice: str = ""
    tested: str = ""
    requires: str = ""
    requires_php: str = ""
    homepage: str = ""
    sections: dict[str, str] = field(default_factory=dict)
    banners: dict[str, str] = field(default_factory=dict)
    icons: dict[str, str] = field(default_factory=dict)
    screenshots: list[dict[str, str]] = field(default_factory=list)
    contributors: dict[str, str] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    donate_link: str = ""
    ratings: dict[str, int] = field(default_factory=dict)
    rating: float = 0.0
    num_ratings: int = 0
    downloaded: int = 0
    active_installs: int = 0
    added: str = ""
    slug: str = ""
    name: str = ""
    author: str = ""
    author_homepage: str = ""

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UpdateInfo":
        """Create UpdateInfo from a decoded descriptor.

        Raises:
            TypeError: If a known field has the wrong JSON type; the message
                names the field.
        """
        kwargs: dict[str, Any] = {}
        for name in cls.field_names():
            if name not in data:
                continue
            value = data[name]
            if not _check_type(name, value):
                raise TypeError(
                    f"field '{name}' has unexpected type {type(value).__name__}"
                )
            if value is None:
                continue
            if isinstance(value, dict):
                value = dict(value)
            elif isinstance(value, list):
                value = [dict(v) if isinstance(v, dict) else v for v in value]
            kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize known fields, omitting empty optional ones."""
        result: dict[str, Any] = {}
        for name in self.field_names():
            value = getattr(self, name)
            if name not in ALWAYS_SERIALIZED and not value:
                continue
            result[name] = value
        return result
