"""Utility functions for version comparison and in-place text editing."""

from collections.abc import Iterable
from enum import Enum

from plugin_release.models import SourceEdit


class VersionPolicy(Enum):
    """How two versions with an equal common prefix are ordered.

    LONGER_WINS treats the value with more components as higher, so
    "1.2.0" > "1.2". PAD_WITH_ZEROS fills missing components with 0, so the
    two compare equal and the first operand is kept.
    """

    LONGER_WINS = "longer_wins"
    PAD_WITH_ZEROS = "pad_with_zeros"


DEFAULT_VERSION_POLICY = VersionPolicy.LONGER_WINS


def parse_version(version: str) -> tuple[int, ...]:
    """Parse a dotted version string into a tuple of integers.

    Every component that is not a plain non-negative integer counts as 0.

    Args:
        version: Version string to parse (e.g., "1.2.3", "1.0", "2.x").

    Returns:
        Tuple of integers, one per dotted component.

    Examples:
        >>> parse_version("1.2.3")
        (1, 2, 3)
        >>> parse_version("1.2beta.3")
        (1, 0, 3)
        >>> parse_version("")
        ()
    """
    if not version or not isinstance(version, str):
        return ()

    parts = []
    for part in version.split("."):
        parts.append(int(part) if part.isascii() and part.isdigit() else 0)
    return tuple(parts)


def compare_versions(
    v1: str, v2: str, policy: VersionPolicy = DEFAULT_VERSION_POLICY
) -> int:
    """Compare two dotted versions.

    Returns:
        -1 if v1 < v2, 1 if v1 > v2, 0 if they are equal under the policy.
    """
    parts1 = parse_version(v1)
    parts2 = parse_version(v2)

    if policy is VersionPolicy.PAD_WITH_ZEROS:
        width = max(len(parts1), len(parts2))
        parts1 = parts1 + (0,) * (width - len(parts1))
        parts2 = parts2 + (0,) * (width - len(parts2))

    for n1, n2 in zip(parts1, parts2):
        if n1 != n2:
            return 1 if n1 > n2 else -1

    if len(parts1) != len(parts2):
        return 1 if len(parts1) > len(parts2) else -1
    return 0


def higher_version(
    v1: str, v2: str, policy: VersionPolicy = DEFAULT_VERSION_POLICY
) -> str:
    """Return the higher of two versions; an empty string means "absent".

    Equal versions return the first operand.
    """
    if not v1:
        return v2 or ""
    if not v2:
        return v1
    return v2 if compare_versions(v1, v2, policy) < 0 else v1


def is_newer(
    candidate: str, current: str, policy: VersionPolicy = DEFAULT_VERSION_POLICY
) -> bool:
    """True if candidate is strictly newer than current and the strings differ."""
    return (
        candidate != current
        and higher_version(current, candidate, policy) == candidate
    )


def apply_edits(text: str, edits: Iterable[SourceEdit]) -> str:
    """Apply independent span replacements to text.

    Edits are applied from the highest start offset down, so the offsets of
    the remaining edits stay valid. Insertions are edits with start == end.

    Raises:
        ValueError: If two edits overlap or a span lies outside the text.
    """
    ordered = sorted(edits, key=lambda e: (e.start, e.end), reverse=True)

    limit = len(text)
    for edit in ordered:
        if edit.start < 0 or edit.start > edit.end or edit.end > limit:
            raise ValueError(
                f"Edit span {edit.start}:{edit.end} is invalid or overlaps another edit"
            )
        text = text[: edit.start] + edit.replacement + text[edit.end :]
        limit = edit.start
    return text
