"""Property-based tests for dotted version comparison."""

from hypothesis import given
from hypothesis import strategies as st

from plugin_release.utils import VersionPolicy, compare_versions, higher_version

version_component = st.integers(min_value=0, max_value=999)
version_parts = st.lists(version_component, min_size=1, max_size=5)
policies = st.sampled_from(list(VersionPolicy))


def version_str(parts: list[int]) -> str:
    return ".".join(str(p) for p in parts)


@given(parts=version_parts, policy=policies)
def test_comparison_is_reflexive(parts, policy):
    """For any version V, V compares equal to itself."""
    v = version_str(parts)
    assert compare_versions(v, v, policy) == 0


@given(a=version_parts, b=version_parts, policy=policies)
def test_comparison_is_antisymmetric(a, b, policy):
    """Swapping the operands flips the sign of the result."""
    v1, v2 = version_str(a), version_str(b)
    assert compare_versions(v1, v2, policy) == -compare_versions(v2, v1, policy)


@given(prefix=version_parts, suffix=st.lists(version_component, min_size=1, max_size=3))
def test_longer_value_wins_on_shared_prefix(prefix, suffix):
    """With an equal common prefix the value with more segments is higher."""
    short = version_str(prefix)
    long = version_str(prefix + suffix)
    assert higher_version(short, long) == long
    assert higher_version(long, short) == long


@given(parts=version_parts, zeros=st.integers(min_value=1, max_value=3))
def test_pad_policy_ignores_trailing_zeros(parts, zeros):
    """Under PAD_WITH_ZEROS, trailing zero segments do not change the value."""
    v = version_str(parts)
    padded = version_str(parts + [0] * zeros)
    assert compare_versions(v, padded, VersionPolicy.PAD_WITH_ZEROS) == 0
    assert higher_version(v, padded, VersionPolicy.PAD_WITH_ZEROS) == v


@given(a=version_parts, b=version_parts, policy=policies)
def test_higher_version_returns_an_operand(a, b, policy):
    v1, v2 = version_str(a), version_str(b)
    winner = higher_version(v1, v2, policy)
    assert winner in (v1, v2)
    assert compare_versions(winner, v1, policy) >= 0
    assert compare_versions(winner, v2, policy) >= 0


@given(
    major=version_component,
    minor=st.integers(min_value=1, max_value=9),
    patch=version_component,
)
def test_minor_9_less_than_minor_10(major, minor, patch):
    """Segments compare numerically, so 1.9.x < 1.90.0."""
    low = version_str([major, minor, patch])
    high = version_str([major, minor * 10, 0])
    assert compare_versions(low, high) == -1


@given(
    parts=version_parts,
    word=st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=5),
)
def test_non_numeric_segment_counts_as_zero(parts, word):
    with_word = version_str(parts) + "." + word
    with_zero = version_str(parts + [0])
    assert compare_versions(with_word, with_zero) == 0
