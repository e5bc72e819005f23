"""
Ordering of the free-form version strings reported by pNodes.

Telemetry is untrusted, so nothing here raises on odd input:

- a leading dotted numeric core is compared segment by segment, missing
  trailing segments count as 0 ("1.2" == "1.2.0")
- once the numeric core ties, the remaining suffix decides: a hyphenated
  pre-release ("1.2.0-rc1") ranks below the bare release, anything else is
  compared lexicographically with the empty suffix lowest
- "unknown" (or an empty value) is below every real version
- strings without a numeric core are compared as plain strings

Usage:
    from pnode_analytics.core.versions import compare_versions, latest_version

    compare_versions("2.0.0", "1.9.9")  # 1
    latest_version(["0.7.1", "0.8.0", "unknown"])  # "0.8.0"
"""

import re
from functools import cmp_to_key
from typing import Iterable, Optional, Tuple

UNKNOWN_VERSION = "unknown"

_VERSION_PATTERN = re.compile(r"^[vV]?(\d+(?:\.\d+)*)(.*)$")


def normalize_version(raw: Optional[str]) -> str:
    """Map absent, blank or "unknown"-like values onto the sentinel."""
    if raw is None:
        return UNKNOWN_VERSION
    version = str(raw).strip()
    if not version or version.lower() == UNKNOWN_VERSION:
        return UNKNOWN_VERSION
    return version


def is_unknown(version: Optional[str]) -> bool:
    return normalize_version(version) == UNKNOWN_VERSION


def _sign(a, b) -> int:
    return (a > b) - (a < b)


def _segment_key(digits: str) -> Tuple[int, str]:
    # Orders digit strings numerically without int(), which caps string length
    significant = digits.lstrip("0")
    return len(significant), significant


_ZERO_SEGMENT = _segment_key("0")


def _parse(version: str) -> Optional[Tuple[Tuple[Tuple[int, str], ...], str]]:
    match = _VERSION_PATTERN.match(version)
    if match is None:
        return None
    segments = tuple(_segment_key(part) for part in match.group(1).split("."))
    return segments, match.group(2)


def is_parseable(version: Optional[str]) -> bool:
    """True for known versions with a leading dotted numeric core."""
    version = normalize_version(version)
    return version != UNKNOWN_VERSION and _parse(version) is not None


def _compare_suffix(a: str, b: str) -> int:
    if a == b:
        return 0
    # Bare release vs pre-release
    if not a:
        return 1 if b.startswith("-") else -1
    if not b:
        return -1 if a.startswith("-") else 1
    return _sign(a, b)


def compare_versions(a: Optional[str], b: Optional[str]) -> int:
    """
    Compare two version strings.

    Returns:
        -1 if a < b, 0 if they are equivalent, 1 if a > b
    """
    a = normalize_version(a)
    b = normalize_version(b)

    a_unknown = a == UNKNOWN_VERSION
    b_unknown = b == UNKNOWN_VERSION
    if a_unknown or b_unknown:
        return _sign(not a_unknown, not b_unknown)

    parsed_a = _parse(a)
    parsed_b = _parse(b)
    if parsed_a is None or parsed_b is None:
        return _sign(a, b)

    numbers_a, suffix_a = parsed_a
    numbers_b, suffix_b = parsed_b
    width = max(len(numbers_a), len(numbers_b))
    numbers_a += (_ZERO_SEGMENT,) * (width - len(numbers_a))
    numbers_b += (_ZERO_SEGMENT,) * (width - len(numbers_b))

    result = _sign(numbers_a, numbers_b)
    if result:
        return result
    return _compare_suffix(suffix_a, suffix_b)


def is_at_least(a: Optional[str], b: Optional[str]) -> bool:
    """True when version a is the same as or newer than version b."""
    return compare_versions(a, b) >= 0


def latest_version(versions: Iterable[Optional[str]]) -> str:
    """Highest known version in ``versions``, or "unknown" if none is usable."""
    known = [v for v in (normalize_version(v) for v in versions) if v != UNKNOWN_VERSION]
    if not known:
        return UNKNOWN_VERSION
    return max(known, key=cmp_to_key(compare_versions))
