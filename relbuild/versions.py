"""Version ordering and the catalog of buildable releases.

Versions follow the tracked project's own release scheme rather than
semantic versioning:

- Tags look like ``v1.7.5``, ``v1.0.0a`` or ``v1.7.5-rc0``.
- A version is a tag without its ``v`` prefix and with dashes turned
  into dots, so ``v1.7.5-rc0`` becomes ``1.7.5.rc0``.
- A ``rcN`` part marks a release candidate, which sorts before the
  final release it precedes: ``1.7.5.rc0 < 1.7.5 < 1.7.5.1``.
"""

import fnmatch
import functools
import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import CatalogError
from .repos import list_tags


# Tags considered releases at all (git tag -l pattern)
RELEASE_TAG_PATTERN = "v[0-9]*"

# Matched against the raw tag, before normalization.
# v0.* predates the first stable release, v1.0rc* are its candidates.
EXCLUDED_TAG_PATTERNS: Tuple[str, ...] = (
    "v0.*",
    "v1.0rc*",
)

# Releases whose tree is identical to an earlier release, mapped to it.
DEFAULT_ALIASES: Dict[str, str] = {
    "1.0.1": "1.0.0a",
    "1.0.2": "1.0.0b",
}

_RC_PART = re.compile(r"^rc(\d*)$")
_NUM_PART = re.compile(r"^(\d*)(.*)$")

# Part ranks: a candidate marker sorts before a missing part,
# which sorts before any numeric part.
_RANK_PRE = 0
_RANK_MISSING = 1
_RANK_NUM = 2

_MISSING_PART = (_RANK_MISSING, 0, "")


def normalize_tag(tag: str) -> str:
    """Turn a raw tag into a version: ``v1.7.5-rc0`` -> ``1.7.5.rc0``."""
    if tag.startswith("v"):
        tag = tag[1:]
    return tag.replace("-", ".")


def normalize_version(text: str) -> str:
    """Normalize user input, which may be given as a tag or a version."""
    return normalize_tag(text.strip())


def _parse_part(part: str) -> Tuple[int, int, str]:
    match = _RC_PART.match(part)
    if match:
        return (_RANK_PRE, int(match.group(1) or 0), "")
    match = _NUM_PART.match(part)
    return (_RANK_NUM, int(match.group(1) or 0), match.group(2))


def _parse(version: str) -> List[Tuple[int, int, str]]:
    return [_parse_part(part) for part in normalize_tag(version).split(".")]


def compare_versions(a: str, b: str) -> int:
    """Three-way comparison of two versions.

    Parts are compared left to right. Numeric parts compare by value and
    then by letter suffix (``1.0.0 < 1.0.0a < 1.0.0b < 1.0.1``). Where one
    version runs out of parts, the missing part sorts after a release
    candidate marker and before any number.

    Returns:
        -1, 0 or 1 as ``a`` is lower than, equal to or higher than ``b``.
    """
    left = _parse(a)
    right = _parse(b)
    for i in range(max(len(left), len(right))):
        lp = left[i] if i < len(left) else _MISSING_PART
        rp = right[i] if i < len(right) else _MISSING_PART
        if lp < rp:
            return -1
        if lp > rp:
            return 1
    return 0


version_key = functools.cmp_to_key(compare_versions)


def sort_versions(versions: Iterable[str], reverse: bool = False) -> List[str]:
    """Sort versions oldest first (newest first with reverse=True)."""
    return sorted(versions, key=version_key, reverse=reverse)


def versions_equal(a: str, b: str) -> bool:
    return compare_versions(a, b) == 0


def is_prerelease(version: str) -> bool:
    """True if the version carries a release candidate marker."""
    return any(rank == _RANK_PRE for rank, _, _ in _parse(version))


def in_range(version: str, low: Optional[str] = None, high: Optional[str] = None) -> bool:
    """Check ``low <= version <= high``; an unset bound is unconstrained."""
    if low is not None and compare_versions(version, low) < 0:
        return False
    if high is not None and compare_versions(version, high) > 0:
        return False
    return True


def is_excluded_tag(tag: str) -> bool:
    return any(fnmatch.fnmatchcase(tag, pattern) for pattern in EXCLUDED_TAG_PATTERNS)


def build_catalog(raw_tags: Iterable[str]) -> Dict[str, str]:
    """Build the version -> tag mapping from raw tag names.

    Tags outside RELEASE_TAG_PATTERN and tags matching EXCLUDED_TAG_PATTERNS
    are dropped before normalization. An empty catalog is valid.

    Raises:
        CatalogError: if two tags normalize to the same version.
    """
    catalog: Dict[str, str] = {}
    for tag in raw_tags:
        tag = tag.strip()
        if not tag or not fnmatch.fnmatchcase(tag, RELEASE_TAG_PATTERN):
            continue
        if is_excluded_tag(tag):
            continue
        version = normalize_tag(tag)
        if version in catalog:
            raise CatalogError(
                f"Tags {catalog[version]} and {tag} both map to version {version}"
            )
        catalog[version] = tag
    return catalog


def load_catalog(source_dir: Path) -> Dict[str, str]:
    """Build the catalog from the tags of a checkout."""
    return build_catalog(list_tags(source_dir, RELEASE_TAG_PATTERN))


def resolve_alias(version: str, aliases: Mapping[str, str]) -> str:
    """Follow the alias table until a canonical version is reached."""
    seen = {version}
    while version in aliases:
        version = aliases[version]
        if version in seen:
            # Cycle in the table; stop at the first repeat
            break
        seen.add(version)
    return version


def apply_aliases(versions: Iterable[str], aliases: Mapping[str, str]) -> List[str]:
    """Replace each version by its canonical alias and drop later duplicates."""
    result = []
    seen = set()
    for version in versions:
        canonical = resolve_alias(version, aliases)
        if canonical in seen:
            continue
        seen.add(canonical)
        result.append(canonical)
    return result
