"""Selection of the versions to build.

The selector turns either an explicit list of versions or "all" into the
ordered list of versions a run will process. The stages always run in
the same order; each one works on the output of the previous:

1. Source list (requested versions or the whole catalog), oldest first
2. Alias substitution and de-duplication
3. Release candidate filter
4. Missing / installed filter
5. since/until range filter
6. Limit
7. Validation against the catalog
"""

import sys
from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Optional

from .errors import UnknownVersionsError
from .versions import (
    apply_aliases,
    in_range,
    is_prerelease,
    normalize_version,
    sort_versions,
)


@dataclass
class SelectionCriteria:
    """Filters applied on top of the requested versions."""
    since: Optional[str] = None
    until: Optional[str] = None
    missing: bool = False
    installed: bool = False
    include_rc: bool = True
    # >0 keeps the newest N, <0 keeps the oldest N, 0 keeps everything
    limit: int = 0

    def __post_init__(self):
        if self.since:
            self.since = normalize_version(self.since)
        if self.until:
            self.until = normalize_version(self.until)


def apply_limit(versions: List[str], limit: int) -> List[str]:
    """Keep the last ``limit`` versions, or the first ``-limit`` if negative."""
    if limit > 0:
        return versions[-limit:]
    if limit < 0:
        return versions[:-limit]
    return list(versions)


def select_versions(
    requested: Optional[Iterable[str]],
    catalog: Mapping[str, str],
    aliases: Mapping[str, str],
    criteria: SelectionCriteria,
    is_installed: Optional[Callable[[str], bool]] = None,
) -> List[str]:
    """Run the selection pipeline.

    Args:
        requested: Versions asked for explicitly, or None for the whole catalog.
        catalog: Version -> tag mapping.
        aliases: Version -> canonical version substitutions.
        criteria: Filters to apply.
        is_installed: Predicate used by the missing/installed filters.

    Returns:
        Versions to process, oldest first.

    Raises:
        UnknownVersionsError: if any remaining version is not in the catalog.
    """
    if requested:
        versions = sort_versions(normalize_version(v) for v in requested)
    else:
        versions = sort_versions(catalog.keys())

    versions = apply_aliases(versions, aliases)

    if not criteria.include_rc:
        versions = [v for v in versions if not is_prerelease(v)]

    if criteria.missing or criteria.installed:
        if is_installed is None:
            raise ValueError("missing/installed filters need an is_installed predicate")
        if criteria.missing and criteria.installed:
            print(
                "Warning: both --missing and --installed given; "
                "applying both leaves nothing selected",
                file=sys.stderr,
            )
        if criteria.missing:
            versions = [v for v in versions if not is_installed(v)]
        if criteria.installed:
            versions = [v for v in versions if is_installed(v)]

    versions = [v for v in versions if in_range(v, criteria.since, criteria.until)]

    versions = apply_limit(versions, criteria.limit)

    unknown = [v for v in versions if v not in catalog]
    if unknown:
        raise UnknownVersionsError(unknown)

    return versions
