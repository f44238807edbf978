"""Source corrections for old releases.

Old releases assume build environment details that no longer hold on
current systems. Each correction is a PatchRule keyed to an inclusive
version range; the boundaries were found by building the releases, not
derived from any metadata, so they are kept as literals here.

Rules are checked top to bottom and the first match wins. A version
gets at most one correction.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from .errors import PatchError
from .repos import cherry_pick, legacy_describe_broken
from .versions import in_range


# Commit (or ref) in the checkout that adds the missing system header.
# Overridable with [patches] header_fix_commit in the config file.
HEADER_FIX_COMMIT = "release-builds/missing-header"

VERSION_GEN_FILE = "GIT-VERSION-GEN"
MAKEFILE = "Makefile"
VERSION_STAMP_FILE = "version"

_MAKEFILE_VERSION_LINE = re.compile(r"^GIT_VERSION\s*=")


@dataclass
class PatchContext:
    """What a rule needs to decide on and apply a correction."""
    version: str
    source_dir: Path
    header_fix_commit: str = HEADER_FIX_COMMIT


@dataclass(frozen=True)
class PatchRule:
    """A correction applied to every version in [low, high]."""
    name: str
    description: str
    low: str
    high: str
    apply: Callable[[PatchContext], None]
    # Extra runtime condition, only probed once the range matches
    gate: Optional[Callable[[PatchContext], bool]] = None

    def matches(self, context: PatchContext) -> bool:
        if not in_range(context.version, self.low, self.high):
            return False
        if self.gate is not None and not self.gate(context):
            return False
        return True


def rewrite_lines(path: Path, transform: Callable[[str], str]) -> None:
    """Pass every line of a file through transform and write it back."""
    if not path.exists():
        raise PatchError(f"Cannot patch missing file: {path}")
    with open(path) as f:
        lines = f.readlines()
    with open(path, "w") as f:
        for line in lines:
            f.write(transform(line))


def _describe_missing(context: PatchContext) -> bool:
    return legacy_describe_broken(context.source_dir)


def fix_legacy_describe(context: PatchContext) -> None:
    """Call ``git describe`` instead of the dashed ``git-describe``."""
    rewrite_lines(
        context.source_dir / VERSION_GEN_FILE,
        lambda line: line.replace("git-describe", "git describe"),
    )


def fix_makefile_version(context: PatchContext) -> None:
    """Pin GIT_VERSION in the Makefile to the version being built."""
    def transform(line: str) -> str:
        if _MAKEFILE_VERSION_LINE.match(line):
            return f"GIT_VERSION = {context.version}\n"
        return line

    rewrite_lines(context.source_dir / MAKEFILE, transform)


def fix_missing_header(context: PatchContext) -> None:
    """Cherry-pick the header fix and stamp the exact version.

    The cherry-picked tree would make the version generator report a
    modified version, so the stamp file is written unconditionally.
    """
    cherry_pick(context.source_dir, context.header_fix_commit)
    stamp = context.source_dir / VERSION_STAMP_FILE
    stamp.write_text(f"{context.version}\n")


PATCH_RULES: Sequence[PatchRule] = (
    PatchRule(
        name="legacy-describe",
        description="version generator calls git-describe",
        low="1.1.0",
        high="1.5.6.6",
        apply=fix_legacy_describe,
        gate=_describe_missing,
    ),
    PatchRule(
        name="makefile-version",
        description="Makefile carries the wrong GIT_VERSION",
        low="1.0.9",
        high="1.0.9",
        apply=fix_makefile_version,
    ),
    PatchRule(
        name="missing-header",
        description="sources rely on a system header no longer included by default",
        low="1.0.0",
        high="1.7.0.9",
        apply=fix_missing_header,
    ),
)


def patch_for(
    context: PatchContext,
    rules: Sequence[PatchRule] = PATCH_RULES,
) -> Optional[PatchRule]:
    """Return the first rule matching the context, or None."""
    for rule in rules:
        if rule.matches(context):
            return rule
    return None


def apply_patch(
    context: PatchContext,
    rules: Sequence[PatchRule] = PATCH_RULES,
) -> Optional[PatchRule]:
    """Apply the correction for a version, if there is one.

    Returns:
        The rule that was applied, or None.
    """
    rule = patch_for(context, rules)
    if rule is None:
        return None
    rule.apply(context)
    return rule
