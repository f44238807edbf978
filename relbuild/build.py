"""Build and install selected releases.

For every selected version the orchestrator:
- Skips it when an install already answers with the right version
- Removes any previous install directory for it
- Resets the checkout to the version's tag and drops untracked files
- Applies at most one source correction
- Runs make for the build, install and (optionally) doc install targets
- In self-test mode, checks the fresh install and removes it again

Versions are processed one at a time because they share one checkout.
A failing make or git command ends the whole run.
"""

import enum
import os
import shutil
import subprocess
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from .config import Config, get_config
from .errors import BuildError
from .install_check import install_dir, is_installed
from .patches import PatchContext, apply_patch
from .repos import reset_to_tag


# Verbosity levels (--quiet, default, -v)
QUIET = -1
NORMAL = 0
VERBOSE = 1


def run_cmd(
    cmd: List[str],
    cwd: Optional[Path] = None,
    verbosity: int = NORMAL,
) -> subprocess.CompletedProcess:
    """Run a command and return the result.

    Output is discarded when quiet, captured (and shown on failure) by
    default, and passed straight through when verbose.

    Raises:
        BuildError: if the command cannot be started.
    """
    try:
        if verbosity >= VERBOSE:
            print(f"  Running: {' '.join(cmd)}", flush=True)
            return subprocess.run(cmd, cwd=cwd, text=True)

        if verbosity <= QUIET:
            return subprocess.run(
                cmd,
                cwd=cwd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )

        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)
    except OSError as e:
        # The command could not be started at all
        raise BuildError(cmd, 127, str(e))

    if result.returncode != 0:
        print(f"  FAILED: {result.stderr}", file=sys.stderr)
    return result


@contextmanager
def scrubbed_environment(names: Iterable[str]) -> Iterator[None]:
    """Remove environment variables for the duration of the block.

    The previous values are restored on exit, including when the block
    raises.
    """
    saved: Dict[str, str] = {}
    for name in names:
        if name in os.environ:
            saved[name] = os.environ.pop(name)
    try:
        yield
    finally:
        for name, value in saved.items():
            os.environ[name] = value


class BuildState(enum.Enum):
    PENDING = "pending"
    SKIPPED = "skipped"
    BUILDING = "building"
    INSTALLED = "installed"
    VERIFIED = "verified"
    CLEANED = "cleaned"


@dataclass
class VersionResult:
    """Outcome of processing one version."""
    version: str
    state: BuildState = BuildState.PENDING
    patch: Optional[str] = None
    # Only set in self-test mode
    verified: Optional[bool] = None


@dataclass
class RunReport:
    """Outcome of a whole run."""
    results: List[VersionResult] = field(default_factory=list)

    @property
    def failed_checks(self) -> List[str]:
        return [r.version for r in self.results if r.verified is False]

    @property
    def ok(self) -> bool:
        return not self.failed_checks


class Orchestrator:
    """Drive the per-version build state machine.

    Args:
        source_dir: Checkout of the tracked project.
        destination: Install root; version V goes to destination/V.
        catalog: Version -> tag mapping.
        config: Build settings (default: load from files).
        force: Rebuild versions that are already installed.
        docs: Also run the documentation install target.
        self_test: Verify each install and remove it afterwards.
        verbosity: QUIET, NORMAL or VERBOSE.
    """

    BUILD_TARGET = "all"
    INSTALL_TARGET = "install"
    DOC_TARGET = "install-doc"

    def __init__(
        self,
        source_dir: Path,
        destination: Path,
        catalog: Dict[str, str],
        config: Optional[Config] = None,
        force: bool = False,
        docs: bool = False,
        self_test: bool = False,
        verbosity: int = NORMAL,
    ):
        if config is None:
            config = get_config()
        self.source_dir = Path(source_dir)
        self.destination = Path(destination)
        self.catalog = catalog
        self.config = config
        self.force = force
        self.docs = docs
        self.self_test = self_test
        self.verbosity = verbosity

    def make_command(self, prefix: Path, target: str) -> List[str]:
        cmd = [self.config.make]
        if self.config.make_jobs > 1:
            cmd.append(f"-j{self.config.make_jobs}")
        cmd.extend([f"prefix={prefix}", target])
        return cmd

    def run_make(self, prefix: Path, target: str) -> None:
        cmd = self.make_command(prefix, target)
        result = run_cmd(cmd, cwd=self.source_dir, verbosity=self.verbosity)
        if result.returncode != 0:
            raise BuildError(cmd, result.returncode)

    def targets(self) -> List[str]:
        targets = [self.BUILD_TARGET, self.INSTALL_TARGET]
        if self.docs:
            targets.append(self.DOC_TARGET)
        return targets

    def build(self, result: VersionResult) -> None:
        """Check out, patch, build and install one version."""
        version = result.version
        prefix = install_dir(self.destination, version)
        result.state = BuildState.BUILDING

        if prefix.exists():
            shutil.rmtree(prefix)

        reset_to_tag(self.source_dir, self.catalog[version])

        context = PatchContext(
            version=version,
            source_dir=self.source_dir,
            header_fix_commit=self.config.header_fix_commit,
        )
        rule = apply_patch(context)
        if rule is not None:
            result.patch = rule.name
            if self.verbosity > QUIET:
                print(f"  Applied patch '{rule.name}' ({rule.description})")

        with scrubbed_environment(self.config.scrub_env):
            for target in self.targets():
                self.run_make(prefix, target)

        result.state = BuildState.INSTALLED

    def verify(self, result: VersionResult) -> None:
        result.verified = is_installed(result.version, self.destination)
        result.state = BuildState.VERIFIED

    def clean(self, result: VersionResult) -> None:
        shutil.rmtree(install_dir(self.destination, result.version), ignore_errors=True)
        result.state = BuildState.CLEANED

    def process(self, version: str) -> VersionResult:
        """Take one version from PENDING to its final state."""
        result = VersionResult(version=version)

        if not self.force and is_installed(version, self.destination):
            result.state = BuildState.SKIPPED
            if self.verbosity > QUIET:
                print(f"{version}: already installed, skipping")
            return result

        if self.verbosity > QUIET:
            print(f"{version}: building from {self.catalog[version]}")

        self.build(result)

        if self.self_test:
            try:
                self.verify(result)
            finally:
                self.clean(result)

        return result

    def run(self, versions: Iterable[str]) -> RunReport:
        """Process versions in order, stopping at the first build failure.

        Raises:
            BuildError: if a git or make command fails.
        """
        report = RunReport()
        for number, version in enumerate(versions, start=1):
            result = self.process(version)
            report.results.append(result)
            if not self.self_test:
                continue
            if result.state is BuildState.SKIPPED:
                print(f"ok {number} - {version} # SKIP already installed")
            else:
                status = "ok" if result.verified else "not ok"
                print(f"{status} {number} - {version}")
        return report
