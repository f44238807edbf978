"""Pytest configuration and fixtures for git-release-builds.

No test talks to a real checkout or runs a real make. Instead:
- git and make invocations go through a FakeToolchain that records them
- "installed" versions are small shell scripts answering ``--version``
- source trees are temporary directories holding the files the
  corrections rewrite

Usage:
    pytest
    pytest test_suites/selection
"""

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from relbuild.config import Config
from relbuild.errors import BuildError
from relbuild.versions import build_catalog


# ============================================================================
# Sample data
# ============================================================================

SAMPLE_TAGS = [
    "v0.99",
    "v0.99.9n",
    "v1.0rc1",
    "v1.0rc6",
    "v1.0.0",
    "v1.0.0a",
    "v1.0.0b",
    "v1.0.1",
    "v1.0.9",
    "v1.5.0-rc0",
    "v1.5.0",
    "v1.5.6.6",
    "v1.7.0.9",
    "v1.7.5-rc0",
    "v1.7.5-rc1",
    "v1.7.5",
    "v1.7.5.1",
    "v1.8.0",
]


@pytest.fixture
def sample_tags() -> List[str]:
    return list(SAMPLE_TAGS)


@pytest.fixture
def catalog(sample_tags) -> Dict[str, str]:
    return build_catalog(sample_tags)


# ============================================================================
# Fake installs and source trees
# ============================================================================

def write_fake_git(prefix: Path, reported_version: str, exit_code: int = 0) -> Path:
    """Create prefix/bin/git printing ``git version <reported_version>``."""
    binary = prefix / "bin" / "git"
    binary.parent.mkdir(parents=True, exist_ok=True)
    binary.write_text(
        "#!/bin/sh\n"
        f"echo 'git version {reported_version}'\n"
        f"exit {exit_code}\n"
    )
    binary.chmod(0o755)
    return binary


@pytest.fixture
def destination(tmp_path) -> Path:
    dest = tmp_path / "installs"
    dest.mkdir()
    return dest


@pytest.fixture
def source_tree(tmp_path) -> Path:
    """A checkout-shaped directory with the files corrections touch."""
    src = tmp_path / "git"
    (src / ".git").mkdir(parents=True)
    (src / "GIT-VERSION-GEN").write_text(
        "#!/bin/sh\n"
        "GVF=GIT-VERSION-FILE\n"
        "VN=$(git-describe --abbrev=4 HEAD 2>/dev/null) &&\n"
        "\tcase \"$VN\" in v[0-9]*) : ;; *) VN=unknown ;; esac\n"
        "echo \"GIT_VERSION = $VN\" >$GVF\n"
    )
    (src / "Makefile").write_text(
        "# The default target of this Makefile is...\n"
        "all:\n"
        "\n"
        "GIT_VERSION = 1.0.GIT\n"
        "\n"
        "prefix = $(HOME)\n"
        "bindir = $(prefix)/bin\n"
    )
    return src


# ============================================================================
# Fake toolchain
# ============================================================================

class FakeToolchain:
    """Records git/make invocations and emulates their effects.

    ``make ... install`` creates a fake installed binary under the prefix,
    so install checks after a build see the version as installed.
    """

    def __init__(self):
        self.commands: List[List[str]] = []
        # make targets or git subcommands that should fail
        self.fail_on: Set[str] = set()
        # version -> what the installed binary reports
        self.reported_versions: Dict[str, str] = {}
        # snapshot of os.environ for every make call
        self.make_environments: List[Dict[str, str]] = []
        self.tags: List[str] = list(SAMPLE_TAGS)

    def run_cmd(self, cmd, cwd=None, verbosity=0) -> subprocess.CompletedProcess:
        self.commands.append(list(cmd))
        self.make_environments.append(dict(os.environ))
        target = cmd[-1]
        if target in self.fail_on:
            return subprocess.CompletedProcess(cmd, 2, "", "make: *** Error 2")
        if target == "install":
            prefix = Path(self._prefix(cmd))
            version = prefix.name
            write_fake_git(prefix, self.reported_versions.get(version, version))
        return subprocess.CompletedProcess(cmd, 0, "", "")

    def run_git(self, args, cwd=None, check=True) -> subprocess.CompletedProcess:
        cmd = ["git"] + list(args)
        self.commands.append(cmd)
        if args[0] in self.fail_on and check:
            raise BuildError(cmd, 128, "fatal: simulated failure")
        stdout = ""
        if args[0] == "tag":
            stdout = "\n".join(self.tags) + "\n"
        return subprocess.CompletedProcess(cmd, 0, stdout, "")

    @staticmethod
    def _prefix(cmd) -> Optional[str]:
        for arg in cmd:
            if arg.startswith("prefix="):
                return arg[len("prefix="):]
        return None

    def make_calls(self) -> List[List[str]]:
        return [c for c in self.commands if c[0] != "git"]

    def git_calls(self) -> List[List[str]]:
        return [c for c in self.commands if c[0] == "git"]


@pytest.fixture
def toolchain(monkeypatch) -> FakeToolchain:
    """Route git and make invocations through a FakeToolchain."""
    fake = FakeToolchain()
    monkeypatch.setattr("relbuild.build.run_cmd", fake.run_cmd)
    monkeypatch.setattr("relbuild.repos.run_git", fake.run_git)
    # The dashed git-describe is gone on current systems
    monkeypatch.setattr("relbuild.patches.legacy_describe_broken", lambda path: True)
    return fake


@pytest.fixture
def build_config() -> Config:
    """Config with fixed make settings, independent of the user's files."""
    return Config(make="make", make_jobs=1, scrub_env=["CFLAGS", "GIT_DIR"])


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep user/project config files and GRB_* variables out of tests."""
    from relbuild import config as config_module

    monkeypatch.setattr(config_module, "USER_CONFIG_PATH", tmp_path / "no-user-config.toml")
    monkeypatch.setattr(config_module, "_find_project_config", lambda: None)
    for name in ("GRB_SOURCE_DIR", "GRB_DEST_DIR", "GRB_MAKE", "GRB_MAKE_JOBS"):
        monkeypatch.delenv(name, raising=False)
    config_module.reset_config()
    yield
    config_module.reset_config()
