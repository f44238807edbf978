"""Check whether a release is already installed under a destination."""

import re
import subprocess
from pathlib import Path

from .versions import normalize_version, versions_equal


_VERSION_OUTPUT = re.compile(r"^git version (\S+)")

PROBE_TIMEOUT = 10


def install_dir(destination: Path, version: str) -> Path:
    """Directory a version is installed into."""
    return Path(destination) / version


def installed_binary(destination: Path, version: str) -> Path:
    return install_dir(destination, version) / "bin" / "git"


def is_installed(version: str, destination: Path) -> bool:
    """Check that the installed binary runs and reports the right version.

    Any failure while probing counts as not installed.

    Args:
        version: Expected version.
        destination: Install root.

    Returns:
        True if the binary exists and reports ``version``.
    """
    binary = installed_binary(destination, version)
    if not binary.is_file():
        return False

    try:
        result = subprocess.run(
            [str(binary), "--version"],
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT,
        )
    except (subprocess.TimeoutExpired, OSError):
        return False

    if result.returncode != 0:
        return False

    match = _VERSION_OUTPUT.match(result.stdout.strip())
    if not match:
        return False

    return versions_equal(normalize_version(match.group(1)), version)
