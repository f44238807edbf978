"""Exceptions raised by the release build tooling."""

from typing import Iterable, List, Optional


class RelbuildError(RuntimeError):
    """Base class for all errors reported to the user."""


class CatalogError(RelbuildError):
    """Two tags normalized to the same version."""


class UnknownVersionsError(RelbuildError):
    """One or more requested versions are not in the catalog."""

    def __init__(self, versions: Iterable[str]):
        self.versions: List[str] = list(versions)
        super().__init__(f"Unknown versions: {' '.join(self.versions)}")


class BuildError(RelbuildError):
    """An external build, install or checkout command failed."""

    def __init__(self, cmd: List[str], returncode: int, stderr: Optional[str] = None):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        message = f"{' '.join(self.cmd)} failed (exit {returncode})"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)


class PatchError(RelbuildError):
    """A source correction could not be applied."""
