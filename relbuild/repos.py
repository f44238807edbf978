"""Git operations on the tracked project's checkout.

All version control work is delegated to the ``git`` command line; this
module only wraps the handful of invocations a build run needs.
"""

import subprocess
from pathlib import Path
from typing import List, Optional

from .errors import BuildError


def run_git(args: List[str], cwd: Optional[Path] = None, check: bool = True) -> subprocess.CompletedProcess:
    """Run a git command and return the result.

    Raises:
        BuildError: if git cannot be started, or exits non-zero with check.
    """
    cmd = ["git"] + args
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise BuildError(cmd, 127, str(e))
    if check and result.returncode != 0:
        raise BuildError(cmd, result.returncode, result.stderr)
    return result


def ensure_checkout(repo_path: Path) -> Path:
    """Validate that repo_path is a git checkout.

    Args:
        repo_path: Path to the repository.

    Returns:
        The resolved path.
    """
    repo_path = Path(repo_path).expanduser().resolve()
    if not (repo_path / ".git").exists():
        raise ValueError(f"Not a git repository: {repo_path}")
    return repo_path


def list_tags(repo_path: Path, pattern: str = "*") -> List[str]:
    """List tags matching a glob pattern.

    Args:
        repo_path: Path to the repository.
        pattern: Pattern passed to ``git tag -l``.

    Returns:
        Tag names in the order git prints them.
    """
    result = run_git(["tag", "-l", pattern], cwd=repo_path)
    return [t.strip() for t in result.stdout.strip().split('\n') if t.strip()]


def fetch_tags(repo_path: Path) -> None:
    """Fetch new commits and tags from all remotes."""
    print(f"Fetching updates for {repo_path}...")
    run_git(["fetch", "--all", "--tags"], cwd=repo_path)


def reset_to_tag(repo_path: Path, tag: str) -> None:
    """Force the working tree to a tag and drop untracked files.

    Args:
        repo_path: Path to the repository.
        tag: Tag to reset to.
    """
    run_git(["reset", "--hard", tag], cwd=repo_path)
    run_git(["clean", "-fdx"], cwd=repo_path)


def cherry_pick(repo_path: Path, commit: str) -> None:
    """Apply a commit to the working tree without committing it."""
    run_git(["cherry-pick", "--no-commit", commit], cwd=repo_path)


def legacy_describe_broken(repo_path: Path) -> bool:
    """Check whether the dashed ``git-describe`` command is unusable.

    Old releases call ``git-describe`` from their version generator; current
    git installations no longer put dashed commands on PATH.

    Returns:
        True if the command is missing or exits with an error.
    """
    try:
        result = subprocess.run(
            ["git-describe", "--always"],
            cwd=repo_path,
            capture_output=True,
            text=True,
        )
    except OSError:
        return True
    return result.returncode != 0
