"""Configuration management for release builds.

This module handles configuration for build runs, including:
- Location of the tracked project's checkout
- Install destination root
- make invocation settings
- Extra version aliases

Configuration is loaded from (in order of precedence):
1. Environment variables (GRB_* prefix)
2. Project-local .git-versions.toml
3. User config ~/.config/git-release-builds/config.toml
4. Built-in defaults
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Any, List

# Try to import tomllib (Python 3.11+) or tomli as fallback
try:
    import tomllib
except ImportError:
    import tomli as tomllib

from .patches import HEADER_FIX_COMMIT
from .versions import DEFAULT_ALIASES, normalize_version


# Variables that leak into the tracked project's Makefile and change what
# it builds; removed while make runs.
DEFAULT_SCRUB_ENV: List[str] = [
    "CFLAGS",
    "LDFLAGS",
    "CPPFLAGS",
    "MAKEFLAGS",
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_INDEX_FILE",
    "GIT_CONFIG",
    "GIT_EXEC_PATH",
    "GIT_TEMPLATE_DIR",
    "prefix",
]


@dataclass
class Config:
    """Main configuration for build runs."""

    # Checkout of the tracked project
    source_dir: Path = field(default_factory=lambda: Path.home() / "src" / "git")

    # Root directory for installed versions, one subdirectory per version
    dest_dir: Path = field(default_factory=lambda: Path.home() / ".local" / "git-versions")

    # make executable and parallel jobs
    make: str = "make"
    make_jobs: int = 4

    # Environment variables cleared during make
    scrub_env: List[str] = field(default_factory=lambda: list(DEFAULT_SCRUB_ENV))

    # Version -> canonical version
    aliases: Dict[str, str] = field(default_factory=dict)

    # Commit applied by the missing-header correction
    header_fix_commit: str = HEADER_FIX_COMMIT

    def __post_init__(self):
        # Ensure paths are Path objects
        if isinstance(self.source_dir, str):
            self.source_dir = Path(self.source_dir)
        if isinstance(self.dest_dir, str):
            self.dest_dir = Path(self.dest_dir)

        # Expand ~ in paths
        self.source_dir = self.source_dir.expanduser()
        self.dest_dir = self.dest_dir.expanduser()

        # Add default aliases if not overridden
        for version, canonical in DEFAULT_ALIASES.items():
            if version not in self.aliases:
                self.aliases[version] = canonical


# Default configuration file locations
USER_CONFIG_PATH = Path.home() / ".config" / "git-release-builds" / "config.toml"
PROJECT_CONFIG_NAME = ".git-versions.toml"


def _find_project_config() -> Optional[Path]:
    """Find project-local config file by walking up from cwd."""
    current = Path.cwd()
    while current != current.parent:
        config_path = current / PROJECT_CONFIG_NAME
        if config_path.exists():
            return config_path
        current = current.parent
    return None


def _load_toml(path: Path) -> Dict[str, Any]:
    """Load a TOML file and return its contents."""
    if not path.exists():
        return {}
    with open(path, "rb") as f:
        return tomllib.load(f)


def _parse_aliases(aliases_dict: Dict[str, Any]) -> Dict[str, str]:
    """Parse aliases section from config file."""
    return {
        normalize_version(str(version)): normalize_version(str(canonical))
        for version, canonical in aliases_dict.items()
    }


def apply_config_data(config: Config, data: Dict[str, Any]) -> None:
    """Merge one parsed config file into config."""
    # Paths section
    if "paths" in data:
        paths = data["paths"]
        if "source_dir" in paths:
            config.source_dir = Path(paths["source_dir"]).expanduser()
        if "dest_dir" in paths:
            config.dest_dir = Path(paths["dest_dir"]).expanduser()

    # Build section
    if "build" in data:
        build = data["build"]
        if "make" in build:
            config.make = build["make"]
        if "make_jobs" in build:
            config.make_jobs = int(build["make_jobs"])
        if "scrub_env" in build:
            config.scrub_env = list(build["scrub_env"])

    # Patches section
    if "patches" in data:
        patches = data["patches"]
        if "header_fix_commit" in patches:
            config.header_fix_commit = patches["header_fix_commit"]

    # Aliases section
    if "aliases" in data:
        config.aliases.update(_parse_aliases(data["aliases"]))


def load_config() -> Config:
    """Load configuration from files and environment.

    Returns:
        Config object with merged settings.
    """
    config = Config()

    # Load user config
    user_data = _load_toml(USER_CONFIG_PATH)

    # Load project config (overrides user)
    project_path = _find_project_config()
    project_data = _load_toml(project_path) if project_path else {}

    # Merge configs (project overrides user)
    for data in [user_data, project_data]:
        if data:
            apply_config_data(config, data)

    # Environment overrides (highest precedence)
    if env_source := os.environ.get("GRB_SOURCE_DIR"):
        config.source_dir = Path(env_source).expanduser()
    if env_dest := os.environ.get("GRB_DEST_DIR"):
        config.dest_dir = Path(env_dest).expanduser()
    if env_make := os.environ.get("GRB_MAKE"):
        config.make = env_make
    if env_jobs := os.environ.get("GRB_MAKE_JOBS"):
        config.make_jobs = int(env_jobs)

    return config


def get_config() -> Config:
    """Get the current configuration (cached).

    Returns:
        Config object.
    """
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reset_config():
    """Reset the cached configuration."""
    global _cached_config
    _cached_config = None


# Cached config instance
_cached_config: Optional[Config] = None


def generate_sample_config() -> str:
    """Generate a sample configuration file.

    Returns:
        Sample TOML configuration as a string.
    """
    return '''# git-release-builds configuration
# Place this file at ~/.config/git-release-builds/config.toml (user)
# or .git-versions.toml in your project directory (project)

[paths]
# Checkout of the tracked project (must contain its release tags)
source_dir = "~/src/git"

# Each version is installed into <dest_dir>/<version>
dest_dir = "~/.local/git-versions"

[build]
# make executable
make = "make"

# Number of parallel jobs for make
make_jobs = 4

# Environment variables cleared while make runs
# scrub_env = ["CFLAGS", "LDFLAGS", "GIT_DIR"]

[patches]
# Commit or ref that adds the missing system header to old releases
# header_fix_commit = "release-builds/missing-header"

# Extra aliases: version = "canonical version"
# [aliases]
# "1.0.1" = "1.0.0a"
'''
