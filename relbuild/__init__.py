"""Build and install tagged releases of a tracked project.

This package provides utilities for:
- Ordering the project's release versions and building the tag catalog
- Selecting which versions to build
- Applying source corrections to old releases
- Checking whether a version is already installed
- Building and installing versions with make
- Configuration management for builds
"""

from .build import Orchestrator, RunReport, BuildState, scrubbed_environment
from .config import get_config, load_config, Config
from .errors import (
    RelbuildError,
    CatalogError,
    UnknownVersionsError,
    BuildError,
    PatchError,
)
from .install_check import is_installed
from .patches import PATCH_RULES, PatchContext, PatchRule, patch_for, apply_patch
from .selector import SelectionCriteria, select_versions
from .versions import (
    DEFAULT_ALIASES,
    build_catalog,
    load_catalog,
    compare_versions,
    sort_versions,
    is_prerelease,
    normalize_tag,
)

__all__ = [
    # Build functions
    'Orchestrator',
    'RunReport',
    'BuildState',
    'scrubbed_environment',
    # Config functions
    'get_config',
    'load_config',
    'Config',
    # Errors
    'RelbuildError',
    'CatalogError',
    'UnknownVersionsError',
    'BuildError',
    'PatchError',
    # Install check
    'is_installed',
    # Patches
    'PATCH_RULES',
    'PatchContext',
    'PatchRule',
    'patch_for',
    'apply_patch',
    # Selection
    'SelectionCriteria',
    'select_versions',
    # Versions
    'DEFAULT_ALIASES',
    'build_catalog',
    'load_catalog',
    'compare_versions',
    'sort_versions',
    'is_prerelease',
    'normalize_tag',
]
