"""depdrift: decide whether a JavaScript project's dependencies need reinstalling."""

from .dependency import DependencySpec, Ecosystem
from .digest import compute_digest, compute_project_digest
from .drift import Decision, decide
from .error_handling import (
    DepDriftError,
    FileAccessError,
    InstallFailedError,
    ManifestNotFound,
    ManifestParseError,
    StorageUnavailable,
)
from .jsonc import normalize_jsonc
from .manifest import extract_dependencies
from .preflight import PreflightResult, run_preflight
from .store import read_staleness, write_staleness

__version__ = "1.0.0"

__all__ = [
    "Decision",
    "DepDriftError",
    "DependencySpec",
    "Ecosystem",
    "FileAccessError",
    "InstallFailedError",
    "ManifestNotFound",
    "ManifestParseError",
    "PreflightResult",
    "StorageUnavailable",
    "compute_digest",
    "compute_project_digest",
    "decide",
    "extract_dependencies",
    "normalize_jsonc",
    "read_staleness",
    "run_preflight",
    "write_staleness",
]
