"""
Canonical digest of a dependency set.

The digest is the staleness mechanism's identity for "what the manifest asks
for": equal dependency content hashes equally whatever the key order,
whitespace or comments of the source file.
"""

import hashlib
from pathlib import Path
from typing import List, Optional

from .cli_config import ComprehensiveConfig
from .dependency import DependencySpec, Ecosystem
from .manifest import extract_dependencies


def canonical_lines(spec: DependencySpec) -> List[str]:
    """Render ``key@locator`` (Node) or ``key=locator`` (Deno) lines sorted by key."""
    separator = spec.ecosystem.separator
    return [f"{key}{separator}{locator}" for key, locator in spec.sorted_items()]


def compute_digest(spec: DependencySpec) -> str:
    """
    SHA-256 over the canonical lines joined by newlines, no trailing newline.

    Returns:
        str: 64 lowercase hex characters
    """
    content = "\n".join(canonical_lines(spec))
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def compute_project_digest(
    root: Path, ecosystem: Ecosystem, config: Optional[ComprehensiveConfig] = None
) -> str:
    """Extract the project's dependency set and digest it."""
    return compute_digest(extract_dependencies(Path(root), ecosystem, config))
