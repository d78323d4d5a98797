"""
Staleness record storage.

The record is the digest of the last dependency set known to have installed
successfully. Node projects keep it inside the install directory, so it
disappears together with ``node_modules``; Deno projects keep it beside the
manifest.

Reading distinguishes three outcomes:

- ``StorageUnavailable`` raised: the install directory does not exist (Node only)
- ``""``: storage exists but nothing has been recorded yet
- a digest: the recorded value, surrounding whitespace stripped
"""

from pathlib import Path
from typing import Optional

from .cli_config import ComprehensiveConfig, get_config
from .dependency import Ecosystem
from .error_handling import FileAccessError, StorageUnavailable
from .structured_logging import log_record_written


def install_dir(root: Path, config: Optional[ComprehensiveConfig] = None) -> Path:
    config = config or get_config(root)
    return Path(root) / config.store.install_dir


def record_path(
    root: Path, ecosystem: Ecosystem, config: Optional[ComprehensiveConfig] = None
) -> Path:
    """Location of the staleness record for a project root."""
    config = config or get_config(root)
    if ecosystem is Ecosystem.DENO:
        return Path(root) / config.store.deno_record_name
    return install_dir(root, config) / config.store.node_record_name


def _require_install_dir(root: Path, config: ComprehensiveConfig) -> None:
    target = install_dir(root, config)
    try:
        if not target.is_dir():
            raise StorageUnavailable(target)
    except OSError as e:
        raise FileAccessError(target, "stat", e)


def read_staleness(
    root: Path,
    ecosystem: Ecosystem = Ecosystem.NODE,
    config: Optional[ComprehensiveConfig] = None,
) -> str:
    """
    Read the stored digest for a project root.

    Args:
        root: Project root
        ecosystem: Which record to read
        config: Configuration (defaults to the one found for root)

    Returns:
        str: The stored digest, or "" when none has been recorded

    Raises:
        StorageUnavailable: Node project without an install directory
        FileAccessError: Any other I/O failure
    """
    config = config or get_config(root)
    if ecosystem is Ecosystem.NODE:
        _require_install_dir(root, config)

    path = record_path(root, ecosystem, config)
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return ""
    except OSError as e:
        raise FileAccessError(path, "read", e)


def write_staleness(
    root: Path,
    digest: str,
    ecosystem: Ecosystem = Ecosystem.NODE,
    config: Optional[ComprehensiveConfig] = None,
) -> Path:
    """
    Persist ``digest`` followed by a newline, overwriting any previous record.

    For Node projects the install directory must already exist; it is never
    created here, since a record only makes sense after an install.

    Returns:
        Path: The file written

    Raises:
        StorageUnavailable: Node project without an install directory
        FileAccessError: Any other I/O failure
    """
    config = config or get_config(root)
    if ecosystem is Ecosystem.NODE:
        _require_install_dir(root, config)

    path = record_path(root, ecosystem, config)
    try:
        path.write_text(digest + "\n", encoding="utf-8")
    except OSError as e:
        raise FileAccessError(path, "write", e)

    log_record_written(str(root), ecosystem.value, digest)
    return path


def clear_staleness(
    root: Path,
    ecosystem: Ecosystem = Ecosystem.NODE,
    config: Optional[ComprehensiveConfig] = None,
) -> bool:
    """
    Remove the stored digest so the next decision reports no stored hash.

    Returns:
        bool: True if a record was removed
    """
    path = record_path(root, ecosystem, config)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise FileAccessError(path, "remove", e)
    return True
