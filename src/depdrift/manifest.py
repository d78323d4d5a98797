import json
from pathlib import Path
from typing import Any, Dict, Optional

from .cli_config import ComprehensiveConfig, get_config
from .dependency import DependencySpec, Ecosystem
from .error_handling import (
    FileAccessError,
    ManifestNotFound,
    ManifestParseError,
    log_parsing_error,
)
from .jsonc import normalize_jsonc

PACKAGE_JSON = "package.json"
DENO_JSON = "deno.json"
DENO_JSONC = "deno.jsonc"

NODE_DEPENDENCY_SECTIONS = ["dependencies", "devDependencies"]


def _safe_read_manifest(path: Path, config: ComprehensiveConfig) -> str:
    """
    Read a manifest with a size limit, decoding it as UTF-8.

    Raises:
        ManifestParseError: If the file is too large or not valid UTF-8
        FileAccessError: For any other read failure
    """
    max_size = config.security.max_manifest_size_bytes
    try:
        size = path.stat().st_size
        if size > max_size:
            raise ManifestParseError(path, f"file too large: {size} bytes (max: {max_size})")
        data = path.read_bytes()
    except OSError as e:
        raise FileAccessError(path, "read", e)

    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ManifestParseError(path, f"file contains invalid UTF-8: {e}")


def _load_json_object(path: Path, text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestParseError(path, f"invalid JSON: {e}")
    except RecursionError:
        raise ManifestParseError(path, "JSON nested too deeply")
    except ValueError as e:
        # Valid JSON the decoder refuses, e.g. integers beyond the digit limit
        raise ManifestParseError(path, f"unsupported JSON value: {e}")

    if not isinstance(data, dict):
        raise ManifestParseError(
            path, f"manifest must contain a JSON object, got {type(data).__name__}"
        )
    return data


def _read_string_map(data: Dict[str, Any], section: str, path: Path) -> Dict[str, str]:
    """
    Read a ``name -> string`` section, skipping entries that are not strings.

    A missing or non-object section yields an empty map.
    """
    raw = data.get(section)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        log_parsing_error(
            f"Ignoring {section}: expected an object",
            "manifest",
            "_read_string_map",
            file_path=path,
            section=section,
            section_type=type(raw).__name__,
        )
        return {}

    entries: Dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(value, str):
            log_parsing_error(
                f"Ignoring non-string locator in {section}: {str(key)[:50]}",
                "manifest",
                "_read_string_map",
                file_path=path,
                section=section,
                value_type=type(value).__name__,
            )
            continue
        entries[key] = value
    return entries


def extract_node_dependencies(
    root: Path, config: Optional[ComprehensiveConfig] = None
) -> DependencySpec:
    """
    Extract the merged production and development dependencies of a Node project.

    Reads ``dependencies`` then ``devDependencies`` from ``root/package.json``;
    on a key present in both, the devDependencies entry wins.

    Args:
        root: Project root containing package.json
        config: Configuration (defaults to the one found for root)

    Returns:
        DependencySpec: name -> version range

    Raises:
        ManifestNotFound: If package.json does not exist
        ManifestParseError: If package.json is not a valid JSON object
    """
    config = config or get_config(root)
    path = Path(root) / PACKAGE_JSON
    if not path.is_file():
        raise ManifestNotFound(Path(root), [PACKAGE_JSON])

    data = _load_json_object(path, _safe_read_manifest(path, config))

    merged: Dict[str, str] = {}
    for section in NODE_DEPENDENCY_SECTIONS:
        merged.update(_read_string_map(data, section, path))

    return DependencySpec(ecosystem=Ecosystem.NODE, entries=merged, source_file=str(path))


def deno_config_path(root: Path) -> Path:
    """
    Return the Deno manifest for a root, preferring deno.json over deno.jsonc.

    The two files are never merged: when both exist only deno.json is used.

    Raises:
        ManifestNotFound: If neither file exists
    """
    root = Path(root)
    for name in (DENO_JSON, DENO_JSONC):
        candidate = root / name
        if candidate.is_file():
            return candidate
    raise ManifestNotFound(root, [DENO_JSON, DENO_JSONC])


def extract_deno_imports(
    root: Path, config: Optional[ComprehensiveConfig] = None
) -> DependencySpec:
    """
    Extract the ``imports`` map of a Deno project.

    A ``.jsonc`` manifest is normalized before parsing; a strict ``.json`` one
    is parsed as-is.

    Returns:
        DependencySpec: alias -> import specifier

    Raises:
        ManifestNotFound: If neither deno.json nor deno.jsonc exists
        ManifestParseError: If the chosen file is not a valid JSON object
    """
    config = config or get_config(root)
    path = deno_config_path(root)

    text = _safe_read_manifest(path, config)
    if path.suffix == ".jsonc":
        text = normalize_jsonc(text)

    data = _load_json_object(path, text)
    imports = _read_string_map(data, "imports", path)

    return DependencySpec(ecosystem=Ecosystem.DENO, entries=imports, source_file=str(path))


def extract_dependencies(
    root: Path, ecosystem: Ecosystem, config: Optional[ComprehensiveConfig] = None
) -> DependencySpec:
    """Extract the dependency set for the given ecosystem."""
    if ecosystem is Ecosystem.DENO:
        return extract_deno_imports(root, config)
    return extract_node_dependencies(root, config)


def detect_ecosystem(root: Path) -> Ecosystem:
    """
    Guess the ecosystem of a project root.

    Deno when a deno manifest exists and package.json does not; Node otherwise.
    """
    root = Path(root)
    if (root / PACKAGE_JSON).is_file():
        return Ecosystem.NODE
    if (root / DENO_JSON).is_file() or (root / DENO_JSONC).is_file():
        return Ecosystem.DENO
    return Ecosystem.NODE
