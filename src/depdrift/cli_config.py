"""
Configuration management for depdrift.

Provides configurable settings for the drift checks, the staleness store,
the command runner, manifest limits and logging.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

console = Console(stderr=True)


@dataclass
class DriftConfig:
    """Bounds and markers used by the drift decision engine."""

    max_package_checks: int = 10
    max_import_probes: int = 5
    zero_install_markers: List[str] = field(
        default_factory=lambda: [".pnp.cjs", ".pnp.data.json"]
    )


@dataclass
class StoreConfig:
    """Staleness record locations."""

    install_dir: str = "node_modules"
    node_record_name: str = ".depdrift-hash"
    deno_record_name: str = ".depdrift-deno-hash"


@dataclass
class RunnerConfig:
    """Subprocess runner settings."""

    timeout_seconds: int = 120
    default_package_manager: str = "npm"
    deno_executable: str = "deno"
    use_volta: bool = True


@dataclass
class SecurityConfig:
    """Manifest reading limits."""

    max_manifest_size_mb: int = 10

    @property
    def max_manifest_size_bytes(self) -> int:
        """Convert MB to bytes for internal use."""
        return self.max_manifest_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    enable_json: bool = True


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    drift: DriftConfig = field(default_factory=DriftConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Global configuration instance, installed explicitly with set_config
_global_config: Optional[ComprehensiveConfig] = None

# Configurations loaded on demand, keyed by resolved project root
_root_configs: Dict[Path, ComprehensiveConfig] = {}

CONFIG_FILE_NAMES = [".depdrift.json", ".depdrift.yaml", ".depdrift.yml"]

VALID_PACKAGE_MANAGERS = ["npm", "yarn", "pnpm", "bun"]


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if not isinstance(config.drift.max_package_checks, int) or config.drift.max_package_checks < 0:
        errors.append("drift.max_package_checks must be a non-negative integer")
    if not isinstance(config.drift.max_import_probes, int) or config.drift.max_import_probes < 0:
        errors.append("drift.max_import_probes must be a non-negative integer")

    for name in ("install_dir", "node_record_name", "deno_record_name"):
        value = getattr(config.store, name)
        if not isinstance(value, str) or not value or "/" in value or "\\" in value:
            errors.append(f"store.{name} must be a plain file name")

    if not isinstance(config.runner.timeout_seconds, int) or config.runner.timeout_seconds <= 0:
        errors.append("runner.timeout_seconds must be positive")
    if not isinstance(config.runner.use_volta, bool):
        errors.append("runner.use_volta must be true or false")
    if config.runner.default_package_manager not in VALID_PACKAGE_MANAGERS:
        errors.append(
            f"runner.default_package_manager must be one of {', '.join(VALID_PACKAGE_MANAGERS)}"
        )

    if not isinstance(config.security.max_manifest_size_mb, int) or config.security.max_manifest_size_mb <= 0:
        errors.append("security.max_manifest_size_mb must be positive")

    if not isinstance(config.logging.log_level, str) or config.logging.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        errors.append("logging.log_level must be a standard logging level name")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON or YAML file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                data = yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                return None
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"⚠️  Error loading config from {config_path}: {e}", style="yellow")
        return None

    if not isinstance(data, dict):
        console.print(f"⚠️  Config file {config_path} must contain a mapping", style="yellow")
        return None
    return data


def find_config_file(root: Optional[Path] = None) -> Optional[Path]:
    """Find config file in the project root, then in the user's config directories."""
    base = Path(root) if root is not None else Path.cwd()
    locations = [base / name for name in CONFIG_FILE_NAMES]
    locations += [
        Path.home() / ".config" / "depdrift" / "config.json",
        Path.home() / ".config" / "depdrift" / "config.yaml",
    ]

    for location in locations:
        if location.is_file():
            return location

    return None


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Apply DEPDRIFT_* environment variable overrides."""

    def get_env_int(key: str) -> Optional[int]:
        if key not in os.environ:
            return None
        try:
            return int(os.environ[key])
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {key}, using default", style="yellow")
            return None

    if (max_checks := get_env_int("DEPDRIFT_MAX_PACKAGE_CHECKS")) is not None:
        config.drift.max_package_checks = max_checks
    if (max_probes := get_env_int("DEPDRIFT_MAX_IMPORT_PROBES")) is not None:
        config.drift.max_import_probes = max_probes
    if (timeout := get_env_int("DEPDRIFT_TIMEOUT")) is not None:
        config.runner.timeout_seconds = timeout
    if (max_size := get_env_int("DEPDRIFT_MAX_MANIFEST_SIZE_MB")) is not None:
        config.security.max_manifest_size_mb = max_size

    if package_manager := os.environ.get("DEPDRIFT_PACKAGE_MANAGER"):
        config.runner.default_package_manager = package_manager.lower()
    if deno := os.environ.get("DEPDRIFT_DENO"):
        config.runner.deno_executable = deno
    if os.environ.get("DEPDRIFT_NO_VOLTA", "").lower() in ("1", "true", "yes"):
        config.runner.use_volta = False
    if log_level := os.environ.get("DEPDRIFT_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(config: Any, section_data: Dict[str, Any], section_name: str) -> None:
    """Apply configuration from dictionary to config section."""
    if not isinstance(section_data, dict):
        console.print(f"⚠️  Config section {section_name} must be a mapping", style="yellow")
        return

    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(f"⚠️  Unknown config key in {section_name}: {key}", style="yellow")


def load_config(root: Optional[Path] = None) -> ComprehensiveConfig:
    """Load configuration from defaults, config file and environment."""
    config = ComprehensiveConfig()

    config_file = find_config_file(root)
    if config_file:
        file_config = load_config_file(config_file) or {}
        for section_name in ("drift", "store", "runner", "security", "logging"):
            if section_name in file_config:
                apply_config_section(
                    getattr(config, section_name), file_config[section_name], section_name
                )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        _restore_invalid_defaults(config, validation_errors)

    return config


def _restore_invalid_defaults(config: ComprehensiveConfig, errors: List[str]) -> None:
    defaults = ComprehensiveConfig()
    for error in errors:
        dotted = error.split(" ", 1)[0]
        section_name, key = dotted.split(".", 1)
        setattr(
            getattr(config, section_name),
            key,
            getattr(getattr(defaults, section_name), key),
        )


def get_config(root: Optional[Path] = None) -> ComprehensiveConfig:
    """
    Get the configuration in effect for a project root.

    A configuration installed with set_config wins. Otherwise the config file
    is looked up from ``root`` (the current directory when None) and cached
    per root.
    """
    if _global_config is not None:
        return _global_config

    key = (Path(root) if root is not None else Path.cwd()).resolve()
    if key not in _root_configs:
        _root_configs[key] = load_config(key)
    return _root_configs[key]


def set_config(config: ComprehensiveConfig) -> None:
    """Install an explicitly loaded configuration as the global one."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None
    _root_configs.clear()


def create_sample_config() -> str:
    """Generate a sample configuration file with every default spelled out."""
    return json.dumps(ComprehensiveConfig().to_dict(), indent=2)
