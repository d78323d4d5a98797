"""
Drift decision engine.

Decides whether a project's installed dependencies are out of date relative
to its manifest by collecting independent drift signals:

- Node: missing install directory, missing individual packages (first N keys),
  stored digest absent or different.
- Deno: unresolvable imports (first M locators, one ``deno info`` each),
  stored digest absent or different.

The result is ``should_install = any(signals)`` plus a reason trail. The N/M
bounds cap the cost on huge manifests: drift confined to keys beyond the
bound is only caught through the digest.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .cli_config import ComprehensiveConfig, get_config
from .dependency import DependencySpec, Ecosystem
from .digest import compute_digest
from .error_handling import StorageUnavailable
from .manifest import extract_dependencies
from .runner import CommandRunner, SubprocessRunner, is_import_resolvable
from .store import install_dir, read_staleness
from .structured_logging import (
    log_drift_decision,
    log_hash_comparison,
    log_import_probe_failed,
    short_hash,
)


@dataclass(frozen=True)
class MissingInstallTarget:
    path: str


@dataclass(frozen=True)
class MissingDependency:
    key: str


@dataclass(frozen=True)
class HashMismatch:
    stored: str
    current: str


@dataclass(frozen=True)
class NoStoredHash:
    storage_available: bool = True


@dataclass(frozen=True)
class UnresolvableImport:
    locator: str


DriftSignal = Union[
    MissingInstallTarget, MissingDependency, HashMismatch, NoStoredHash, UnresolvableImport
]


@dataclass(frozen=True)
class Decision:
    """Verdict of one drift check."""

    root: str
    ecosystem: Ecosystem
    current_digest: str
    stored_digest: Optional[str] = None  # None when storage was unavailable
    signals: Tuple[DriftSignal, ...] = ()
    zero_install: bool = False
    packages_checked: int = 0
    imports_probed: int = 0

    @property
    def should_install(self) -> bool:
        return bool(self.signals)

    @property
    def reasons(self) -> List[str]:
        """Ordered, de-duplicated reasons, one per signal kind."""
        reasons: List[str] = []
        for signal in self.signals:
            reason = self._reason_for(signal)
            if reason not in reasons:
                reasons.append(reason)
        return reasons

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)

    def signals_of(self, kind: type) -> List[DriftSignal]:
        return [signal for signal in self.signals if isinstance(signal, kind)]

    def _reason_for(self, signal: DriftSignal) -> str:
        if isinstance(signal, MissingInstallTarget):
            return f"missing {Path(signal.path).name}"
        if isinstance(signal, MissingDependency):
            return f"{len(self.signals_of(MissingDependency))} missing packages"
        if isinstance(signal, UnresolvableImport):
            return f"{len(self.signals_of(UnresolvableImport))} unresolvable imports"
        if isinstance(signal, NoStoredHash):
            return "no stored hash"
        if self.ecosystem is Ecosystem.DENO:
            return "imports changed"
        return "dependencies changed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "ecosystem": self.ecosystem.value,
            "should_install": self.should_install,
            "reasons": self.reasons,
            "current_digest": self.current_digest,
            "stored_digest": self.stored_digest,
            "zero_install": self.zero_install,
            "packages_checked": self.packages_checked,
            "imports_probed": self.imports_probed,
            "missing_packages": [s.key for s in self.signals_of(MissingDependency)],
            "unresolvable_imports": [s.locator for s in self.signals_of(UnresolvableImport)],
        }


def is_zero_install(
    root: Path,
    config: Optional[ComprehensiveConfig] = None,
    package_manager: Optional[str] = None,
) -> bool:
    """
    True when a Plug'n'Play marker says no install directory is expected.

    PnP is a yarn feature: with any other known package manager the markers
    are ignored. With no package manager given, the markers alone decide.
    """
    if package_manager is not None and package_manager != "yarn":
        return False
    config = config or get_config(root)
    return any((Path(root) / marker).exists() for marker in config.drift.zero_install_markers)


def package_path(install_root: Path, key: str) -> Path:
    """``@scope/name`` lives at ``<install_root>/@scope/name``, a nested directory."""
    return install_root.joinpath(*[part for part in key.split("/") if part])


def _package_present(install_root: Path, key: str) -> bool:
    try:
        return package_path(install_root, key).exists()
    except OSError:
        # Unreadable entries are treated as present; only absence is a signal
        return True


def missing_packages(
    install_root: Path, spec: DependencySpec, limit: int
) -> Tuple[List[str], int]:
    """
    Probe at most ``limit`` keys, in sorted key order, for presence on disk.

    Returns:
        Tuple of (missing keys, number of probes performed)
    """
    missing: List[str] = []
    keys = spec.sorted_keys()[:limit]
    for key in keys:
        if not _package_present(install_root, key):
            missing.append(key)
    return missing, len(keys)


def unresolvable_imports(
    root: Path,
    spec: DependencySpec,
    runner: CommandRunner,
    limit: int,
    deno_executable: Optional[str] = None,
) -> Tuple[List[str], int]:
    """
    Run the resolution probe for at most ``limit`` locators, in sorted key order.

    A failing probe is a signal, never an error.

    Returns:
        Tuple of (unresolvable locators, number of probes performed)
    """
    failed: List[str] = []
    locators = [locator for _, locator in spec.sorted_items()[:limit]]
    for locator in locators:
        if not is_import_resolvable(runner, root, locator, deno_executable):
            log_import_probe_failed(locator)
            failed.append(locator)
    return failed, len(locators)


def _hash_signals(
    root: Path, ecosystem: Ecosystem, current: str, config: ComprehensiveConfig
) -> Tuple[List[DriftSignal], Optional[str]]:
    try:
        stored = read_staleness(root, ecosystem, config)
    except StorageUnavailable:
        log_hash_comparison(ecosystem.value, None, current, True)
        return [NoStoredHash(storage_available=False)], None

    if not stored:
        signals: List[DriftSignal] = [NoStoredHash()]
    elif stored != current:
        signals = [HashMismatch(stored=stored, current=current)]
    else:
        signals = []

    log_hash_comparison(ecosystem.value, stored, current, bool(signals))
    return signals, stored


def decide(
    root: Path,
    ecosystem: Ecosystem,
    manifest_digest: Optional[str] = None,
    runner: Optional[CommandRunner] = None,
    config: Optional[ComprehensiveConfig] = None,
    package_manager: Optional[str] = None,
) -> Decision:
    """
    Decide whether the project at ``root`` needs an install.

    Args:
        root: Project root
        ecosystem: Node or Deno
        manifest_digest: Precomputed digest of the manifest; computed when None
        runner: Command runner for Deno resolution probes
        config: Configuration (defaults to the one found for root)
        package_manager: Node package manager in use; zero-install only
            applies to yarn (None: decided by the markers alone)

    Returns:
        Decision

    Raises:
        ManifestNotFound: No manifest for the ecosystem
        ManifestParseError: The manifest is not a valid JSON object
        FileAccessError: Reading the manifest or the record failed
    """
    config = config or get_config(root)
    root = Path(root)

    spec = extract_dependencies(root, ecosystem, config)
    current = manifest_digest or compute_digest(spec)

    signals: List[DriftSignal] = []
    zero_install = False
    packages_checked = 0
    imports_probed = 0

    if ecosystem is Ecosystem.NODE:
        zero_install = is_zero_install(root, config, package_manager)
        if not zero_install:
            target = install_dir(root, config)
            if not target.is_dir():
                signals.append(MissingInstallTarget(path=str(target)))

            missing, packages_checked = missing_packages(
                target, spec, config.drift.max_package_checks
            )
            signals.extend(MissingDependency(key=key) for key in missing)
    else:
        if len(spec) > 0 and config.drift.max_import_probes > 0:
            runner = runner or SubprocessRunner(config.runner.timeout_seconds)
            failed, imports_probed = unresolvable_imports(
                root,
                spec,
                runner,
                config.drift.max_import_probes,
                config.runner.deno_executable,
            )
            signals.extend(UnresolvableImport(locator=locator) for locator in failed)

    hash_signals, stored = _hash_signals(root, ecosystem, current, config)
    signals.extend(hash_signals)

    decision = Decision(
        root=str(root),
        ecosystem=ecosystem,
        current_digest=current,
        stored_digest=stored,
        signals=tuple(signals),
        zero_install=zero_install,
        packages_checked=packages_checked,
        imports_probed=imports_probed,
    )
    log_drift_decision(str(root), ecosystem.value, decision.should_install, decision.reasons)
    return decision


def describe_digests(decision: Decision) -> str:
    """Short ``stored -> current`` form for console output."""
    stored = short_hash(decision.stored_digest) or "none"
    return f"{stored} -> {short_hash(decision.current_digest)}"
