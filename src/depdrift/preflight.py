"""
Install-before-start preflight.

Runs the drift decision, installs when it says so, and records the new
digest once the install has succeeded.
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .cli_config import ComprehensiveConfig, get_config
from .dependency import Ecosystem
from .digest import compute_project_digest
from .drift import Decision, HashMismatch, decide
from .error_handling import InstallFailedError, StorageUnavailable
from .manifest import deno_config_path
from .runner import VOLTA_RUN_COMMAND, CommandRunner, SubprocessRunner, volta_available
from .store import write_staleness
from .structured_logging import (
    log_install_completed,
    log_install_started,
    log_record_skipped,
)

VOLTA_PACKAGE_MANAGERS = ["npm", "pnpm", "yarn"]


@dataclass(frozen=True)
class PreflightResult:
    """What the preflight decided and did."""

    decision: Decision
    installed: bool = False
    command: Optional[List[str]] = None
    recorded_digest: Optional[str] = None


def install_command(
    root: Path,
    ecosystem: Ecosystem,
    package_manager: Optional[str] = None,
    force_reload: bool = False,
    config: Optional[ComprehensiveConfig] = None,
    use_volta: Optional[bool] = None,
) -> List[str]:
    """
    Build the install command for a project.

    Node: ``<pm> install``, or ``volta run <pm> install`` when Volta is enabled
    and on PATH and the package manager is one Volta manages. Deno:
    ``deno cache [--reload] <manifest>``.
    """
    config = config or get_config(root)
    if ecosystem is Ecosystem.DENO:
        command = [config.runner.deno_executable, "cache"]
        if force_reload:
            command.append("--reload")
        command.append(deno_config_path(root).name)
        return command

    pm = package_manager or config.runner.default_package_manager
    if use_volta is None:
        use_volta = config.runner.use_volta
    if use_volta and pm in VOLTA_PACKAGE_MANAGERS and volta_available():
        return VOLTA_RUN_COMMAND + [pm, "install"]
    return [pm, "install"]


def run_preflight(
    root: Path,
    ecosystem: Ecosystem,
    package_manager: Optional[str] = None,
    runner: Optional[CommandRunner] = None,
    reload: bool = False,
    config: Optional[ComprehensiveConfig] = None,
    use_volta: Optional[bool] = None,
) -> PreflightResult:
    """
    Install dependencies when they drifted from the manifest.

    Args:
        root: Project root
        ecosystem: Node or Deno
        package_manager: Node package manager to install with (npm, yarn, pnpm, bun)
        runner: Command runner for probes and the install
        reload: Install even when no drift signal fired; for Deno also
            passes ``--reload`` to the cache command
        config: Configuration (defaults to the one found for root)
        use_volta: Run Node installs through Volta when available (None:
            ``runner.use_volta`` from the configuration)

    Returns:
        PreflightResult

    Raises:
        ManifestNotFound, ManifestParseError: Manifest problems
        InstallFailedError: The install command failed
    """
    config = config or get_config(root)
    root = Path(root)
    runner = runner or SubprocessRunner(config.runner.timeout_seconds)
    package_manager = package_manager or config.runner.default_package_manager

    digest = compute_project_digest(root, ecosystem, config)
    decision = decide(
        root,
        ecosystem,
        manifest_digest=digest,
        runner=runner,
        config=config,
        package_manager=package_manager,
    )

    if not (decision.should_install or reload):
        return PreflightResult(decision=decision)

    force_reload = reload or bool(decision.signals_of(HashMismatch))
    command = install_command(root, ecosystem, package_manager, force_reload, config, use_volta)

    log_install_started(str(root), command, decision.reason or "reload requested")
    started = time.monotonic()
    result = runner.run(command, root, capture_output=False)
    if not result.succeeded:
        raise InstallFailedError(command, result.returncode, result.stderr)

    # The install may have rewritten the manifest
    new_digest = compute_project_digest(root, ecosystem, config)
    recorded: Optional[str] = None
    try:
        write_staleness(root, new_digest, ecosystem, config)
        recorded = new_digest
    except StorageUnavailable as e:
        log_record_skipped(str(root), ecosystem.value, str(e))

    log_install_completed(
        str(root),
        command,
        int((time.monotonic() - started) * 1000),
        recorded=recorded is not None,
    )
    return PreflightResult(
        decision=decision, installed=True, command=command, recorded_digest=recorded
    )
