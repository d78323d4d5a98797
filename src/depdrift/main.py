import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .cli_config import (
    ComprehensiveConfig,
    create_sample_config,
    load_config,
    set_config,
)
from .dependency import Ecosystem
from .digest import compute_project_digest
from .drift import Decision, NoStoredHash, decide, describe_digests
from .error_handling import (
    DepDriftError,
    ErrorCategory,
    StorageUnavailable,
    get_error_handler,
    setup_error_handling,
)
from .jsonc import normalize_jsonc
from .manifest import detect_ecosystem
from .preflight import run_preflight
from .store import clear_staleness, record_path, write_staleness
from .structured_logging import configure_logging

console = Console()

ECOSYSTEM_CHOICES = ["auto", "node", "deno"]

root_argument = click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    required=False,
)
ecosystem_option = click.option(
    "--ecosystem",
    "-e",
    type=click.Choice(ECOSYSTEM_CHOICES, case_sensitive=False),
    default="auto",
    show_default=True,
    help="Manifest dialect; auto picks deno only when there is no package.json",
)


def _prepare(root: Path) -> ComprehensiveConfig:
    """Load configuration for a project root and apply its logging settings."""
    config = load_config(root)
    set_config(config)
    configure_logging(config.logging.log_level, config.logging.enable_json)
    setup_error_handling(getattr(logging, config.logging.log_level.upper(), logging.WARNING))
    return config


def _resolve_ecosystem(root: Path, value: str) -> Ecosystem:
    if value.lower() == "auto":
        return detect_ecosystem(root)
    return Ecosystem(value.lower())


def print_decision(decision: Decision) -> None:
    """Render a decision for humans."""
    table = Table(show_header=False, box=None)
    table.add_row("Project", decision.root)
    table.add_row("Ecosystem", decision.ecosystem.value)
    table.add_row("Digest", describe_digests(decision))
    if decision.ecosystem is Ecosystem.NODE:
        checked = "skipped (zero-install)" if decision.zero_install else str(decision.packages_checked)
        table.add_row("Packages checked", checked)
    else:
        table.add_row("Imports probed", str(decision.imports_probed))
    console.print(table)

    if decision.should_install:
        console.print(f"📦 Install needed: {decision.reason}", style="yellow")
        if decision.zero_install and NoStoredHash(storage_available=False) in decision.signals:
            console.print(
                "ℹ️  Zero-install project: there is no node_modules to hold the stored hash, "
                "so it is always reported missing",
                style="dim",
            )
    else:
        console.print("✅ Dependencies are up to date", style="green")


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    depdrift: dependency staleness detector for JavaScript projects.

    Decides whether node_modules (or the Deno cache) is out of date with
    package.json / deno.json before a dev or start script runs.
    """
    if version:
        console.print(f"depdrift version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@root_argument
@ecosystem_option
@click.option(
    "--output-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default="console",
    show_default=True,
    help="Output format for the decision",
)
@click.option(
    "--fail-on-stale",
    is_flag=True,
    help="Exit with code 1 when an install is needed",
)
def check(root: Path, ecosystem: str, output_format: str, fail_on_stale: bool) -> None:
    """
    Decide whether the project's dependencies need an install.

    Examples:

      depdrift check

      depdrift check ./web --output-format json

      depdrift check --ecosystem deno --fail-on-stale
    """
    config = _prepare(root)
    skipped: List[str] = []
    get_error_handler().register_callback(
        lambda context: skipped.append(context.message), ErrorCategory.PARSING
    )
    try:
        decision = decide(root, _resolve_ecosystem(root, ecosystem), config=config)
    except DepDriftError as e:
        raise click.ClickException(str(e))

    if output_format == "json":
        print(json.dumps({**decision.to_dict(), "warnings": skipped}, indent=2))
    else:
        print_decision(decision)
        for message in skipped:
            console.print(f"⚠️  {message}", style="yellow")

    if fail_on_stale and decision.should_install:
        sys.exit(1)


@cli.command("hash")
@root_argument
@ecosystem_option
def hash_command(root: Path, ecosystem: str) -> None:
    """Print the canonical digest of the project's dependency set."""
    config = _prepare(root)
    try:
        digest = compute_project_digest(root, _resolve_ecosystem(root, ecosystem), config)
    except DepDriftError as e:
        raise click.ClickException(str(e))
    print(digest)


@cli.command()
@root_argument
@ecosystem_option
def record(root: Path, ecosystem: str) -> None:
    """Record the current digest as installed (run after a manual install)."""
    config = _prepare(root)
    resolved = _resolve_ecosystem(root, ecosystem)
    try:
        digest = compute_project_digest(root, resolved, config)
        path = write_staleness(root, digest, resolved, config)
    except StorageUnavailable as e:
        raise click.ClickException(f"{e}; install dependencies first")
    except DepDriftError as e:
        raise click.ClickException(str(e))
    console.print(f"✅ Recorded {digest[:8]} in {path}", style="green")


@cli.command()
@root_argument
@ecosystem_option
def forget(root: Path, ecosystem: str) -> None:
    """Remove the recorded digest so the next check asks for an install."""
    config = _prepare(root)
    resolved = _resolve_ecosystem(root, ecosystem)
    try:
        removed = clear_staleness(root, resolved, config)
    except DepDriftError as e:
        raise click.ClickException(str(e))

    if removed:
        console.print(f"🗑️  Removed {record_path(root, resolved, config)}", style="green")
    else:
        console.print("ℹ️  No recorded digest to remove", style="yellow")


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output-file", "-o", type=click.Path(path_type=Path), help="Write the result to a file")
def normalize(file_path: Path, output_file: Optional[Path]) -> None:
    """Strip comments and trailing commas from a JSONC file."""
    try:
        normalized = normalize_jsonc(file_path.read_bytes())
        if output_file:
            output_file.write_bytes(normalized)
    except OSError as e:
        raise click.ClickException(f"Failed to normalize {file_path}: {e}")

    if output_file:
        console.print(f"✅ Normalized JSON saved to {output_file}", style="green")
    else:
        sys.stdout.write(normalized.decode("utf-8", errors="replace"))
        sys.stdout.flush()


@cli.command()
@root_argument
@ecosystem_option
@click.option(
    "--pm",
    "package_manager",
    type=click.Choice(["npm", "yarn", "pnpm", "bun"], case_sensitive=False),
    help="Node package manager used for the install (default from config or npm)",
)
@click.option("--reload", is_flag=True, help="Install even if nothing drifted (deno: --reload)")
@click.option("--no-volta", is_flag=True, help="Disable Volta integration for the install")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-critical output")
def preflight(
    root: Path,
    ecosystem: str,
    package_manager: Optional[str],
    reload: bool,
    no_volta: bool,
    quiet: bool,
) -> None:
    """
    Install dependencies if they drifted from the manifest, then record the digest.

    Examples:

      depdrift preflight

      depdrift preflight --pm pnpm

      depdrift preflight --ecosystem deno --reload
    """
    config = _prepare(root)
    try:
        result = run_preflight(
            root,
            _resolve_ecosystem(root, ecosystem),
            package_manager=package_manager,
            reload=reload,
            config=config,
            use_volta=False if no_volta else None,
        )
    except DepDriftError as e:
        raise click.ClickException(str(e))

    if quiet:
        return
    if not result.installed:
        console.print("✅ Dependencies are up to date", style="green")
        return

    console.print(
        f"📦 Ran `{' '.join(result.command or [])}` ({result.decision.reason or 'reload requested'})",
        style="blue",
    )
    if result.recorded_digest:
        console.print(f"✅ Recorded {result.recorded_digest[:8]}", style="green")
    else:
        console.print("⚠️  Install finished but the digest could not be recorded", style="yellow")


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(path_type=Path),
    default=".depdrift.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: Path, force: bool):
    """Create a sample configuration file."""
    if path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        path.write_text(create_sample_config(), encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {path}", style="green")


@config.command("show")
@root_argument
def config_show(root: Path):
    """Show the configuration in effect for a project root."""
    current = _prepare(root)

    console.print(Panel("[bold blue]🔧 depdrift configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]Drift checks:[/bold cyan]")
    console.print(f"  Max package checks: {current.drift.max_package_checks}")
    console.print(f"  Max import probes: {current.drift.max_import_probes}")
    console.print(f"  Zero-install markers: {', '.join(current.drift.zero_install_markers)}")

    console.print("\n[bold cyan]Store:[/bold cyan]")
    console.print(f"  Install directory: {current.store.install_dir}")
    console.print(f"  Node record: {current.store.node_record_name}")
    console.print(f"  Deno record: {current.store.deno_record_name}")

    console.print("\n[bold cyan]Runner:[/bold cyan]")
    console.print(f"  Timeout: {current.runner.timeout_seconds}s")
    console.print(f"  Default package manager: {current.runner.default_package_manager}")
    console.print(f"  Deno executable: {current.runner.deno_executable}")
    console.print(f"  Use Volta: {current.runner.use_volta}")

    console.print("\n[bold cyan]Limits and logging:[/bold cyan]")
    console.print(f"  Max manifest size: {current.security.max_manifest_size_mb} MB")
    console.print(f"  Log level: {current.logging.log_level}")
    console.print(f"  JSON logs: {current.logging.enable_json}")


if __name__ == "__main__":
    cli()
