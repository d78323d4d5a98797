"""
Integration tests for depdrift.
Tests the full preflight flow: decide, install, record, decide again.
"""

import json

import pytest

from depdrift.cli_config import ComprehensiveConfig
from depdrift.dependency import Ecosystem
from depdrift.digest import compute_project_digest
from depdrift.drift import decide
from depdrift.error_handling import InstallFailedError, StorageUnavailable
from depdrift.preflight import install_command, run_preflight
from depdrift.store import read_staleness, write_staleness


def simulate_npm_install(command, cwd):
    """Create node_modules entries for every dependency in package.json."""
    if command[1:] != ["install"]:
        return
    manifest = json.loads((cwd / "package.json").read_text(encoding="utf-8"))
    names = {**manifest.get("dependencies", {}), **manifest.get("devDependencies", {})}
    (cwd / "node_modules").mkdir(exist_ok=True)
    for name in names:
        (cwd / "node_modules" / name).mkdir(parents=True, exist_ok=True)


class TestNodePreflight:
    """Test the preflight for Node projects."""

    def test_first_run_installs_and_records(self, node_project, fake_runner):
        """Test install, record, then a clean second run."""
        root = node_project({"react": "18.2.0"}, {"@types/react": "18.2.0"})
        runner = fake_runner(on_run=simulate_npm_install)

        result = run_preflight(root, Ecosystem.NODE, runner=runner)

        assert result.installed
        assert result.command == ["npm", "install"]
        assert result.decision.reasons == [
            "missing node_modules",
            "2 missing packages",
            "no stored hash",
        ]
        assert result.recorded_digest == compute_project_digest(root, Ecosystem.NODE)
        assert read_staleness(root) == result.recorded_digest

        second = run_preflight(root, Ecosystem.NODE, runner=runner)

        assert not second.installed
        assert not second.decision.should_install
        assert runner.calls == [["npm", "install"]]

    def test_manifest_change_triggers_reinstall(self, node_project, fake_runner):
        """Test that editing package.json after an install is detected."""
        root = node_project({"react": "18.2.0"})
        runner = fake_runner(on_run=simulate_npm_install)
        run_preflight(root, Ecosystem.NODE, runner=runner)

        node_project({"react": "18.3.0"})
        decision = decide(root, Ecosystem.NODE)

        assert decision.reasons == ["dependencies changed"]

    def test_package_manager_choice(self, node_project, fake_runner):
        """Test explicit and configured package managers."""
        root = node_project({"react": "18.2.0"})
        runner = fake_runner(on_run=simulate_npm_install)

        result = run_preflight(root, Ecosystem.NODE, package_manager="yarn", runner=runner)
        assert result.command == ["yarn", "install"]

        config = ComprehensiveConfig()
        config.runner.default_package_manager = "bun"
        assert install_command(root, Ecosystem.NODE, config=config) == ["bun", "install"]

    def test_volta_wraps_node_package_managers(self, node_project, fake_runner, monkeypatch):
        """Test that installs go through `volta run` when Volta is on PATH."""
        monkeypatch.setattr("depdrift.preflight.volta_available", lambda: True)
        root = node_project({"react": "18.2.0"})
        runner = fake_runner()

        result = run_preflight(root, Ecosystem.NODE, package_manager="pnpm", runner=runner)

        assert result.command == ["volta", "run", "pnpm", "install"]
        assert runner.calls == [["volta", "run", "pnpm", "install"]]
        assert install_command(root, Ecosystem.NODE, "bun") == ["bun", "install"]

    def test_volta_can_be_disabled(self, node_project, fake_runner, monkeypatch):
        """Test use_volta=False and the runner.use_volta config key."""
        monkeypatch.setattr("depdrift.preflight.volta_available", lambda: True)
        root = node_project({"react": "18.2.0"})
        runner = fake_runner(on_run=simulate_npm_install)

        result = run_preflight(root, Ecosystem.NODE, runner=runner, use_volta=False)
        assert result.command == ["npm", "install"]
        assert result.recorded_digest is not None

        config = ComprehensiveConfig()
        config.runner.use_volta = False
        assert install_command(root, Ecosystem.NODE, config=config) == ["npm", "install"]

    def test_install_failure_records_nothing(self, node_project, fake_runner):
        """Test that a failed install raises and leaves no record."""
        root = node_project({"react": "18.2.0"}, with_install_dir=True)
        runner = fake_runner(returncode=1)

        with pytest.raises(InstallFailedError) as exc_info:
            run_preflight(root, Ecosystem.NODE, runner=runner)

        assert exc_info.value.returncode == 1
        assert read_staleness(root) == ""

    def test_record_reflects_manifest_after_install(self, node_project, fake_runner):
        """Test that the digest is recomputed after the install ran."""
        root = node_project({"react": "18.2.0"})

        def install_and_add(command, cwd):
            node_project({"react": "18.2.0", "lodash": "4.17.21"})
            simulate_npm_install(command, cwd)

        result = run_preflight(root, Ecosystem.NODE, runner=fake_runner(on_run=install_and_add))

        assert result.recorded_digest == compute_project_digest(root, Ecosystem.NODE)
        assert result.recorded_digest != result.decision.current_digest

    def test_zero_install_project_cannot_record(self, node_project, fake_runner):
        """Test a PnP project: installs run but there is nowhere to record."""
        root = node_project({"react": "18.2.0"})
        (root / ".pnp.cjs").write_text("", encoding="utf-8")

        result = run_preflight(root, Ecosystem.NODE, package_manager="yarn", runner=fake_runner())

        assert result.installed
        assert result.decision.reasons == ["no stored hash"]
        assert result.recorded_digest is None
        with pytest.raises(StorageUnavailable):
            read_staleness(root)

    def test_reload_forces_install(self, node_project, fake_runner):
        """Test that reload installs even when nothing drifted."""
        root = node_project({"react": "18.2.0"}, installed=["react"])
        write_staleness(root, compute_project_digest(root, Ecosystem.NODE))
        runner = fake_runner()

        result = run_preflight(root, Ecosystem.NODE, runner=runner, reload=True)

        assert result.installed
        assert not result.decision.should_install
        assert runner.calls == [["npm", "install"]]


class TestDenoPreflight:
    """Test the preflight for Deno projects."""

    IMPORTS = {"lodash": "https://deno.land/x/lodash@4.17.21/mod.ts"}

    def test_first_run_caches_without_reload(self, deno_project, fake_runner):
        """Test that a missing record caches without --reload."""
        root = deno_project(imports=self.IMPORTS)
        runner = fake_runner()

        result = run_preflight(root, Ecosystem.DENO, runner=runner)

        assert result.command == ["deno", "cache", "deno.json"]
        assert read_staleness(root, Ecosystem.DENO) == result.recorded_digest
        assert runner.calls[0] == ["deno", "info", "--json", self.IMPORTS["lodash"]]

    def test_changed_imports_reload_cache(self, deno_project, fake_runner):
        """Test that a digest mismatch passes --reload."""
        root = deno_project(imports=self.IMPORTS)
        write_staleness(root, "0" * 64, Ecosystem.DENO)

        result = run_preflight(root, Ecosystem.DENO, runner=fake_runner())

        assert result.decision.reasons == ["imports changed"]
        assert result.command == ["deno", "cache", "--reload", "deno.json"]

    def test_jsonc_manifest_is_cached_by_name(self, deno_project, fake_runner):
        """Test that the cache command targets deno.jsonc when it is the manifest."""
        root = deno_project(jsonc_text='{\n  "imports": {},\n}')

        result = run_preflight(root, Ecosystem.DENO, runner=fake_runner())

        assert result.command == ["deno", "cache", "deno.jsonc"]

    def test_up_to_date_runs_probes_only(self, deno_project, fake_runner):
        """Test that a clean project only spawns resolution probes."""
        root = deno_project(imports=self.IMPORTS)
        write_staleness(root, compute_project_digest(root, Ecosystem.DENO), Ecosystem.DENO)
        runner = fake_runner()

        result = run_preflight(root, Ecosystem.DENO, runner=runner)

        assert not result.installed
        assert runner.calls == runner.probe_calls
