"""
Shared fixtures for depdrift tests.
"""

import json
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import pytest

from depdrift.cli_config import ComprehensiveConfig, reset_config, set_config
from depdrift.runner import CommandResult, CommandRunner
from depdrift.structured_logging import configure_logging


class FakeRunner(CommandRunner):
    """Records commands instead of spawning them."""

    def __init__(
        self,
        returncode: int = 0,
        fail_locators: Iterable[str] = (),
        on_run: Optional[Callable[[List[str], Path], None]] = None,
    ):
        self.returncode = returncode
        self.fail_locators = set(fail_locators)
        self.on_run = on_run
        self.calls: List[List[str]] = []

    def run(self, command, cwd, capture_output=True):
        self.calls.append(list(command))
        if self.on_run is not None:
            self.on_run(list(command), Path(cwd))
        if command[-1] in self.fail_locators:
            return CommandResult(list(command), 1, stderr="module not found")
        return CommandResult(list(command), self.returncode)

    @property
    def probe_calls(self) -> List[List[str]]:
        return [call for call in self.calls if call[1:2] == ["info"]]


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path_factory):
    """Keep user config files, DEPDRIFT_* variables and a local Volta out of every test."""
    monkeypatch.setenv("HOME", str(tmp_path_factory.mktemp("home")))
    for key in [
        "DEPDRIFT_MAX_PACKAGE_CHECKS",
        "DEPDRIFT_MAX_IMPORT_PROBES",
        "DEPDRIFT_TIMEOUT",
        "DEPDRIFT_MAX_MANIFEST_SIZE_MB",
        "DEPDRIFT_PACKAGE_MANAGER",
        "DEPDRIFT_DENO",
        "DEPDRIFT_NO_VOLTA",
        "DEPDRIFT_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("depdrift.preflight.volta_available", lambda: False)

    set_config(ComprehensiveConfig())
    configure_logging("WARNING")
    yield
    reset_config()


@pytest.fixture
def temp_dir(tmp_path):
    """A fresh project root."""
    return tmp_path


@pytest.fixture
def node_project(temp_dir):
    """Factory writing package.json and, optionally, an install directory."""

    def _make(
        dependencies=None,
        dev_dependencies=None,
        installed: Iterable[str] = (),
        with_install_dir: bool = False,
    ) -> Path:
        manifest = {"name": "app", "version": "1.0.0"}
        if dependencies is not None:
            manifest["dependencies"] = dependencies
        if dev_dependencies is not None:
            manifest["devDependencies"] = dev_dependencies
        (temp_dir / "package.json").write_text(json.dumps(manifest), encoding="utf-8")

        installed = list(installed)
        if installed or with_install_dir:
            (temp_dir / "node_modules").mkdir(exist_ok=True)
        for name in installed:
            (temp_dir / "node_modules" / name).mkdir(parents=True, exist_ok=True)
        return temp_dir

    return _make


@pytest.fixture
def deno_project(temp_dir):
    """Factory writing deno.json from an imports map, or deno.jsonc from raw text."""

    def _make(imports=None, jsonc_text: Optional[str] = None) -> Path:
        if imports is not None:
            (temp_dir / "deno.json").write_text(json.dumps({"imports": imports}), encoding="utf-8")
        if jsonc_text is not None:
            (temp_dir / "deno.jsonc").write_text(jsonc_text, encoding="utf-8")
        return temp_dir

    return _make


@pytest.fixture
def fake_runner():
    """Factory for FakeRunner instances."""
    return FakeRunner
