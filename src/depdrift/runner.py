"""
Subprocess collaborator for resolution probes and installs.

Everything that spawns a process goes through a ``CommandRunner``.
"""

import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .cli_config import get_config
from .error_handling import log_process_error


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    command: List[str]
    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0 and not self.timed_out


class CommandRunner(ABC):
    """Runs an external command and reports success or failure."""

    @abstractmethod
    def run(self, command: List[str], cwd: Path, capture_output: bool = True) -> CommandResult:
        """Run ``command`` in ``cwd``."""
        pass


class SubprocessRunner(CommandRunner):
    """CommandRunner backed by ``subprocess.run`` with a timeout."""

    def __init__(self, timeout_seconds: Optional[int] = None):
        self.timeout_seconds = timeout_seconds or get_config().runner.timeout_seconds

    def run(self, command: List[str], cwd: Path, capture_output: bool = True) -> CommandResult:
        """
        Run a command without a shell.

        A missing executable or a timeout is reported as a failed result,
        never raised: to the caller both mean "this did not succeed".

        Args:
            command: Command and arguments to run
            cwd: Working directory
            capture_output: Whether to capture stdout/stderr instead of
                letting them through to the terminal

        Returns:
            CommandResult
        """
        if not command or not isinstance(command[0], str):
            raise ValueError("Invalid command")

        safe_command = [str(arg) for arg in command]

        try:
            completed = subprocess.run(
                safe_command,
                cwd=str(cwd),
                capture_output=capture_output,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired:
            log_process_error(
                f"Command timed out after {self.timeout_seconds}s",
                "runner",
                "run",
                command=safe_command,
            )
            return CommandResult(safe_command, None, timed_out=True)
        except OSError as e:
            log_process_error(
                f"Command could not be started: {e}",
                "runner",
                "run",
                command=safe_command,
                exception=e,
            )
            return CommandResult(safe_command, None, stderr=str(e))

        stdout = completed.stdout.decode("utf-8", errors="replace") if completed.stdout else ""
        stderr = completed.stderr.decode("utf-8", errors="replace") if completed.stderr else ""
        return CommandResult(safe_command, completed.returncode, stdout, stderr)


VOLTA_RUN_COMMAND = ["volta", "run"]


def volta_available() -> bool:
    """True when the Volta toolchain manager is on PATH."""
    return shutil.which(VOLTA_RUN_COMMAND[0]) is not None


def import_probe_command(locator: str, deno_executable: Optional[str] = None) -> List[str]:
    deno = deno_executable or get_config().runner.deno_executable
    return [deno, "info", "--json", locator]


def is_import_resolvable(
    runner: CommandRunner, root: Path, locator: str, deno_executable: Optional[str] = None
) -> bool:
    """Resolution probe: ``deno info --json <locator>`` exits successfully."""
    result = runner.run(import_probe_command(locator, deno_executable), Path(root))
    return result.succeeded
