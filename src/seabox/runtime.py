"""Command execution for seabox.

Every interaction with the container runtime goes through a CommandExecutor.
The real implementation shells out with subprocess; tests substitute a fake
that returns canned inspect/passwd output.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, NoReturn, Protocol

from .errors import RuntimeNotFoundError
from .logging import get_logger, log_command

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)

__all__ = [
    "CommandResult",
    "CommandExecutor",
    "SubprocessExecutor",
]


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandExecutor(Protocol):
    """Capability to run runtime commands."""

    def run(self, argv: Sequence[str], *, capture_output: bool = True) -> CommandResult:
        """Run argv to completion. Without capture, output goes to the terminal."""
        ...

    def replace_process(self, argv: Sequence[str]) -> NoReturn:
        """Hand control to argv for good (exec)."""
        ...


def _describe(argv: Sequence[str]) -> str:
    return " ".join(argv[:4]) + ("..." if len(argv) > 4 else "")


class SubprocessExecutor:
    """Runs commands as child processes of this one.

    Blocks until each command exits; there is no timeout.
    """

    def run(self, argv: Sequence[str], *, capture_output: bool = True) -> CommandResult:
        """Run a runtime command with consistent error handling.

        Raises:
            RuntimeNotFoundError: If the invoker or runtime is not in PATH.
        """
        cmd_str = _describe(argv)
        log_command(logger, argv)
        try:
            result = subprocess.run(
                list(argv),
                capture_output=capture_output,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except FileNotFoundError as e:
            logger.error("Command not found in PATH: %s", cmd_str)
            raise RuntimeNotFoundError(f"Command not found in PATH: {argv[0]}") from e

        logger.debug("Command completed: exit=%d", result.returncode)
        return CommandResult(
            exit_code=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    def replace_process(self, argv: Sequence[str]) -> NoReturn:
        """Replace the current process with argv.

        Raises:
            RuntimeNotFoundError: If argv[0] cannot be executed.
        """
        log_command(logger, argv, "Exec")
        try:
            os.execvp(argv[0], list(argv))
        except OSError as e:
            raise RuntimeNotFoundError(f"Failed to execute {argv[0]}: {e}") from e
