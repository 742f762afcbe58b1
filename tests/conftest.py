"""Pytest configuration and fixtures for seabox tests.

This module ensures the seabox package is importable during tests
without requiring installation.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Add src directory to path for development testing
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from seabox.runtime import CommandResult  # noqa: E402


@pytest.fixture(autouse=True)
def clean_seabox_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep SEABOX_* variables from the developer's shell out of every test."""
    for var in list(os.environ):
        if var.startswith("SEABOX_"):
            monkeypatch.delenv(var)


class ProcessReplaced(Exception):
    """Raised by FakeExecutor.replace_process in place of exec."""

    def __init__(self, argv: list[str]) -> None:
        super().__init__(" ".join(argv))
        self.argv = argv


class FakeExecutor:
    """Records runtime commands and answers them from canned results.

    Responses are keyed on the tokens following the runtime binary, e.g.
    ("image", "inspect", "alpine"); the longest matching key wins. Repeated
    respond() calls for one key are answered in order, the last one sticks.
    Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.responses: dict[tuple[str, ...], list[CommandResult]] = {}
        self.calls: list[list[str]] = []
        self.uncaptured: list[list[str]] = []
        self.replaced: list[str] | None = None

    def respond(self, *tokens: str, exit_code: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.responses.setdefault(tokens, []).append(CommandResult(exit_code, stdout, stderr))

    def _lookup(self, argv: list[str]) -> CommandResult:
        args = argv[argv.index("podman") + 1 :] if "podman" in argv else argv
        best: tuple[str, ...] | None = None
        for key in self.responses:
            if tuple(args[: len(key)]) == key and (best is None or len(key) > len(best)):
                best = key
        if best is None:
            return CommandResult(0)
        queue = self.responses[best]
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def run(self, argv, *, capture_output: bool = True) -> CommandResult:
        argv = list(argv)
        self.calls.append(argv)
        if not capture_output:
            self.uncaptured.append(argv)
        return self._lookup(argv)

    def replace_process(self, argv):
        self.replaced = list(argv)
        raise ProcessReplaced(self.replaced)

    def ran(self, *tokens: str) -> bool:
        """Whether any recorded command had these tokens after the runtime binary."""
        for argv in self.calls:
            args = argv[argv.index("podman") + 1 :] if "podman" in argv else argv
            if tuple(args[: len(tokens)]) == tokens:
                return True
        return False


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()
