"""Pytest configuration for issueflow tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`), and provides a
scripted fake in place of real `git` / `gh` processes.
"""

from __future__ import annotations

import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issueflow.errors import CommandError, ExecutionError  # noqa: E402
from issueflow.logging import configure_logging  # noqa: E402
from issueflow.models import CommandOutcome  # noqa: E402


class FakeRunner:
    """Records every invocation and answers from scripted outcomes.

    Rules match on an argv prefix; the longest matching prefix wins. A rule
    with several outcomes hands them out in order and then keeps repeating
    the last one. Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.streamed: list[tuple[str, ...]] = []
        self._rules: list[tuple[tuple[str, ...], list[CommandOutcome]]] = []
        self._missing: set[str] = set()

    def on(
        self,
        *prefix: str,
        stdout: str = "",
        stderr: str = "",
        exit_status: int = 0,
    ) -> FakeRunner:
        outcome = CommandOutcome(stdout=stdout, stderr=stderr, exit_status=exit_status)
        for rule_prefix, outcomes in self._rules:
            if rule_prefix == prefix:
                outcomes.append(outcome)
                return self
        self._rules.append((prefix, [outcome]))
        return self

    def missing(self, command: str) -> FakeRunner:
        self._missing.add(command)
        return self

    def _match(self, argv: tuple[str, ...]) -> CommandOutcome:
        best: list[CommandOutcome] | None = None
        best_len = -1
        for prefix, outcomes in self._rules:
            if argv[: len(prefix)] == prefix and len(prefix) > best_len:
                best, best_len = outcomes, len(prefix)
        if best is None:
            return CommandOutcome(stdout="", stderr="", exit_status=0)
        return best.pop(0) if len(best) > 1 else best[0]

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        capture_output: bool = True,
        allow_nonzero: bool = False,
        env: Mapping[str, str] | None = None,
        description: str | None = None,
    ) -> CommandOutcome:
        argv = (command, *args)
        self.calls.append(argv)
        if not capture_output:
            self.streamed.append(argv)
        if command in self._missing:
            raise ExecutionError(f"Could not run {command}", "No such file or directory")
        outcome = self._match(argv)
        if not outcome.success and not allow_nonzero:
            raise CommandError(
                f"{description} failed." if description else "Command execution failed.", outcome
            )
        return outcome

    def called(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == prefix for call in self.calls)

    def calls_to(self, command: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] == command]


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "ISSUEFLOW_CONFIG",
        "ISSUEFLOW_QUIET",
        "ISSUEFLOW_RETRY_ATTEMPTS",
        "ISSUEFLOW_RETRY_DELAY",
        "ISSUEFLOW_RETRY_MAX_SLEEP",
        "ISSUEFLOW_TELEMETRY",
        "ISSUEFLOW_TELEMETRY_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    configure_logging(level="WARNING")

