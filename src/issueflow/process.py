"""External process execution.

Every ``git`` / ``gh`` invocation funnels through :class:`ProcessRunner` so
that spawn failures, exit codes and terminal streaming are handled in one
place. Output is either captured (returned in a :class:`CommandOutcome`) or
mirrored live to the controlling terminal; never both.

A non-zero exit is only an error when the caller did not pass
``allow_nonzero=True``; callers that pattern-match on specific exit states
get the literal exit code back.
"""

from __future__ import annotations

import os
import subprocess  # nosec B404 - subprocess is required to drive git and gh
from collections.abc import Mapping, Sequence
from typing import Protocol

from .errors import CommandError, ExecutionError, format_failure_message
from .logging import get_logger
from .models import CommandOutcome
from .ux import print_operation_status


class Runner(Protocol):
    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        capture_output: bool = True,
        allow_nonzero: bool = False,
        env: Mapping[str, str] | None = None,
        description: str | None = None,
    ) -> CommandOutcome: ...


class ProcessRunner:
    """Blocking subprocess wrapper returning :class:`CommandOutcome`."""

    def __init__(self, cwd: str | None = None) -> None:
        self.cwd = cwd
        self.logger = get_logger()

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
        cmd = [command, *args]
        self.logger.debug("run command", operation="process_run", command=" ".join(cmd))
        merged_env = {**os.environ, **env} if env is not None else None
        try:
            completed = subprocess.run(  # nosec B603 - argv list, no shell
                cmd,
                stdin=subprocess.DEVNULL if capture_output else None,
                stdout=subprocess.PIPE if capture_output else None,
                stderr=subprocess.PIPE if capture_output else None,
                text=True,
                check=False,
                cwd=self.cwd,
                env=merged_env,
            )
        except OSError as exc:
            summary = f"{description} failed" if description else f"Could not run {command}"
            if description:
                print_operation_status(description, "failed")
            raise ExecutionError(summary, str(exc)) from exc

        outcome = CommandOutcome(
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_status=completed.returncode,
        )
        if outcome.exit_status != 0 and not allow_nonzero:
            if description:
                print_operation_status(description, "failed")
            summary = (
                f"{description} failed."
                if description
                else f"Command execution failed: {' '.join(cmd)}"
            )
            self.logger.debug(
                "command failed",
                operation="process_run",
                exit_status=outcome.exit_status,
                error=format_failure_message(summary, outcome.stderr),
            )
            raise CommandError(summary, outcome)
        if description:
            print_operation_status(description, "success")
        return outcome


def ensure_command(runner: Runner, command: str) -> None:
    """Fail fast when ``command`` is missing from PATH or broken."""
    summary = f"{command} is not installed. Install it if necessary and rerun this command."
    try:
        outcome = runner.run(command, ["--version"], allow_nonzero=True)
    except ExecutionError as exc:
        raise ExecutionError(summary, exc.details) from exc
    if not outcome.success:
        raise ExecutionError(summary, outcome.combined_output)


__all__ = ["ProcessRunner", "Runner", "ensure_command"]
