"""Pull request orchestration: create (or reuse), wait for CI, gate on quality.

Re-running the workflow after a partial failure is safe: a "pull request
already exists" answer from ``gh pr create`` counts as success and the run
carries on with check polling against the existing PR.
"""

from __future__ import annotations

import re
import sys
from collections.abc import Callable
from typing import Any, TextIO

from .errors import AutomationError, QualityGateError
from .github_cli import GitHubCLI
from .logging import get_logger
from .models import PrInfo, RetryAttempt
from .retry import (
    CHECK_MESSAGES,
    REPORT_MESSAGES,
    PollConfig,
    StepResult,
    is_benign,
    retry_with_status,
    step_from_check_output,
)
from .ux import Colors, colorize, countdown, print_error, print_info, print_operation_status

CHECK_LABEL = "Checks"
REPORT_LABEL = "Report"
CONFLICT_TITLE = "⚠️  Warning: PR has conflicts or merge issues"
CONFLICT_MESSAGE = "This branch has conflicts that must be resolved."
MERGEABLE_CONFLICTING = "conflicting"
DEFAULT_CONFLICT_STATES = ("dirty", "blocked")
PASSING_TOKENS = ("pass", "success")

_url_re = re.compile(r"https?://\S+")


def is_existing_pr_message(output: str) -> bool:
    low = output.lower()
    return "pull request" in low and "already exists" in low


def find_gate_line(output: str, gate: str) -> str | None:
    needle = gate.lower()
    for line in output.splitlines():
        if needle in line.lower():
            return line
    return None


def gate_failed(line: str | None) -> bool:
    if line is None:
        return False
    low = line.lower()
    return not any(tok in low for tok in PASSING_TOKENS)


def resolve_details_url(line: str | None, pr_info: PrInfo) -> str:
    if line is not None:
        match = _url_re.search(line)
        if match:
            return match.group(0)
    return pr_info.url or ""


def has_conflicts(
    merge_state: dict[str, Any], conflict_states: tuple[str, ...] = DEFAULT_CONFLICT_STATES
) -> bool:
    """Conflict when ``mergeable`` is explicitly false/CONFLICTING or the merge state is listed."""
    mergeable = merge_state.get("mergeable")
    if mergeable is False:
        return True
    if isinstance(mergeable, str) and mergeable.lower() == MERGEABLE_CONFLICTING:
        return True
    status = merge_state.get("mergeStateStatus")
    return isinstance(status, str) and status.lower() in conflict_states


class PullRequestOrchestrator:
    def __init__(
        self,
        gh: GitHubCLI,
        *,
        poll: PollConfig | None = None,
        initial_wait_seconds: float = 5.0,
        quality_gate: str | None = "sonarcloud",
        conflict_states: tuple[str, ...] = DEFAULT_CONFLICT_STATES,
        sleeper: Callable[[float], None] | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self.gh = gh
        self.poll = poll or PollConfig()
        self.initial_wait_seconds = initial_wait_seconds
        self.quality_gate = quality_gate
        self.conflict_states = conflict_states
        self.sleeper = sleeper
        self.stream = stream
        self.logger = get_logger()

    def create_or_reuse(self, title: str, body: str, branch: str) -> None:
        outcome = self.gh.pr_create(title, body)
        output = outcome.combined_output
        if outcome.success:
            if output:
                print(output, file=self.stream or sys.stdout)
            print_operation_status("gh pr create", "success", stream=self.stream)
            self.logger.log_operation("pr_created", branch=branch)
            return
        if is_existing_pr_message(output):
            print_info("Existing PR reused.", stream=self.stream)
            print_operation_status("gh pr create", "success", stream=self.stream)
            self.logger.log_operation("pr_reused", branch=branch)
            return
        print_operation_status("gh pr create", "failed", stream=self.stream)
        raise AutomationError("Failed to create PR.", output)

    def _wait(self, seconds: float) -> None:
        if self.sleeper is not None:
            self.sleeper(seconds)
        else:
            countdown(seconds, "⏳ Waiting before checking PR status", stream=self.stream)

    def await_checks(self, branch: str) -> None:
        """Watch CI until it finishes, never registers, or genuinely fails."""

        def execute(attempt: RetryAttempt) -> StepResult[None]:
            watched = self.gh.pr_checks_watch(branch)
            if watched.success:
                return StepResult.success(None)
            snapshot = self.gh.pr_checks(branch)
            return step_from_check_output(
                snapshot.exit_status, snapshot.combined_output, attempt, CHECK_MESSAGES
            )

        self._wait(self.initial_wait_seconds)
        retry_with_status(CHECK_LABEL, execute, cfg=self.poll, sleeper=self.sleeper)

    def check_conflicts(self, branch: str) -> bool:
        """Exit the process (status 1) when the PR cannot be merged cleanly.

        Returns False when no conflict was found or the merge state could not
        be read; the latter is logged and treated as "no conflict".
        """
        try:
            merge_state = self.gh.pr_merge_state(branch)
        except AutomationError as exc:
            self.logger.warning("could not read PR merge state", branch=branch, error=str(exc))
            return False
        if not has_conflicts(merge_state, self.conflict_states):
            return False
        err = self.stream or sys.stderr
        print("", file=err)
        print(colorize(CONFLICT_TITLE, Colors.YELLOW, bold=True, stream=err), file=err)
        print("", file=err)
        print_error(CONFLICT_MESSAGE, stream=err)
        print_error("Please resolve the conflicts and update the PR.", stream=err)
        self.logger.log_error("pr has conflicts", branch=branch, error=str(merge_state))
        raise SystemExit(1)

    def _collect_report(self, branch: str, pr_info: PrInfo) -> str:
        def execute(attempt: RetryAttempt) -> StepResult[str]:
            snapshot = self.gh.pr_checks(branch)
            output = snapshot.combined_output
            if snapshot.exit_status != 0 and not is_benign(output):
                # a red quality gate is reported as such, not as a generic report failure
                self.enforce_quality_gate(output, pr_info)
            return step_from_check_output(
                snapshot.exit_status, output, attempt, REPORT_MESSAGES, value=output
            )

        return retry_with_status(REPORT_LABEL, execute, cfg=self.poll, sleeper=self.sleeper) or ""

    def enforce_quality_gate(self, report: str, pr_info: PrInfo) -> None:
        if not self.quality_gate:
            return
        line = find_gate_line(report, self.quality_gate)
        if not gate_failed(line):
            return
        raise QualityGateError(self.quality_gate, resolve_details_url(line, pr_info))

    def await_report_and_enforce_quality(self, branch: str) -> PrInfo:
        pr_info = self.gh.pr_info(branch)
        report = self._collect_report(branch, pr_info)
        if report:
            print(report, file=self.stream or sys.stdout)
        self.enforce_quality_gate(report, pr_info)
        return pr_info


__all__ = [
    "PullRequestOrchestrator",
    "find_gate_line",
    "gate_failed",
    "has_conflicts",
    "is_existing_pr_message",
    "resolve_details_url",
]
