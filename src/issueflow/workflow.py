"""Top-level release workflow: SETUP → CONFIGURE → COMMIT? → PUSH? → PR_FLOW? → DONE.

Repository state is only changed after the working tree, the package
manifest, the issue line and (when a PR is requested) the issue on GitHub
have all been validated; the branch is pulled and created right before
the first selected step. Each selected step
runs to completion before the next one starts; skipped steps are logged
and never fatal.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from .branching import BranchAligner
from .config import FlowConfig
from .errors import ValidationError
from .github_cli import GitHubCLI, GitHubCLIConfig
from .logging import get_logger
from .manifest import ManifestCheck
from .models import BranchAlignmentDecision, IssueRecord, OperationSelection, PrInfo
from .parser import parse_issue_line
from .process import Runner, ensure_command
from .prompts import OPERATION_LABELS, ConfirmationGate, format_selection
from .pull_requests import PullRequestOrchestrator
from .repository import RepositoryInspector, RepositoryMutator
from .retry import PollConfig, RetryConfig
from .ux import print_info, print_separator, print_step, print_success

BranchPlan = tuple[str, BranchAlignmentDecision]

STAGING_HELP = "\n".join(
    [
        "Stage your changes with:",
        "  git add .",
        "Rerun this command after staging.",
    ]
)


class WorkflowStage(str, Enum):
    SETUP = "setup"
    CONFIGURE = "configure"
    COMMIT = "commit"
    PUSH = "push"
    PR_FLOW = "pr"
    DONE = "done"


@dataclass(frozen=True)
class WorkflowResult:
    issue: IssueRecord
    branch: str
    selection: OperationSelection
    pr_info: PrInfo | None = None


class ReleaseWorkflow:
    def __init__(
        self,
        cfg: FlowConfig,
        runner: Runner,
        gate: ConfirmationGate,
        *,
        sleeper: Callable[[float], None] | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self.cfg = cfg
        self.runner = runner
        self.gate = gate
        self.stream = stream
        self.logger = get_logger()
        self.inspector = RepositoryInspector(runner)
        self.mutator = RepositoryMutator(runner, remote=cfg.remote)
        self.aligner = BranchAligner(
            self.inspector,
            self.mutator,
            main_branches=cfg.main_branches,
            switch_existing=cfg.switch_existing,
        )
        self.manifest = ManifestCheck(
            self.inspector,
            gate,
            cfg.manifest_file,
            require_version_bump=cfg.require_version_bump,
        )
        self.gh = GitHubCLI(
            runner,
            GitHubCLIConfig(
                repo=cfg.github_repo,
                base_branch=cfg.base_branch,
                labels=list(cfg.labels),
                transient=RetryConfig(
                    attempts=cfg.transient_attempts, base_sleep=cfg.transient_base_sleep
                ),
            ),
        )
        self.pull_requests = PullRequestOrchestrator(
            self.gh,
            poll=PollConfig(max_attempts=cfg.max_attempts, delay_seconds=cfg.delay_seconds),
            initial_wait_seconds=cfg.initial_wait_seconds,
            quality_gate=cfg.quality_gate,
            conflict_states=tuple(cfg.conflict_states),
            sleeper=sleeper,
            stream=stream,
        )
        self.stage = WorkflowStage.SETUP

    # --- SETUP ------------------------------------------------------------
    def ensure_staging_clean(self) -> None:
        status = self.inspector.working_tree_status()
        if status.is_clean:
            return
        self.logger.debug(
            "working tree not fully staged",
            untracked=status.untracked,
            unstaged=status.unstaged,
        )
        raise ValidationError("🚫 Not all changes are staged.", STAGING_HELP)

    def setup(self) -> tuple[IssueRecord, BranchPlan]:
        """Validate everything that needs no network; the repository is not changed."""
        ensure_command(self.runner, "git")
        self.ensure_staging_clean()
        self.manifest.run()
        issue = parse_issue_line(self.gate.read_issue_line())
        plan = self.aligner.plan(issue)
        print_success("Pre-flight checks", stream=self.stream)
        return issue, plan

    # --- CONFIGURE --------------------------------------------------------
    def configure(self, issue: IssueRecord) -> OperationSelection:
        selection = self.gate.select_operations()
        if selection.is_empty:
            raise ValidationError(
                "No operations selected.", "Select at least one of commit, push or PR."
            )
        print(
            f"\n🚀 Run → #{issue.number} {issue.title} · {format_selection(selection)}",
            file=self.stream or sys.stdout,
        )
        return selection

    def verify_issue(self, issue: IssueRecord) -> None:
        """Make sure ``gh`` is usable and the issue exists with the given title."""
        ensure_command(self.runner, "gh")
        if not self.cfg.verify_issue:
            return
        github_title = self.gh.issue_title(issue.number)
        if not github_title:
            raise ValidationError(f"🚫 Issue #{issue.number} was not found.")
        if github_title != issue.title:
            raise ValidationError(
                "🚫 Issue title does not match.",
                "\n".join(
                    [
                        f"  Provided title: {issue.title}",
                        f"  GitHub title:   {github_title}",
                        "Verify the issue number and title.",
                    ]
                ),
            )

    # --- steps ------------------------------------------------------------
    def _skip(self, stage: WorkflowStage) -> None:
        label = OPERATION_LABELS[stage.value].split(" ", 1)[-1]
        print_info(f"💡 {label} skipped.", stream=self.stream)
        self.logger.log_step(stage.value, "skipped")

    def commit(self, issue: IssueRecord) -> None:
        print_step(OPERATION_LABELS["commit"], stream=self.stream)
        self.mutator.commit(issue.commit_message)

    def push(self, branch: str) -> None:
        print_step(OPERATION_LABELS["push"], stream=self.stream)
        self.mutator.push(branch)

    def pr_flow(self, issue: IssueRecord, branch: str) -> PrInfo:
        print_step(OPERATION_LABELS["pr"], stream=self.stream)
        self.pull_requests.create_or_reuse(issue.pr_title, issue.pr_body, branch)
        print_step("🧪 CI", stream=self.stream)
        self.pull_requests.await_checks(branch)
        if self.cfg.check_conflicts:
            self.pull_requests.check_conflicts(branch)
        print_step("🧾 Report", stream=self.stream)
        return self.pull_requests.await_report_and_enforce_quality(branch)

    def _enter(self, stage: WorkflowStage) -> None:
        self.stage = stage
        self.logger.log_step(stage.value, "started")

    # --- summaries --------------------------------------------------------
    def report_pr_completion(self, pr_info: PrInfo) -> None:
        out = self.stream or sys.stdout
        print_separator(stream=self.stream)
        print("\n🏁 All operations complete", file=out)
        if pr_info.url is not None:
            print("\n📦 PR:", file=out)
            print(f"  • URL: {pr_info.url}", file=out)
        if pr_info.title is not None:
            print(f"  • Title: {pr_info.title}", file=out)
        print("  • Status: ✅ All checks passed", file=out)
        print("\n👉 Request code review.", file=out)

    def report_partial_completion(self) -> None:
        print_separator(stream=self.stream)
        print("🏁 Selected steps done", file=self.stream or sys.stdout)

    # --- entry point ------------------------------------------------------
    def run(self) -> WorkflowResult:
        with self.logger.timed_operation("setup"):
            self._enter(WorkflowStage.SETUP)
            issue, plan = self.setup()

        with self.logger.timed_operation("configure", issue_number=issue.number):
            self._enter(WorkflowStage.CONFIGURE)
            selection = self.configure(issue)
            if selection.pr:
                self.verify_issue(issue)

        # first repository mutation: only after the issue has been verified
        with self.logger.timed_operation("align", issue_number=issue.number):
            branch = self.aligner.align(issue, plan)

        steps = (
            (WorkflowStage.COMMIT, selection.commit, lambda: self.commit(issue)),
            (WorkflowStage.PUSH, selection.push, lambda: self.push(branch)),
        )
        for stage, enabled, action in steps:
            if not enabled:
                self._skip(stage)
                continue
            with self.logger.timed_operation(stage.value, branch=branch):
                self._enter(stage)
                action()

        pr_info: PrInfo | None = None
        if selection.pr:
            with self.logger.timed_operation(WorkflowStage.PR_FLOW.value, branch=branch):
                self._enter(WorkflowStage.PR_FLOW)
                pr_info = self.pr_flow(issue, branch)
            self.report_pr_completion(pr_info)
        else:
            self._skip(WorkflowStage.PR_FLOW)
            self.report_partial_completion()

        self._enter(WorkflowStage.DONE)
        return WorkflowResult(issue=issue, branch=branch, selection=selection, pr_info=pr_info)


def run_workflow(
    cfg: FlowConfig,
    runner: Runner,
    gate: ConfirmationGate,
    *,
    sleeper: Callable[[float], None] | None = None,
    stream: TextIO | None = None,
) -> int:
    """Run the full workflow; errors propagate to the caller's handler."""
    ReleaseWorkflow(cfg, runner, gate, sleeper=sleeper, stream=stream).run()
    return 0


__all__ = ["ReleaseWorkflow", "WorkflowResult", "WorkflowStage", "run_workflow"]
