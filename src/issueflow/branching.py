"""Branch alignment: decide where the workflow commits relative to the issue.

The decision itself (:func:`decide_alignment`) is pure so it can be tested
without git; :class:`BranchAligner` applies it. Pulling the main branch
always happens before a branch is created or switched to, and a developer's
non-main branch is never renamed or switched away from.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from .errors import BranchMismatchError, RepositoryError
from .logging import get_logger
from .models import BranchAlignmentDecision, BranchState, IssueRecord
from .repository import RepositoryInspector, RepositoryMutator
from .ux import print_warning

DEFAULT_MAIN_BRANCHES = ("main", "master")

_issue_branch_re = re.compile(r"^(\d+)-")


def branch_issue_number(branch: str) -> str | None:
    match = _issue_branch_re.match(branch)
    return match.group(1) if match else None


def ensure_branch_matches_issue(
    branch: str, issue: IssueRecord, main_branches: Sequence[str] = DEFAULT_MAIN_BRANCHES
) -> None:
    """Refuse to continue on a branch that belongs to a different issue."""
    if branch in main_branches:
        return
    number = branch_issue_number(branch)
    if number is not None and number != issue.number:
        raise BranchMismatchError(branch, issue.number)


def classify_branch(
    branch: str, issue: IssueRecord, main_branches: Sequence[str] = DEFAULT_MAIN_BRANCHES
) -> BranchState:
    if branch in main_branches:
        return BranchState.ON_MAIN
    if branch == issue.canonical_branch:
        return BranchState.ON_ISSUE_BRANCH
    return BranchState.ON_OTHER_BRANCH


def decide_alignment(
    current_branch: str,
    issue: IssueRecord,
    main_branches: Sequence[str] = DEFAULT_MAIN_BRANCHES,
) -> BranchAlignmentDecision:
    ensure_branch_matches_issue(current_branch, issue, main_branches)
    state = classify_branch(current_branch, issue, main_branches)
    if state is BranchState.ON_MAIN:
        should_create = current_branch != issue.canonical_branch
        return BranchAlignmentDecision(
            state=state,
            target_branch=issue.canonical_branch if should_create else current_branch,
            should_pull_main=True,
            should_create_branch=should_create,
            should_warn=False,
        )
    return BranchAlignmentDecision(
        state=state,
        target_branch=current_branch,
        should_pull_main=False,
        should_create_branch=False,
        should_warn=state is BranchState.ON_OTHER_BRANCH,
    )


class BranchAligner:
    def __init__(
        self,
        inspector: RepositoryInspector,
        mutator: RepositoryMutator,
        *,
        main_branches: Sequence[str] = DEFAULT_MAIN_BRANCHES,
        switch_existing: bool = True,
    ) -> None:
        self.inspector = inspector
        self.mutator = mutator
        self.main_branches = tuple(main_branches)
        self.switch_existing = switch_existing
        self.logger = get_logger()

    def _canonical_exists(self, branch: str) -> bool:
        try:
            return self.inspector.branch_exists(branch, remote=self.mutator.remote)
        except RepositoryError as exc:
            # a failed probe means "does not exist"; creation will report real problems
            self.logger.debug("branch existence probe failed", branch=branch, error=str(exc))
            return False

    def plan(self, issue: IssueRecord) -> tuple[str, BranchAlignmentDecision]:
        """Read the current branch and decide, without touching the repository."""
        current = self.inspector.current_branch()
        return current, decide_alignment(current, issue, self.main_branches)

    def align(
        self, issue: IssueRecord, planned: tuple[str, BranchAlignmentDecision] | None = None
    ) -> str:
        """Return the branch the rest of the workflow must operate on."""
        current, decision = planned or self.plan(issue)
        self.logger.log_operation(
            "branch_alignment",
            branch=current,
            issue_number=issue.number,
            state=decision.state.value,
            target=decision.target_branch,
        )
        if decision.should_pull_main:
            self.mutator.pull(current)
        if decision.should_create_branch:
            if self.switch_existing and self._canonical_exists(decision.target_branch):
                self.mutator.switch_branch(decision.target_branch)
            else:
                self.mutator.create_branch(decision.target_branch)
        if decision.should_warn:
            print_warning(
                f"The current branch ({current}) differs from the recommended branch name "
                f"({issue.canonical_branch}). Continuing on the existing branch."
            )
        return decision.target_branch


__all__ = [
    "BranchAligner",
    "branch_issue_number",
    "classify_branch",
    "decide_alignment",
    "ensure_branch_matches_issue",
]
