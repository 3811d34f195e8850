"""Plain data records shared across the workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class CommandOutcome:
    """Result of exactly one external command invocation."""

    stdout: str
    stderr: str
    exit_status: int

    @property
    def success(self) -> bool:
        return self.exit_status == 0

    @property
    def combined_output(self) -> str:
        """stdout and stderr joined by a newline, blank streams dropped."""
        parts = [part for part in (self.stdout, self.stderr) if part.strip()]
        return "\n".join(parts).strip()


@dataclass(frozen=True)
class IssueRecord:
    """Canonical in-memory representation of the issue a run works on."""

    title: str
    number: str
    canonical_branch: str

    @property
    def reference(self) -> str:
        return f"{self.title} #{self.number}"

    @property
    def commit_message(self) -> str:
        return self.reference

    @property
    def pr_title(self) -> str:
        return self.reference

    @property
    def pr_body(self) -> str:
        return f"closes #{self.number}"


@dataclass(frozen=True)
class OperationSelection:
    commit: bool = False
    push: bool = False
    pr: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.commit or self.push or self.pr)

    def enabled(self) -> list[str]:
        return [name for name in ("commit", "push", "pr") if getattr(self, name)]


@dataclass(frozen=True)
class RetryAttempt:
    attempt: int
    max_attempts: int
    last_message: str | None = None

    @property
    def is_last(self) -> bool:
        return self.attempt >= self.max_attempts


class BranchState(str, Enum):
    ON_MAIN = "on_main"
    ON_ISSUE_BRANCH = "on_issue_branch"
    ON_OTHER_BRANCH = "on_other_branch"


@dataclass(frozen=True)
class BranchAlignmentDecision:
    state: BranchState
    target_branch: str
    should_pull_main: bool
    should_create_branch: bool
    should_warn: bool


class FileState(str, Enum):
    UNTRACKED = "untracked"
    STAGED = "staged"
    UNSTAGED = "unstaged"  # working-tree edits not (fully) staged


@dataclass(frozen=True)
class StatusEntry:
    path: str
    index: str
    worktree: str
    state: FileState


@dataclass(frozen=True)
class WorkingTreeStatus:
    entries: list[StatusEntry] = field(default_factory=list)

    @property
    def untracked(self) -> list[str]:
        return [e.path for e in self.entries if e.state is FileState.UNTRACKED]

    @property
    def unstaged(self) -> list[str]:
        return [e.path for e in self.entries if e.state is FileState.UNSTAGED]

    @property
    def staged(self) -> list[str]:
        return [e.path for e in self.entries if e.index not in (" ", "?")]

    @property
    def is_clean(self) -> bool:
        return not self.untracked and not self.unstaged


@dataclass(frozen=True)
class PrInfo:
    url: str | None = None
    title: str | None = None
    number: int | None = None


__all__ = [
    "BranchAlignmentDecision",
    "BranchState",
    "CommandOutcome",
    "FileState",
    "IssueRecord",
    "OperationSelection",
    "PrInfo",
    "RetryAttempt",
    "StatusEntry",
    "WorkingTreeStatus",
]
