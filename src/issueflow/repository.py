"""Git repository access split into read-only and state-changing halves.

``RepositoryInspector`` only queries (branch, porcelain status, staged
files, staged diffs). ``RepositoryMutator`` owns every command that changes
repository state and streams those commands' output to the terminal.
Non-zero git exits surface as :class:`RepositoryError` carrying git's stderr.
"""

from __future__ import annotations

from collections.abc import Sequence

from .errors import CommandError, RepositoryError
from .logging import get_logger
from .models import CommandOutcome, FileState, StatusEntry, WorkingTreeStatus
from .process import Runner

GIT = "git"
UNTRACKED_PREFIX = "??"
IGNORED_PREFIX = "!!"
INDEX_COLUMN = 0
WORKTREE_COLUMN = 1
STATUS_WIDTH = 2
SHOW_REF_MISSING = 1
LS_REMOTE_MISSING = 2


def parse_porcelain(output: str) -> WorkingTreeStatus:
    """Classify ``git status --porcelain`` (v1) lines.

    Column 0 is the index state, column 1 the working-tree state. Any
    non-blank working-tree column means the file still has unstaged edits,
    whether or not part of it is staged.
    """
    entries: list[StatusEntry] = []
    for raw in output.splitlines():
        line = raw.rstrip()
        if len(line) < STATUS_WIDTH or line.startswith(IGNORED_PREFIX):
            continue
        index, worktree = line[INDEX_COLUMN], line[WORKTREE_COLUMN]
        path = line[STATUS_WIDTH + 1 :] if len(line) > STATUS_WIDTH else ""
        if " -> " in path:  # renames report "old -> new"
            path = path.split(" -> ", 1)[1]
        if line.startswith(UNTRACKED_PREFIX):
            state = FileState.UNTRACKED
        elif worktree != " ":
            state = FileState.UNSTAGED
        else:
            state = FileState.STAGED
        entries.append(StatusEntry(path=path, index=index, worktree=worktree, state=state))
    return WorkingTreeStatus(entries=entries)


class _GitBase:
    def __init__(self, runner: Runner) -> None:
        self.runner = runner
        self.logger = get_logger()

    def _git(
        self,
        args: Sequence[str],
        *,
        summary: str,
        stream: bool = False,
        description: str | None = None,
    ) -> CommandOutcome:
        try:
            return self.runner.run(
                GIT, list(args), capture_output=not stream, description=description
            )
        except CommandError as exc:
            raise RepositoryError(summary, exc.outcome.stderr) from exc


class RepositoryInspector(_GitBase):
    def current_branch(self) -> str:
        outcome = self._git(
            ["branch", "--show-current"], summary="Could not determine the current branch."
        )
        branch = outcome.stdout.strip()
        if not branch:
            raise RepositoryError(
                "HEAD is detached.", "Check out a branch before running issueflow."
            )
        return branch

    def working_tree_status(self) -> WorkingTreeStatus:
        outcome = self._git(["status", "--porcelain"], summary="Could not read git status.")
        return parse_porcelain(outcome.stdout)

    def staged_files(self) -> set[str]:
        outcome = self._git(
            ["diff", "--cached", "--name-only"], summary="Could not list staged files."
        )
        return {line.strip() for line in outcome.stdout.splitlines() if line.strip()}

    def diff_of_staged(self, path: str) -> str:
        """Staged diff for ``path``; empty string when nothing is staged for it."""
        outcome = self._git(
            ["diff", "--cached", "--", path], summary=f"Could not read the staged diff of {path}."
        )
        return outcome.stdout

    def branch_exists(self, name: str, remote: str | None = None) -> bool:
        """True when ``name`` exists locally or, if ``remote`` is given, on that remote.

        ``show-ref`` exits 1 and ``ls-remote --exit-code`` exits 2 for a
        missing ref; any other failure raises :class:`RepositoryError`.
        """
        local = self.runner.run(
            GIT, ["show-ref", "--verify", "--quiet", f"refs/heads/{name}"], allow_nonzero=True
        )
        if local.success:
            return True
        if local.exit_status != SHOW_REF_MISSING:
            raise RepositoryError(f"Could not inspect branch {name}.", local.stderr)
        if remote is None:
            return False
        remote_probe = self.runner.run(
            GIT, ["ls-remote", "--exit-code", "--heads", remote, name], allow_nonzero=True
        )
        if remote_probe.success:
            return True
        if remote_probe.exit_status != LS_REMOTE_MISSING:
            raise RepositoryError(
                f"Could not query {remote} for branch {name}.", remote_probe.stderr
            )
        return False


class RepositoryMutator(_GitBase):
    def __init__(self, runner: Runner, remote: str = "origin") -> None:
        super().__init__(runner)
        self.remote = remote

    def create_branch(self, name: str) -> None:
        self._git(
            ["checkout", "-b", name],
            summary=f"Could not create branch {name}.",
            stream=True,
            description=f"Create branch {name}",
        )

    def switch_branch(self, name: str) -> None:
        self._git(
            ["checkout", name],
            summary=f"Could not switch to branch {name}.",
            stream=True,
            description=f"Switch to branch {name}",
        )

    def pull(self, remote_branch: str) -> None:
        self._git(
            ["pull", self.remote, remote_branch],
            summary=f"Could not pull {self.remote}/{remote_branch}.",
            stream=True,
            description=f"Pull latest {remote_branch} branch",
        )

    def commit(self, message: str) -> None:
        self._git(
            ["commit", "-m", message],
            summary="git commit failed.",
            stream=True,
            description="git commit",
        )

    def push(self, branch: str) -> None:
        self._git(
            ["push", "-u", self.remote, branch],
            summary="git push failed.",
            stream=True,
            description="git push",
        )


__all__ = ["RepositoryInspector", "RepositoryMutator", "parse_porcelain"]
