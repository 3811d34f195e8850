"""GitHub CLI (``gh``) abstraction.

Encapsulates every ``gh`` invocation the workflow makes so command
construction, repository scoping (``-R owner/repo``) and JSON parsing live in
one place. Read-only calls go through :func:`run_with_retries` so a rate
limit does not abort a run; state-changing and polling calls do not.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import AutomationError, CommandError
from .models import CommandOutcome, PrInfo
from .process import Runner
from .retry import RetryConfig, run_with_retries

GH = "gh"
PR_INFO_FIELDS = "url,title,number"
MERGE_FIELDS = "mergeable,mergeStateStatus,state"


@dataclass
class GitHubCLIConfig:
    repo: str | None = None  # owner/repo; if None gh uses the current directory's remote
    base_branch: str = "main"
    labels: list[str] = field(default_factory=lambda: ["enhancement"])
    transient: RetryConfig = field(default_factory=RetryConfig)


def parse_json_object(payload: str, what: str) -> dict[str, Any]:
    """Parse ``gh --json`` output; anything but a JSON object is a contract break."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise AutomationError(f"{what} failed. JSON parse error.", str(exc)) from exc
    if not isinstance(data, dict):
        raise AutomationError(f"{what} failed. Expected a JSON object.", payload)
    return data


class GitHubCLI:
    def __init__(self, runner: Runner, cfg: GitHubCLIConfig | None = None) -> None:
        self.runner = runner
        self.cfg = cfg or GitHubCLIConfig()

    # --- internal helpers -------------------------------------------------
    def _args(self, *parts: str) -> list[str]:
        args = list(parts)
        if self.cfg.repo:
            args.extend(["-R", self.cfg.repo])
        return args

    def _read(self, args: Sequence[str], description: str | None = None) -> CommandOutcome:
        return run_with_retries(
            lambda: self.runner.run(GH, list(args), description=description),
            cfg=self.cfg.transient,
        )

    # --- issues -----------------------------------------------------------
    def issue_title(self, number: str) -> str:
        outcome = self._read(
            self._args("issue", "view", number, "--json", "title", "--jq", ".title"),
            description="Validate issue information",
        )
        return outcome.stdout.strip()

    # --- pull requests ----------------------------------------------------
    def pr_create(self, title: str, body: str) -> CommandOutcome:
        args = ["pr", "create", "--title", title, "--body", body]
        for label in self.cfg.labels:
            args.extend(["--label", label])
        args.extend(["--base", self.cfg.base_branch])
        return self.runner.run(GH, self._args(*args), allow_nonzero=True)

    def pr_checks(self, branch: str) -> CommandOutcome:
        return self.runner.run(GH, self._args("pr", "checks", branch), allow_nonzero=True)

    def pr_checks_watch(self, branch: str) -> CommandOutcome:
        return self.runner.run(
            GH,
            self._args("pr", "checks", "--watch", branch),
            capture_output=False,
            allow_nonzero=True,
        )

    def pr_info(self, branch: str) -> PrInfo:
        try:
            outcome = self._read(
                self._args("pr", "view", branch, "--json", PR_INFO_FIELDS), description="PR info"
            )
        except CommandError as exc:
            raise AutomationError("PR info failed.", exc.outcome.combined_output) from exc
        data = parse_json_object(outcome.stdout, "PR info")
        number = data.get("number")
        return PrInfo(
            url=data.get("url") if isinstance(data.get("url"), str) else None,
            title=data.get("title") if isinstance(data.get("title"), str) else None,
            number=number if isinstance(number, int) else None,
        )

    def pr_merge_state(self, branch: str) -> dict[str, Any]:
        outcome = self._read(self._args("pr", "view", branch, "--json", MERGE_FIELDS))
        return parse_json_object(outcome.stdout, "PR merge state")


__all__ = ["GitHubCLI", "GitHubCLIConfig", "parse_json_object"]
