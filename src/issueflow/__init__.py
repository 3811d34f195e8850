"""issueflow - issue-driven git and pull request release automation.

High-level public API:

from issueflow import ReleaseWorkflow, load_config, parse_issue_line

issue = parse_issue_line("Fix login bug #101")
print(issue.canonical_branch)  # 101-fix-login-bug

The ``issueflow`` console script wraps :class:`ReleaseWorkflow` with
terminal / piped input handling and a top-level error handler.
"""

from __future__ import annotations

__version__ = "0.3.0"

from .config import FlowConfig, load_config  # noqa: E402
from .errors import AutomationError  # noqa: E402
from .models import CommandOutcome, IssueRecord, OperationSelection  # noqa: E402
from .parser import canonical_branch, parse_issue_line, slugify  # noqa: E402
from .workflow import ReleaseWorkflow, run_workflow  # noqa: E402

__all__ = [
    "AutomationError",
    "CommandOutcome",
    "FlowConfig",
    "IssueRecord",
    "OperationSelection",
    "ReleaseWorkflow",
    "__version__",
    "canonical_branch",
    "load_config",
    "parse_issue_line",
    "run_workflow",
    "slugify",
]
