"""Error taxonomy, failure formatting & redaction.

Every failure the workflow can surface derives from :class:`AutomationError`
so the top-level handler can print a clean message and exit non-zero without
a traceback. Lower layers attach the raw diagnostic text (stderr, ``gh``
output) as ``details``; :func:`format_failure_message` glues the two together.

Public API:
- AutomationError and its subclasses
- format_failure_message(summary, details) -> str
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from .models import CommandOutcome

# Simple token patterns; can be expanded (e.g., GitHub token, private key markers)
_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gho_[A-Za-z0-9]{20,40}"),  # GitHub OAuth tokens (gh auth)
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
]

_REDACTION_PLACEHOLDER = "<redacted>"


def format_failure_message(summary: str, details: str | None = None) -> str:
    """Append trimmed diagnostic text to a summary line, if there is any."""
    if details is None:
        return summary
    trimmed = details.strip()
    if not trimmed:
        return summary
    return f"{summary}\n{trimmed}"


class AutomationError(RuntimeError):
    """Base class for every expected workflow failure."""

    def __init__(self, summary: str, details: str | None = None) -> None:
        self.summary = summary
        self.details = details
        super().__init__(format_failure_message(summary, details))


class ExecutionError(AutomationError):
    """The external command could not be spawned at all."""


class CommandError(AutomationError):
    """The external command ran but exited non-zero."""

    def __init__(self, summary: str, outcome: CommandOutcome) -> None:
        self.outcome = outcome
        super().__init__(summary, outcome.stderr)


class ConfigError(AutomationError):
    pass


class ValidationError(AutomationError):
    """Malformed issue line, empty operation selection, wrong issue title."""


class RepositoryError(AutomationError):
    pass


class InteractiveInputRequiredError(AutomationError):
    def __init__(self, summary: str | None = None) -> None:
        super().__init__(
            summary
            or "Interactive input is required. Please rerun this command in a TTY environment."
        )


class UserCancelledError(AutomationError):
    def __init__(self, summary: str = "Operation cancelled by user.") -> None:
        super().__init__(summary)


class BranchMismatchError(AutomationError):
    def __init__(self, branch: str, issue_number: str) -> None:
        self.branch = branch
        self.issue_number = issue_number
        super().__init__(
            "The issue number does not match the branch number.",
            "\n".join(
                [
                    f"  Issue number: #{issue_number}",
                    f"  Current branch: {branch}",
                    "Switch to the correct branch or create a new one, then rerun.",
                ]
            ),
        )


class RetryExhaustedError(AutomationError):
    def __init__(self, label: str, attempts: int, last_message: str | None = None) -> None:
        self.label = label
        self.attempts = attempts
        self.last_message = last_message
        super().__init__(f"{label} failed.", last_message)


class QualityGateError(AutomationError):
    def __init__(self, gate: str, details_url: str) -> None:
        self.gate = gate
        self.details_url = details_url
        super().__init__(
            f"{gate} found issues.",
            f"Details: {details_url}\nFix, commit, push, rerun.",
        )


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Redact sensitive tokens in arbitrary text."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    Typed workflow errors map straight to their category; anything else
    falls back to keyword sniffing on the message (rate limits and network
    hiccups are flagged transient).
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__

    if isinstance(exc, UserCancelledError):
        return ErrorInfo("cancelled", redact(msg), name)
    if isinstance(exc, (ValidationError, BranchMismatchError, ConfigError)):
        return ErrorInfo("validation", redact(msg), name)
    if isinstance(exc, RepositoryError):
        return ErrorInfo("repository", redact(msg), name)
    if isinstance(exc, (RetryExhaustedError, QualityGateError)):
        details: dict[str, Any] | None = None
        if isinstance(exc, QualityGateError):
            details = {"details_url": exc.details_url}
        return ErrorInfo("ci", redact(msg), name, details=details)
    if "rate limit" in low or "secondary rate" in low or "abuse" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True)
    if any(k in low for k in ("timeout", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name, transient=True)
    return ErrorInfo("generic", redact(msg), name)


__all__ = [
    "AutomationError",
    "BranchMismatchError",
    "CommandError",
    "ConfigError",
    "ErrorInfo",
    "ExecutionError",
    "InteractiveInputRequiredError",
    "QualityGateError",
    "RepositoryError",
    "RetryExhaustedError",
    "UserCancelledError",
    "ValidationError",
    "classify_error",
    "format_failure_message",
    "redact",
]
