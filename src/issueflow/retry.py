"""Bounded polling & retry helpers.

Two loops live here:

``retry_with_status``
    Fixed-delay, bounded-attempt polling for results that are eventually
    consistent (CI checks registering, check reports becoming fetchable).
    Each attempt returns a :class:`StepResult`: ``success`` ends the loop,
    ``retry`` sleeps and tries again, ``failed`` ends it with
    :class:`RetryExhaustedError` straight away. A ``retry`` on the last
    attempt degrades to success when its reason is benign ("not reported
    yet", "still pending") and raises :class:`RetryExhaustedError` otherwise.

``run_with_retries``
    Exponential backoff with jitter for read-only ``gh`` calls that fail
    with rate-limit / abuse-detection output.

The "is this output pending or broken?" decision is made in exactly one
place, :func:`classify_check_output`, against :data:`NO_CHECKS_PATTERNS`
and :data:`PENDING_TOKENS`.

Environment overrides:
  ISSUEFLOW_RETRY_MAX_SLEEP (cap for transient backoff sleeps)
  ISSUEFLOW_RETRY_ATTEMPTS / ISSUEFLOW_RETRY_DELAY are read by
  :mod:`issueflow.config` into the :class:`PollConfig` the workflow builds.
"""

from __future__ import annotations

import os
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from .errors import CommandError, RetryExhaustedError
from .logging import get_logger
from .models import RetryAttempt
from .ux import countdown, print_info, print_operation_status

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_DELAY_SECONDS = 5.0

NO_CHECKS_PATTERNS = ("no checks reported",)
PENDING_TOKENS = ("pending", "in progress", "queued")
TRANSIENT_TOKENS = (
    "rate limit",
    "abuse detection",
    "secondary rate",
)

_pending_re = re.compile(r"\b(" + "|".join(re.escape(t) for t in PENDING_TOKENS) + r")\b")
_RE_RETRY_AFTER = re.compile(r"retry[-\s]after:?\s*(\d+)", re.IGNORECASE)
_RE_SECONDS_HINT = re.compile(r"wait\s*(\d+)\s*seconds", re.IGNORECASE)
_JITTER = random.SystemRandom()


class CheckState(str, Enum):
    NOT_REPORTED = "not_reported"
    PENDING = "pending"
    FAILED = "failed"


def classify_check_output(output: str) -> CheckState:
    """Classify non-zero ``gh pr checks`` output.

    Only the two benign states are eligible for retry; everything else is a
    genuine failure.
    """
    low = output.lower()
    if any(pat in low for pat in NO_CHECKS_PATTERNS):
        return CheckState.NOT_REPORTED
    if _pending_re.search(low):
        return CheckState.PENDING
    return CheckState.FAILED


def is_benign(output: str) -> bool:
    return classify_check_output(output) is not CheckState.FAILED


class StepStatus(str, Enum):
    SUCCESS = "success"
    RETRY = "retry"
    FAILED = "failed"


@dataclass(frozen=True)
class StepResult(Generic[T]):
    status: StepStatus
    value: T | None = None
    message: str = ""
    benign: bool = False

    @classmethod
    def success(cls, value: T | None = None, message: str = "") -> StepResult[T]:
        return cls(StepStatus.SUCCESS, value, message)

    @classmethod
    def retry(
        cls, message: str = "", *, benign: bool = True, fallback: T | None = None
    ) -> StepResult[T]:
        """Ask for another attempt; ``fallback`` is returned if a benign retry degrades."""
        return cls(StepStatus.RETRY, fallback, message, benign)

    @classmethod
    def failed(cls, message: str = "") -> StepResult[T]:
        return cls(StepStatus.FAILED, None, message)


@dataclass(frozen=True)
class PhaseMessages:
    """Human-readable lines for one polling phase."""

    not_reported: str
    pending: str
    final_not_reported: str
    final_pending: str

    def for_state(self, state: CheckState, final: bool) -> str:
        if state is CheckState.NOT_REPORTED:
            return self.final_not_reported if final else self.not_reported
        return self.final_pending if final else self.pending


CHECK_MESSAGES = PhaseMessages(
    not_reported="CI not registered yet.",
    pending="CI still pending.",
    final_not_reported="CI never registered. Continuing.",
    final_pending="CI still pending. Continuing.",
)
REPORT_MESSAGES = PhaseMessages(
    not_reported="CI report not ready.",
    pending="CI report pending.",
    final_not_reported="CI report never arrived. Continuing.",
    final_pending="CI report still pending. Continuing.",
)


def step_from_check_output(
    exit_status: int,
    output: str,
    attempt: RetryAttempt,
    messages: PhaseMessages,
    value: T | None = None,
) -> StepResult[T]:
    """Turn one ``gh pr checks`` outcome into a polling step."""
    if exit_status == 0:
        return StepResult.success(value, output)
    state = classify_check_output(output)
    if state is CheckState.FAILED:
        return StepResult.failed(output)
    note = messages.for_state(state, attempt.is_last)
    print_info(note if attempt.is_last else f"{note} Retry soon.")
    return StepResult.retry(output, benign=True, fallback=value)


@dataclass
class PollConfig:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delay_seconds: float = DEFAULT_DELAY_SECONDS


def _default_sleeper(seconds: float) -> None:
    countdown(seconds, "⏳ Waiting")


def retry_with_status(
    label: str,
    execute: Callable[[RetryAttempt], StepResult[T]],
    *,
    cfg: PollConfig | None = None,
    sleeper: Callable[[float], None] | None = None,
) -> T | None:
    cfg = cfg or PollConfig()
    sleep = sleeper or _default_sleeper
    logger = get_logger()
    max_attempts = max(1, cfg.max_attempts)
    last_message: str | None = None
    for number in range(1, max_attempts + 1):
        attempt = RetryAttempt(attempt=number, max_attempts=max_attempts, last_message=last_message)
        attempt_label = f"{label} {number}/{max_attempts}"
        logger.debug(
            "poll attempt", operation="poll", step=label, attempt=number, max_attempts=max_attempts
        )
        try:
            result = execute(attempt)
        except Exception:
            print_operation_status(attempt_label, "failed")
            raise
        if result.message.strip():
            last_message = result.message
        if result.status is StepStatus.SUCCESS:
            print_operation_status(attempt_label, "success")
            return result.value
        if result.status is StepStatus.FAILED:
            print_operation_status(attempt_label, "failed")
            raise RetryExhaustedError(label, number, last_message)
        if attempt.is_last:
            if result.benign:
                print_operation_status(attempt_label, "continuing")
                logger.info(
                    "poll degraded to success",
                    step=label,
                    attempt=number,
                    max_attempts=max_attempts,
                )
                return result.value
            print_operation_status(attempt_label, "failed")
            raise RetryExhaustedError(label, number, last_message)
        print_operation_status(attempt_label, "retry")
        sleep(cfg.delay_seconds)
    raise RetryExhaustedError(label, max_attempts, last_message)  # pragma: no cover


# --- transient hosting-CLI retry ------------------------------------------


def _extract_explicit_backoff(text: str) -> float | None:
    """Extract an explicit backoff (seconds) from error output.

    Supports patterns like:
      Retry-After: 12
      retry after 12
      wait 30 seconds
    Returns None if no valid positive value found.
    """
    if not text:
        return None
    for pattern in (_RE_RETRY_AFTER, _RE_SECONDS_HINT):
        m = pattern.search(text)
        if m:
            val = float(m.group(1))
            return val if val > 0 else None
    return None


@dataclass
class RetryConfig:
    attempts: int = 3
    base_sleep: float = 0.5


def is_transient(output: str) -> bool:
    out_lower = output.lower()
    return any(tok in out_lower for tok in TRANSIENT_TOKENS)


def _compute_sleep(attempt: int, cfg: RetryConfig, out: str) -> float:
    explicit = _extract_explicit_backoff(out)
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    max_cap_env = os.environ.get("ISSUEFLOW_RETRY_MAX_SLEEP")
    if max_cap_env:
        try:
            cap = float(max_cap_env)
        except ValueError:
            return sleep_for
        if cap >= 0:
            sleep_for = min(sleep_for, cap)
    return sleep_for


def run_with_retries(
    fn: Callable[[], T],
    *,
    cfg: RetryConfig | None = None,
    sleeper: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn``; retry only :class:`CommandError`s whose output looks transient."""
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except CommandError as exc:
            out = exc.outcome.combined_output
            if attempt >= attempts or not is_transient(out):
                raise
            sleep_for = _compute_sleep(attempt, cfg, out)
            get_logger().warning(
                f"[retry] transient error, attempt {attempt}/{attempts}, sleeping {sleep_for:.2f}s",
                attempt=attempt,
                max_attempts=attempts,
            )
            sleeper(sleep_for)
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = [
    "CHECK_MESSAGES",
    "CheckState",
    "PhaseMessages",
    "PollConfig",
    "REPORT_MESSAGES",
    "RetryConfig",
    "StepResult",
    "StepStatus",
    "classify_check_output",
    "is_benign",
    "is_transient",
    "retry_with_status",
    "run_with_retries",
    "step_from_check_output",
]
