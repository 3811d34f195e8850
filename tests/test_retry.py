from __future__ import annotations

import pytest

from issueflow import retry
from issueflow.errors import CommandError, RetryExhaustedError
from issueflow.models import CommandOutcome, RetryAttempt
from issueflow.retry import (
    CHECK_MESSAGES,
    CheckState,
    PollConfig,
    StepResult,
    classify_check_output,
    retry_with_status,
    step_from_check_output,
)

MAX_ATTEMPTS = 5


def _failing(output: str) -> CommandError:
    return CommandError("gh failed.", CommandOutcome(stdout="", stderr=output, exit_status=1))


def test_classifier_states():
    assert classify_check_output("no checks reported on the 'x' branch") is CheckState.NOT_REPORTED
    assert classify_check_output("build\tpending\t0\thttps://ci") is CheckState.PENDING
    assert classify_check_output("Some checks are still IN PROGRESS") is CheckState.PENDING
    assert classify_check_output("deploy queued") is CheckState.PENDING
    assert classify_check_output("build\tfail\t1m\thttps://ci") is CheckState.FAILED
    assert classify_check_output("") is CheckState.FAILED
    assert retry.is_benign("No Checks Reported")
    assert not retry.is_benign("unpendingly broken")


def test_success_on_last_attempt_performs_n_minus_one_delays():
    sleeps: list[float] = []
    seen: list[int] = []

    def execute(attempt: RetryAttempt) -> StepResult[str]:
        seen.append(attempt.attempt)
        assert attempt.max_attempts == MAX_ATTEMPTS
        if attempt.attempt < MAX_ATTEMPTS:
            return StepResult.retry("pending")
        return StepResult.success("done")

    result = retry_with_status(
        "Checks", execute, cfg=PollConfig(MAX_ATTEMPTS, 5.0), sleeper=sleeps.append
    )
    assert result == "done"
    assert seen == [1, 2, 3, 4, 5]
    assert sleeps == [5.0] * (MAX_ATTEMPTS - 1)


def test_immediate_success_never_sleeps():
    sleeps: list[float] = []
    result = retry_with_status(
        "Checks", lambda attempt: StepResult.success(42), sleeper=sleeps.append
    )
    assert result == 42
    assert sleeps == []


def test_benign_retry_degrades_to_success_on_last_attempt():
    sleeps: list[float] = []

    def execute(attempt: RetryAttempt) -> StepResult[str]:
        return step_from_check_output(
            1, "no checks reported on the '1-x' branch", attempt, CHECK_MESSAGES, value="partial"
        )

    result = retry_with_status(
        "Checks", execute, cfg=PollConfig(3, 1.0), sleeper=sleeps.append
    )
    assert result == "partial"
    assert len(sleeps) == 2


def test_non_benign_retry_on_last_attempt_raises():
    def execute(attempt: RetryAttempt) -> StepResult[None]:
        return StepResult.retry("still broken", benign=False)

    with pytest.raises(RetryExhaustedError) as excinfo:
        retry_with_status("Report", execute, cfg=PollConfig(2, 0), sleeper=lambda _: None)
    assert excinfo.value.attempts == 2
    assert excinfo.value.last_message == "still broken"
    assert "Report failed." in str(excinfo.value)


def test_genuine_failure_fails_on_first_attempt():
    calls: list[int] = []
    sleeps: list[float] = []

    def execute(attempt: RetryAttempt) -> StepResult[None]:
        calls.append(attempt.attempt)
        return step_from_check_output(1, "lint\tfail\t12s", attempt, CHECK_MESSAGES)

    with pytest.raises(RetryExhaustedError) as excinfo:
        retry_with_status("Checks", execute, cfg=PollConfig(5, 5.0), sleeper=sleeps.append)
    assert calls == [1]
    assert sleeps == []
    assert "lint\tfail" in str(excinfo.value)


def test_step_from_check_output_messages(capsys: pytest.CaptureFixture[str]):
    first = RetryAttempt(attempt=1, max_attempts=3)
    last = RetryAttempt(attempt=3, max_attempts=3)
    step = step_from_check_output(8, "build pending", first, CHECK_MESSAGES)
    assert step.status is retry.StepStatus.RETRY and step.benign
    assert "CI still pending. Retry soon." in capsys.readouterr().out
    step_from_check_output(8, "no checks reported", last, CHECK_MESSAGES)
    assert "CI never registered. Continuing." in capsys.readouterr().out
    ok = step_from_check_output(0, "all green", first, CHECK_MESSAGES, value="v")
    assert ok.status is retry.StepStatus.SUCCESS and ok.value == "v"


def test_exception_from_execute_propagates():
    def execute(attempt: RetryAttempt) -> StepResult[None]:
        raise ValueError("boom")

    with pytest.raises(ValueError):
        retry_with_status("Checks", execute, sleeper=lambda _: None)


def test_is_transient_tokens():
    assert retry.is_transient("Rate Limit exceeded")
    assert retry.is_transient("secondary rate limit triggered")
    assert retry.is_transient("ABUSE DETECTION mechanism")
    assert not retry.is_transient("some other error")


def test_run_with_retries_transient_then_success():
    attempts: list[int] = []
    sleeps: list[float] = []

    def fn() -> str:
        attempts.append(1)
        if len(attempts) < 2:
            raise _failing("API rate limit exceeded. Retry-After: 3")
        return "ok"

    result = retry.run_with_retries(
        fn, cfg=retry.RetryConfig(attempts=3, base_sleep=0.01), sleeper=sleeps.append
    )
    assert result == "ok"
    assert len(attempts) == 2
    assert sleeps == [3.0]


def test_run_with_retries_non_transient():
    attempts: list[int] = []

    def fn() -> str:
        attempts.append(1)
        raise _failing("could not resolve to a PullRequest")

    with pytest.raises(CommandError):
        retry.run_with_retries(fn, cfg=retry.RetryConfig(attempts=4), sleeper=lambda _: None)
    assert len(attempts) == 1


def test_run_with_retries_gives_up_after_attempts():
    attempts: list[int] = []

    def fn() -> str:
        attempts.append(1)
        raise _failing("secondary rate limit")

    with pytest.raises(CommandError):
        retry.run_with_retries(
            fn, cfg=retry.RetryConfig(attempts=3, base_sleep=0.0), sleeper=lambda _: None
        )
    assert len(attempts) == 3


def test_backoff_cap_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ISSUEFLOW_RETRY_MAX_SLEEP", "1")
    sleep_for = retry._compute_sleep(1, retry.RetryConfig(), "please wait 30 seconds")
    assert sleep_for == 1.0
    monkeypatch.setenv("ISSUEFLOW_RETRY_MAX_SLEEP", "not-a-number")
    assert retry._compute_sleep(1, retry.RetryConfig(), "wait 30 seconds") == 30.0


def test_extract_explicit_backoff():
    assert retry._extract_explicit_backoff("Retry-After: 12") == 12.0
    assert retry._extract_explicit_backoff("retry after 4") == 4.0
    assert retry._extract_explicit_backoff("wait 0 seconds") is None
    assert retry._extract_explicit_backoff("") is None
