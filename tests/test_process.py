from __future__ import annotations

import subprocess
from typing import Any

import pytest

from issueflow import process
from issueflow.errors import CommandError, ExecutionError
from issueflow.process import ProcessRunner, ensure_command


class _Completed:
    def __init__(self, returncode: int, stdout: str | None = "", stderr: str | None = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def _patch_run(monkeypatch: pytest.MonkeyPatch, result: Any, seen: list[dict[str, Any]]) -> None:
    def fake_run(cmd: list[str], **kwargs: Any) -> Any:
        seen.append({"cmd": cmd, **kwargs})
        if isinstance(result, BaseException):
            raise result
        return result

    monkeypatch.setattr(process.subprocess, "run", fake_run)


def test_capture_returns_literal_exit_code(monkeypatch: pytest.MonkeyPatch):
    seen: list[dict[str, Any]] = []
    _patch_run(monkeypatch, _Completed(8, "checks pending", ""), seen)

    outcome = ProcessRunner().run("gh", ["pr", "checks"], allow_nonzero=True)

    assert outcome.exit_status == 8
    assert outcome.stdout == "checks pending"
    assert not outcome.success
    assert seen[0]["cmd"] == ["gh", "pr", "checks"]
    assert seen[0]["stdout"] is subprocess.PIPE
    assert seen[0]["stdin"] is subprocess.DEVNULL


def test_streaming_inherits_terminal(monkeypatch: pytest.MonkeyPatch):
    seen: list[dict[str, Any]] = []
    _patch_run(monkeypatch, _Completed(0, None, None), seen)

    outcome = ProcessRunner().run("git", ["push"], capture_output=False)

    assert outcome.stdout == "" and outcome.stderr == ""
    assert seen[0]["stdout"] is None
    assert seen[0]["stderr"] is None
    assert seen[0]["stdin"] is None


def test_nonzero_exit_raises_command_error(monkeypatch: pytest.MonkeyPatch):
    _patch_run(monkeypatch, _Completed(1, "", "fatal: bad revision"), [])

    with pytest.raises(CommandError) as excinfo:
        ProcessRunner().run("git", ["diff", "--cached"], description="Inspect diff")

    assert excinfo.value.summary == "Inspect diff failed."
    assert excinfo.value.outcome.exit_status == 1
    assert "fatal: bad revision" in str(excinfo.value)


def test_nonzero_without_description_names_the_command(monkeypatch: pytest.MonkeyPatch):
    _patch_run(monkeypatch, _Completed(2, "", ""), [])

    with pytest.raises(CommandError, match="Command execution failed: git status"):
        ProcessRunner().run("git", ["status"])


def test_spawn_failure_is_execution_error(monkeypatch: pytest.MonkeyPatch):
    _patch_run(monkeypatch, FileNotFoundError(2, "No such file or directory: 'gh'"), [])

    with pytest.raises(ExecutionError) as excinfo:
        ProcessRunner().run("gh", ["--version"])
    assert not isinstance(excinfo.value, CommandError)


def test_env_is_merged(monkeypatch: pytest.MonkeyPatch):
    seen: list[dict[str, Any]] = []
    monkeypatch.setenv("KEEP_ME", "1")
    _patch_run(monkeypatch, _Completed(0), seen)

    ProcessRunner(cwd="/tmp").run("git", ["status"], env={"GIT_PAGER": "cat"})

    assert seen[0]["env"]["GIT_PAGER"] == "cat"
    assert seen[0]["env"]["KEEP_ME"] == "1"
    assert seen[0]["cwd"] == "/tmp"


def test_description_prints_status(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
):
    _patch_run(monkeypatch, _Completed(0), [])
    ProcessRunner().run("git", ["status"], description="Check staging status")
    assert "Check staging status: success" in capsys.readouterr().out


def test_ensure_command_missing(runner):
    runner.missing("gh")
    with pytest.raises(ExecutionError, match="gh is not installed"):
        ensure_command(runner, "gh")


def test_ensure_command_broken_binary(runner):
    runner.on("git", "--version", exit_status=127, stderr="exec format error")
    with pytest.raises(ExecutionError) as excinfo:
        ensure_command(runner, "git")
    assert "exec format error" in str(excinfo.value)


def test_ensure_command_present(runner):
    runner.on("git", "--version", stdout="git version 2.45.0")
    ensure_command(runner, "git")
    assert runner.calls == [("git", "--version")]
