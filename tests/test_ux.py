"""Tests for terminal output helpers."""

from __future__ import annotations

import io

import pytest

from issueflow.ux import (
    Colors,
    colorize,
    countdown,
    print_error,
    print_operation_status,
    print_separator,
    print_step,
    print_success,
    print_warning,
)


def _tty() -> io.StringIO:
    stream = io.StringIO()
    stream.isatty = lambda: True  # type: ignore[method-assign]
    return stream


def test_colorize_with_tty_support(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setenv("TERM", "xterm-256color")

    result = colorize("test", Colors.RED, bold=True, stream=_tty())
    assert result == f"{Colors.BOLD}{Colors.RED}test{Colors.RESET}"


def test_colorize_respects_no_color() -> None:
    assert colorize("test", Colors.RED, bold=True, stream=_tty()) == "test"


def test_colorize_no_tty_or_dumb_terminal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)
    assert colorize("test", Colors.GREEN, stream=io.StringIO()) == "test"
    monkeypatch.setenv("TERM", "dumb")
    assert colorize("test", Colors.BLUE, stream=_tty()) == "test"


def test_status_lines(capsys: pytest.CaptureFixture[str]) -> None:
    print_success("Pre-flight checks")
    print_warning("Branch name differs")
    print_error("Push failed.")
    captured = capsys.readouterr()
    assert "✓ Pre-flight checks" in captured.out
    assert "⚠ Branch name differs" in captured.out
    assert "✗ Push failed." in captured.err


@pytest.mark.parametrize(
    ("status", "icon"),
    [("success", "✓"), ("failed", "✗"), ("skipped", "○"), ("retry", "•"), ("ok", "•")],
)
def test_print_operation_status(status: str, icon: str) -> None:
    stream = io.StringIO()
    print_operation_status("gh pr create", status, "attempt 1/5", stream=stream)
    assert stream.getvalue() == f"{icon} gh pr create: {status} (attempt 1/5)\n"


def test_step_banner_and_separator() -> None:
    stream = io.StringIO()
    print_step("🧪 CI", stream=stream)
    print_separator(stream=stream)
    assert stream.getvalue() == "\n🧪 CI\n" + "─" * 8 + "\n"


def test_countdown_off_tty_sleeps_once() -> None:
    sleeps: list[float] = []
    stream = io.StringIO()
    countdown(5, "⏳ Waiting", stream=stream, sleep=sleeps.append)
    assert sleeps == [5]
    assert stream.getvalue() == ""


def test_countdown_on_tty_redraws_every_second() -> None:
    sleeps: list[float] = []
    stream = _tty()
    countdown(2.5, "⏳ Waiting", stream=stream, sleep=sleeps.append)
    assert sleeps == [1.0, 1.0, 0.5]
    out = stream.getvalue()
    assert "\r⏳ Waiting (3s)" in out
    assert "\r⏳ Waiting (2s)" in out
    assert "\r⏳ Waiting (1s)" in out
    assert out.endswith("\r")


def test_countdown_zero_is_a_no_op() -> None:
    sleeps: list[float] = []
    countdown(0, "⏳ Waiting", stream=_tty(), sleep=sleeps.append)
    assert sleeps == []
