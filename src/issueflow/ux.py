"""Terminal output helpers for the workflow: status lines, banners, countdowns.

Colour is only emitted on a TTY, and never when ``NO_COLOR`` is set or
``TERM=dumb``.
"""
from __future__ import annotations

import math
import os
import sys
import time
from collections.abc import Callable
from typing import TextIO

_COUNTDOWN_PADDING = 20
_SEPARATOR_WIDTH = 8


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


# operation status word -> (icon, colour)
_STATUS_STYLES: dict[str, tuple[str, str]] = {
    "success": ("✓", Colors.GREEN),
    "failed": ("✗", Colors.RED),
    "skipped": ("○", Colors.YELLOW),
}
_DEFAULT_STATUS_STYLE = ("•", Colors.BLUE)


def _supports_color(stream: TextIO | None = None) -> bool:
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    return bool(hasattr(stream, "isatty") and stream.isatty())


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    """Wrap ``text`` in ANSI codes when ``stream`` can render them."""
    if not _supports_color(stream):
        return text
    return f"{Colors.BOLD if bold else ''}{color}{text}{Colors.RESET}"


def _status_line(icon: str, color: str, message: str, stream: TextIO) -> None:
    print(f"{colorize(icon, color, bold=True, stream=stream)} {message}", file=stream)


def print_success(message: str, stream: TextIO | None = None) -> None:
    _status_line("✓", Colors.GREEN, message, stream or sys.stdout)


def print_error(message: str, stream: TextIO | None = None) -> None:
    """Errors go to stderr unless a stream is given."""
    _status_line("✗", Colors.RED, message, stream or sys.stderr)


def print_warning(message: str, stream: TextIO | None = None) -> None:
    _status_line("⚠", Colors.YELLOW, message, stream or sys.stdout)


def print_info(message: str, stream: TextIO | None = None) -> None:
    _status_line("ℹ", Colors.BLUE, message, stream or sys.stdout)


def print_header(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colorize(message, Colors.CYAN, bold=True, stream=stream), file=stream)


def print_operation_status(
    operation: str, status: str, details: str = "", stream: TextIO | None = None
) -> None:
    """Print ``<icon> <operation>: <status> (<details>)`` on one line.

    Args:
        operation: what ran, e.g. ``"git push"`` or ``"Checks attempt 2/5"``
        status: ``success`` / ``failed`` / ``skipped`` or any other word
        details: optional trailing context, dimmed
        stream: defaults to stdout
    """
    stream = stream or sys.stdout
    icon, color = _STATUS_STYLES.get(status.lower(), _DEFAULT_STATUS_STYLE)
    message = (
        f"{colorize(icon, color, bold=True, stream=stream)} "
        f"{colorize(operation, Colors.BOLD, stream=stream)}: "
        f"{colorize(status, color, stream=stream)}"
    )
    if details:
        message += f" {colorize(f'({details})', Colors.DIM, stream=stream)}"
    print(message, file=stream)


def print_step(label: str, stream: TextIO | None = None) -> None:
    """Print a workflow step banner (e.g. ``🧱 Commit``) preceded by a blank line."""
    stream = stream or sys.stdout
    print("", file=stream)
    print(colorize(label, Colors.BOLD, stream=stream), file=stream)


def print_separator(stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colorize("─" * _SEPARATOR_WIDTH, Colors.DIM, stream=stream), file=stream)


def countdown(
    seconds: float,
    message: str | None = None,
    *,
    stream: TextIO | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Block for ``seconds``, redrawing ``message (Ns)`` once a second on a TTY.

    Off a TTY (or without a message) this is a single plain sleep.
    """
    stream = stream or sys.stdout
    if seconds <= 0:
        return
    if message is None or not hasattr(stream, "isatty") or not stream.isatty():
        sleep(seconds)
        return
    remaining = seconds
    while remaining > 0:
        stream.write(f"\r{message} ({int(math.ceil(remaining))}s)")
        stream.flush()
        step = min(1.0, remaining)
        sleep(step)
        remaining -= step
    stream.write("\r" + " " * (len(message) + _COUNTDOWN_PADDING) + "\r")
    stream.flush()


__all__ = [
    "Colors",
    "colorize",
    "countdown",
    "print_error",
    "print_header",
    "print_info",
    "print_operation_status",
    "print_separator",
    "print_step",
    "print_success",
    "print_warning",
]
