"""Run a CLI handler and record its outcome."""

from __future__ import annotations

import time
from typing import Any, Protocol

from . import telemetry
from .config import FlowConfig
from .logging import get_logger


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def _instrument(cfg: FlowConfig | None, command: str, exit_code: int, start_time: float) -> None:
    duration = max(0.0, time.monotonic() - start_time)
    get_logger().log_performance(command, duration * 1000, exit_code=exit_code)
    telemetry.emit(cfg, command, exit_code, duration)


def execute_command(handler: _HandlerCallable, cfg: FlowConfig | None, command: str) -> int:
    """Call ``handler`` and emit telemetry whether it returns, raises or exits."""
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else (0 if exc.code is None else 1)
        _instrument(cfg, command, code, start)
        raise
    except Exception:
        _instrument(cfg, command, 1, start)
        raise
    _instrument(cfg, command, exit_code, start)
    return exit_code


__all__ = ["execute_command"]
