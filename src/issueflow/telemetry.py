"""Opt-in run telemetry: one JSON line per workflow run."""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import FlowConfig
from .logging import get_logger

DEFAULT_FILENAME = "telemetry.jsonl"
DEFAULT_DIRNAME = ".issueflow"


@dataclass(frozen=True)
class TelemetrySettings:
    enabled: bool
    store_path: Path


def _env_flag() -> bool | None:
    flag = os.environ.get("ISSUEFLOW_TELEMETRY")
    if flag is None:
        return None
    return flag.strip().lower() in {"1", "true", "yes"}


def _env_store_path(default_path: Path) -> Path:
    override = os.environ.get("ISSUEFLOW_TELEMETRY_PATH")
    return Path(override).expanduser() if override else default_path


def resolve_settings(cfg: FlowConfig | None) -> TelemetrySettings:
    """Environment wins over the config file; disabled unless someone opts in."""
    env_flag = _env_flag()
    enabled = env_flag if env_flag is not None else bool(cfg and cfg.telemetry_enabled)
    base_path = (
        Path(cfg.telemetry_store_path).expanduser()
        if cfg and cfg.telemetry_store_path
        else Path.home() / DEFAULT_DIRNAME / DEFAULT_FILENAME
    )
    return TelemetrySettings(enabled=enabled, store_path=_env_store_path(base_path))


def emit(cfg: FlowConfig | None, command: str, exit_code: int, duration_seconds: float) -> bool:
    """Append one record; returns False when disabled or the write failed."""
    settings = resolve_settings(cfg)
    if not settings.enabled:
        return False
    from . import __version__

    payload: dict[str, Any] = {
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "command": command,
        "exit_code": int(exit_code),
        "duration_ms": int(duration_seconds * 1000),
        "pid": os.getpid(),
        "version": __version__,
    }
    try:
        settings.store_path.parent.mkdir(parents=True, exist_ok=True)
        with settings.store_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(payload, separators=(",", ":")) + "\n")
    except OSError as exc:
        get_logger().debug("telemetry write failed", error=str(exc))
        return False
    return True


__all__ = ["TelemetrySettings", "emit", "resolve_settings"]
