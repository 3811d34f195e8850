from __future__ import annotations

import json
from pathlib import Path

import pytest

from issueflow import runtime, telemetry
from issueflow.config import FlowConfig


def test_disabled_by_default(tmp_path: Path):
    settings = telemetry.resolve_settings(FlowConfig())
    assert settings.enabled is False
    assert settings.store_path == tmp_path / "home" / ".issueflow" / "telemetry.jsonl"
    assert telemetry.emit(FlowConfig(), "run", 0, 1.0) is False
    assert not settings.store_path.exists()


def test_environment_wins_over_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("ISSUEFLOW_TELEMETRY", "yes")
    monkeypatch.setenv("ISSUEFLOW_TELEMETRY_PATH", str(tmp_path / "custom.jsonl"))
    cfg = FlowConfig(telemetry_enabled=False, telemetry_store_path=str(tmp_path / "ignored"))

    settings = telemetry.resolve_settings(cfg)

    assert settings.enabled is True
    assert settings.store_path.name == "custom.jsonl"
    monkeypatch.setenv("ISSUEFLOW_TELEMETRY", "0")
    assert telemetry.resolve_settings(FlowConfig(telemetry_enabled=True)).enabled is False


def test_emit_appends_json_line(tmp_path: Path):
    target = tmp_path / "runs" / "telemetry.jsonl"
    cfg = FlowConfig(telemetry_enabled=True, telemetry_store_path=str(target))

    assert telemetry.emit(cfg, "run", 1, 0.25) is True
    assert telemetry.emit(cfg, "run", 0, 1.5) is True

    lines = target.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["command"] == "run"
    assert first["exit_code"] == 1
    assert first["duration_ms"] == 250
    assert first["version"]


def test_emit_write_failure_returns_false(tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    cfg = FlowConfig(telemetry_enabled=True, telemetry_store_path=str(blocker / "t.jsonl"))
    assert telemetry.emit(cfg, "run", 0, 0.1) is False


@pytest.fixture
def emitted(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, int]]:
    calls: list[tuple[str, int]] = []

    def fake_emit(cfg: FlowConfig | None, command: str, exit_code: int, duration: float) -> bool:
        calls.append((command, exit_code))
        return True

    monkeypatch.setattr(runtime.telemetry, "emit", fake_emit)
    return calls


def test_execute_command_success(emitted: list[tuple[str, int]]):
    assert runtime.execute_command(lambda: None, None, "run") == 0
    assert runtime.execute_command(lambda: 3, None, "run") == 3
    assert emitted == [("run", 0), ("run", 3)]


def test_execute_command_records_system_exit(emitted: list[tuple[str, int]]):
    def conflict() -> int:
        raise SystemExit(1)

    with pytest.raises(SystemExit):
        runtime.execute_command(conflict, None, "run")
    assert emitted == [("run", 1)]


def test_execute_command_records_exception(emitted: list[tuple[str, int]]):
    def broken() -> int:
        raise ValueError("boom")

    with pytest.raises(ValueError):
        runtime.execute_command(broken, None, "run")
    assert emitted == [("run", 1)]
