"""Configuration loading: defaults, YAML file, then ISSUEFLOW_* environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

CONFIG_DEFAULT = "issueflow.config.yaml"
DEFAULT_MAIN_BRANCHES = ["main", "master"]
DEFAULT_LABELS = ["enhancement"]
DEFAULT_SENTINEL = "@issueflow.md"


@dataclass
class FlowConfig:
    source_file: Path | None = None
    # git
    remote: str = "origin"
    main_branches: list[str] = field(default_factory=lambda: list(DEFAULT_MAIN_BRANCHES))
    switch_existing: bool = True
    # github
    github_repo: str | None = None
    base_branch: str = "main"
    labels: list[str] = field(default_factory=lambda: list(DEFAULT_LABELS))
    verify_issue: bool = True
    # manifest
    manifest_file: str = "package.json"
    require_version_bump: bool = True
    # polling
    max_attempts: int = 5
    delay_seconds: float = 5.0
    initial_wait_seconds: float = 5.0
    transient_attempts: int = 3
    transient_base_sleep: float = 0.5
    # pull request
    quality_gate: str | None = "sonarcloud"
    check_conflicts: bool = True
    conflict_states: list[str] = field(default_factory=lambda: ["dirty", "blocked"])
    # input
    sentinel: str = DEFAULT_SENTINEL
    # logging
    logging_json_enabled: bool = False
    logging_level: str = "WARNING"
    # telemetry
    telemetry_enabled: bool = False
    telemetry_store_path: str | None = None


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Configuration section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def _as_int(value: Any, key: str, minimum: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Configuration value '{key}' must be an integer: {value!r}") from exc
    if parsed < minimum:
        raise ConfigError(f"Configuration value '{key}' must be >= {minimum}: {parsed}")
    return parsed


def _as_float(value: Any, key: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Configuration value '{key}' must be a number: {value!r}") from exc
    if parsed < 0:
        raise ConfigError(f"Configuration value '{key}' must not be negative: {parsed}")
    return parsed


def _as_list(value: Any, key: str) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(part).strip() for part in value if str(part).strip()]
    raise ConfigError(f"Configuration value '{key}' must be a list")


def _env_override(name: str, current: Any) -> Any:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return current
    return value.strip()


def load_environment(dotenv_path: str | Path | None = None) -> bool:
    """Load a ``.env`` file (if present) without clobbering real environment."""
    path = Path(dotenv_path) if dotenv_path else Path.cwd() / ".env"
    if not path.exists():
        return False
    return bool(load_dotenv(str(path), override=False))


def build_config(raw: dict[str, Any], source_file: Path | None = None) -> FlowConfig:
    git = _section(raw, "git")
    gh = _section(raw, "github")
    manifest = _section(raw, "manifest")
    polling = _section(raw, "polling")
    pr = _section(raw, "pull_request")
    input_cfg = _section(raw, "input")
    logging_config = _section(raw, "logging")
    telemetry = _section(raw, "telemetry")

    main_branches = _as_list(git.get("main_branches", DEFAULT_MAIN_BRANCHES), "git.main_branches")
    if not main_branches:
        raise ConfigError("Configuration value 'git.main_branches' must not be empty")

    quality_gate = pr.get("quality_gate", "sonarcloud")
    return FlowConfig(
        source_file=source_file,
        remote=str(git.get("remote", "origin")),
        main_branches=main_branches,
        switch_existing=bool(git.get("switch_existing", True)),
        github_repo=gh.get("repo"),
        base_branch=str(gh.get("base_branch", "main")),
        labels=_as_list(gh.get("labels", DEFAULT_LABELS), "github.labels"),
        verify_issue=bool(gh.get("verify_issue", True)),
        manifest_file=str(manifest.get("file", "package.json")),
        require_version_bump=bool(manifest.get("require_version_bump", True)),
        max_attempts=_as_int(
            _env_override("ISSUEFLOW_RETRY_ATTEMPTS", polling.get("max_attempts", 5)),
            "polling.max_attempts",
            1,
        ),
        delay_seconds=_as_float(
            _env_override("ISSUEFLOW_RETRY_DELAY", polling.get("delay_seconds", 5)),
            "polling.delay_seconds",
        ),
        initial_wait_seconds=_as_float(
            polling.get("initial_wait_seconds", 5), "polling.initial_wait_seconds"
        ),
        transient_attempts=_as_int(
            polling.get("transient_attempts", 3), "polling.transient_attempts", 1
        ),
        transient_base_sleep=_as_float(
            polling.get("transient_base_sleep", 0.5), "polling.transient_base_sleep"
        ),
        quality_gate=str(quality_gate) if quality_gate else None,
        check_conflicts=bool(pr.get("check_conflicts", True)),
        conflict_states=[
            s.lower()
            for s in _as_list(
                pr.get("conflict_states", ["dirty", "blocked"]), "pull_request.conflict_states"
            )
        ],
        sentinel=str(input_cfg.get("sentinel", DEFAULT_SENTINEL)),
        logging_json_enabled=bool(logging_config.get("json_enabled", False)),
        logging_level=str(logging_config.get("level", "WARNING")),
        telemetry_enabled=bool(telemetry.get("enabled", False)),
        telemetry_store_path=telemetry.get("store_path"),
    )


def load_config(path: str | Path | None = None) -> FlowConfig:
    """Load configuration from YAML, falling back to defaults.

    An explicit ``path`` (or ``ISSUEFLOW_CONFIG``) must exist; the implicit
    ``issueflow.config.yaml`` in the working directory is optional.
    """
    explicit = path or os.environ.get("ISSUEFLOW_CONFIG")
    p = Path(explicit) if explicit else Path.cwd() / CONFIG_DEFAULT
    if not p.exists():
        if explicit:
            raise ConfigError(f"Configuration file not found: {p}")
        return build_config({})
    try:
        raw_any = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}", str(exc)) from exc
    if not isinstance(raw_any, dict):
        raise ConfigError(f"Configuration file {p} must contain a mapping")
    return build_config(cast(dict[str, Any], raw_any), source_file=p)


__all__ = ["CONFIG_DEFAULT", "FlowConfig", "build_config", "load_config", "load_environment"]
