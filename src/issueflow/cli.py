"""issueflow CLI.

Runs the issue-driven release workflow in the current git repository:
staging validation, branch alignment, commit, push, PR creation, CI polling
and the merge-readiness report. Without flags it reads answers from the
terminal, or from piped stdin when no terminal is attached.

Exit codes: 0 on success, 1 on any workflow failure, cancellation,
unexpected error or detected PR conflict.
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import Any, TextIO

from . import __version__
from .config import FlowConfig, load_config, load_environment
from .errors import AutomationError, UserCancelledError, classify_error, redact
from .logging import configure_logging, get_logger
from .process import ProcessRunner, Runner
from .prompts import ConfirmationGate, open_input_source
from .runtime import execute_command
from .ux import print_error, print_warning
from .workflow import run_workflow

COMMAND_NAME = "run"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="issueflow",
        description="Issue-driven commit, push and pull request automation",
        formatter_class=_HelpFormatter,
    )
    p.add_argument(
        "--config",
        help="Path to issueflow.config.yaml (env: ISSUEFLOW_CONFIG)",
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational logging (env: ISSUEFLOW_QUIET=1)",
    )
    p.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit structured logs as one JSON object per line",
    )
    p.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        type=str.upper,
        help="Log level for diagnostics (default from config: WARNING)",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _configure_logging(args: argparse.Namespace, cfg: FlowConfig) -> None:
    quiet = bool(args.quiet) or os.environ.get("ISSUEFLOW_QUIET") == "1"
    level = "ERROR" if quiet else (args.log_level or cfg.logging_level)
    configure_logging(json_logging=bool(args.json_logs) or cfg.logging_json_enabled, level=level)


def _report_failure(exc: BaseException, stream: TextIO | None = None) -> int:
    err = stream or sys.stderr
    info = classify_error(exc)
    get_logger().log_error(
        "issueflow failed", error=info.message, category=info.category, transient=info.transient
    )
    if isinstance(exc, UserCancelledError):
        print_warning(redact(str(exc)), stream=err)
    elif isinstance(exc, AutomationError):
        print_error(redact(str(exc)), stream=err)
    else:
        print_error(f"An unexpected error occurred: {redact(str(exc))}", stream=err)
    return 1


def main(
    argv: list[str] | None = None,
    *,
    stdin: TextIO | None = None,
    runner: Runner | None = None,
    **workflow_kw: Any,
) -> int:
    args = _build_parser().parse_args(argv)
    load_environment()
    try:
        cfg = load_config(args.config)
    except AutomationError as exc:
        return _report_failure(exc)
    _configure_logging(args, cfg)

    def handler() -> int:
        source = open_input_source(stdin, cfg.sentinel)
        gate = ConfirmationGate(source)
        return run_workflow(cfg, runner or ProcessRunner(), gate, **workflow_kw)

    try:
        return execute_command(handler, cfg, COMMAND_NAME)
    except KeyboardInterrupt:
        return _report_failure(UserCancelledError())
    except Exception as exc:  # top-level handler; every failure exits 1
        return _report_failure(exc)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
