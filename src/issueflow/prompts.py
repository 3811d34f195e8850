"""Confirmation gate and the input sources behind it.

Two sources feed the gate:

* ``TerminalInput`` asks the user on the controlling terminal.
* ``PipedInput`` answers from batched stdin: an optional sentinel line, the
  issue line, an optional operations line (``commit push pr`` / ``none``)
  and then one line per yes/no confirmation, consumed in order.

When neither is available every read raises
:class:`InteractiveInputRequiredError`.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Protocol, TextIO, TypeVar

from .errors import InteractiveInputRequiredError, UserCancelledError
from .logging import get_logger
from .models import OperationSelection
from .parser import is_operations_line, parse_operations
from .ux import print_header, print_info

T = TypeVar("T")

YES_TOKENS = frozenset({"y", "yes"})
NO_TOKENS = frozenset({"n", "no"})
ISSUE_QUESTION = "\nIssue info (<title> #<number>): "
PROCEED_QUESTION = "➡️ Proceed? (y/n): "

OPERATION_LABELS: dict[str, str] = {
    "commit": "🧱 Commit",
    "push": "📤 Push",
    "pr": "🔀 PR",
}


class InputSource(Protocol):
    interactive: bool

    def issue_line(self) -> str: ...

    def operations(self) -> OperationSelection | None: ...

    def answer(self, question: str) -> str: ...


class TerminalInput:
    interactive = True

    def __init__(self, reader: Callable[[str], str] = input) -> None:
        self._reader = reader

    def _read(self, question: str) -> str:
        try:
            return self._reader(question)
        except EOFError as exc:
            raise InteractiveInputRequiredError() from exc

    def issue_line(self) -> str:
        return self._read(ISSUE_QUESTION).strip()

    def operations(self) -> OperationSelection | None:
        return None

    def answer(self, question: str) -> str:
        return self._read(question)


class PipedInput:
    interactive = False

    def __init__(
        self,
        issue: str,
        operations: OperationSelection | None = None,
        answers: list[str] | None = None,
    ) -> None:
        self._issue = issue
        self._operations = operations
        self._answers = list(answers or [])

    @classmethod
    def from_text(cls, text: str, sentinel: str | None = None) -> PipedInput:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        if lines and sentinel and lines[0] == sentinel:
            lines = lines[1:]
        if not lines:
            raise InteractiveInputRequiredError(
                "Input is missing. Pipe a line with the issue information or rerun in a TTY."
            )
        issue, rest = lines[0], lines[1:]
        operations: OperationSelection | None = None
        if rest and is_operations_line(rest[0]):
            operations = parse_operations(rest[0])
            rest = rest[1:]
        return cls(issue, operations, rest)

    @property
    def remaining_answers(self) -> int:
        return len(self._answers)

    def issue_line(self) -> str:
        return self._issue

    def operations(self) -> OperationSelection | None:
        return self._operations

    def answer(self, question: str) -> str:
        if not self._answers:
            raise InteractiveInputRequiredError(
                f"No piped answer left for: {question.strip()} "
                "Append y/n lines to the input or rerun in a TTY."
            )
        return self._answers.pop(0)


class UnavailableInput:
    interactive = False

    def issue_line(self) -> str:
        raise InteractiveInputRequiredError()

    def operations(self) -> OperationSelection | None:
        raise InteractiveInputRequiredError()

    def answer(self, question: str) -> str:
        raise InteractiveInputRequiredError()


def open_input_source(stdin: TextIO | None = None, sentinel: str | None = None) -> InputSource:
    """Pick the input source for this process' stdin."""
    stream = sys.stdin if stdin is None else stdin
    if stream is None or stream.closed:
        return UnavailableInput()
    if hasattr(stream, "isatty") and stream.isatty():
        return TerminalInput()
    return PipedInput.from_text(stream.read(), sentinel)


def build_selection(commit: bool, push: bool, pr: bool) -> OperationSelection:
    return OperationSelection(commit=commit, push=push, pr=pr)


def retry_until_confirmed(produce: Callable[[], T], confirm: Callable[[T], bool]) -> T:
    """Call ``produce`` until ``confirm`` accepts its result."""
    while True:
        value = produce()
        if confirm(value):
            return value


def format_selection(selection: OperationSelection) -> str:
    enabled = [OPERATION_LABELS[name] for name in selection.enabled()]
    return " · ".join(enabled) if enabled else "none"


class ConfirmationGate:
    def __init__(self, source: InputSource, stream: TextIO | None = None) -> None:
        self.source = source
        self.stream = stream
        self.logger = get_logger()

    def ask_yes_no(self, question: str) -> bool:
        while True:
            raw = self.source.answer(question)
            answer = raw.strip().lower()
            if answer in YES_TOKENS:
                self.logger.debug("confirmation", question=question.strip(), answer="y")
                return True
            if answer in NO_TOKENS:
                self.logger.debug("confirmation", question=question.strip(), answer="n")
                return False
            print_info("Reply y / n.", stream=self.stream)

    def require(self, question: str, cancel_message: str = "Operation cancelled by user.") -> None:
        """Load-bearing confirmation: "no" cancels the whole run."""
        if not self.ask_yes_no(question):
            raise UserCancelledError(cancel_message)

    def read_issue_line(self) -> str:
        return self.source.issue_line()

    def _ask_selection(self) -> OperationSelection:
        commit = self.ask_yes_no(f"\n{OPERATION_LABELS['commit']}? (y/n): ")
        push = self.ask_yes_no(f"{OPERATION_LABELS['push']}? (y/n): ")
        pr = self.ask_yes_no(f"{OPERATION_LABELS['pr']}? (y/n): ")
        return build_selection(commit, push, pr)

    def _confirm_selection(self, selection: OperationSelection) -> bool:
        self.print_selection(selection)
        if self.ask_yes_no(PROCEED_QUESTION):
            return True
        print_info("🔁 Reconfigure.", stream=self.stream)
        return False

    def print_selection(self, selection: OperationSelection) -> None:
        print_header("\n🧭 Config:", stream=self.stream)
        for name, label in OPERATION_LABELS.items():
            enabled = getattr(selection, name)
            print(f"  {label}: {'✅' if enabled else '⛔️'}", file=self.stream or sys.stdout)

    def select_operations(self) -> OperationSelection:
        preset = self.source.operations()
        if preset is not None:
            self.print_selection(preset)
            return preset
        return retry_until_confirmed(self._ask_selection, self._confirm_selection)


__all__ = [
    "ConfirmationGate",
    "InputSource",
    "OPERATION_LABELS",
    "PipedInput",
    "TerminalInput",
    "UnavailableInput",
    "build_selection",
    "format_selection",
    "open_input_source",
    "retry_until_confirmed",
]
