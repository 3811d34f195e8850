"""Staged package manifest checks (``package.json`` version bump).

A release commit is expected to carry the manifest with a changed
``"version"`` field. Both conditions are soft: the user may confirm and
continue, but answering "no" cancels the run.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

from packaging.version import InvalidVersion, Version

from .logging import get_logger
from .prompts import ConfirmationGate
from .repository import RepositoryInspector
from .ux import print_warning

DEFAULT_MANIFEST = "package.json"

_version_line_re = re.compile(r'^[+-]\s*"version"\s*:', re.MULTILINE)
_version_value_re = re.compile(r'^([+-])\s*"version"\s*:\s*("(?:[^"\\]|\\.)*")', re.MULTILINE)


@dataclass(frozen=True)
class VersionChange:
    old: str | None
    new: str | None


def has_version_change(diff: str) -> bool:
    return bool(_version_line_re.search(diff))


def extract_version_change(diff: str) -> VersionChange:
    old: str | None = None
    new: str | None = None
    for sign, raw in _version_value_re.findall(diff):
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if sign == "-":
            old = value
        else:
            new = value
    return VersionChange(old=old, new=new)


def is_version_increase(change: VersionChange) -> bool | None:
    """True/False when both sides parse as versions; None when undecidable."""
    if change.old is None or change.new is None:
        return None
    try:
        return Version(change.new) > Version(change.old)
    except InvalidVersion:
        get_logger().debug("unparseable manifest version", old=change.old, new=change.new)
        return None


class ManifestCheck:
    def __init__(
        self,
        inspector: RepositoryInspector,
        gate: ConfirmationGate,
        manifest_file: str = DEFAULT_MANIFEST,
        *,
        require_version_bump: bool = True,
    ) -> None:
        self.inspector = inspector
        self.gate = gate
        self.manifest_file = manifest_file
        self.require_version_bump = require_version_bump

    def run(self) -> None:
        if self.manifest_file not in self.inspector.staged_files():
            self.gate.require(
                f"⚠️ {self.manifest_file} is not included in the staged changes. "
                "Continue? (y/n): "
            )
            return
        if not self.require_version_bump:
            return
        diff = self.inspector.diff_of_staged(self.manifest_file)
        if not has_version_change(diff):
            self.gate.require(
                f"⚠️ The {self.manifest_file} version has not been updated. Continue? (y/n): "
            )
            return
        change = extract_version_change(diff)
        if is_version_increase(change) is False:
            print_warning(
                f"The {self.manifest_file} version goes from {change.old} to {change.new}, "
                "which is not an increase."
            )


__all__ = [
    "ManifestCheck",
    "VersionChange",
    "extract_version_change",
    "has_version_change",
    "is_version_increase",
]
