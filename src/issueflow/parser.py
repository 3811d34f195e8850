"""Parsing of the issue line and the operation selection answer."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

from .errors import ValidationError
from .models import IssueRecord, OperationSelection

FALLBACK_SLUG = "update"
OPERATION_TOKENS = ("commit", "push", "pr")
NONE_TOKEN = "none"

_prefix_re = re.compile(r"^issue:\s*", re.IGNORECASE)
_digits_re = re.compile(r"\d+")
_non_alnum_re = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase, accent-free, hyphen-delimited slug; ``update`` when empty."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _non_alnum_re.sub("-", stripped.lower()).strip("-")
    return slug or FALLBACK_SLUG


def canonical_branch(title: str, number: str) -> str:
    return f"{number}-{slugify(title)}"


def parse_issue_line(line: str) -> IssueRecord:
    """Parse ``"[issue:] <title> #<number>"`` into an :class:`IssueRecord`.

    The last ``#`` splits title from number so titles may contain ``#``.
    The number is the first run of digits after that marker.
    """
    normalized = _prefix_re.sub("", line.strip(), count=1).strip()
    hash_index = normalized.rfind("#")
    if hash_index <= 0:
        raise ValidationError(
            "Issue information is malformed. Use the format `<title> #<number>`."
        )
    title = normalized[:hash_index].strip()
    number_match = _digits_re.search(normalized[hash_index + 1 :])
    if not title or number_match is None:
        raise ValidationError("Issue information is malformed. Check the title and number.")
    number = number_match.group(0)
    return IssueRecord(title=title, number=number, canonical_branch=canonical_branch(title, number))


def is_operations_line(line: str) -> bool:
    tokens = line.lower().replace(",", " ").split()
    return bool(tokens) and all(tok in OPERATION_TOKENS or tok == NONE_TOKEN for tok in tokens)


def parse_operations(line: str | Iterable[str]) -> OperationSelection:
    """Build an :class:`OperationSelection` from ``commit push pr`` style tokens."""
    if isinstance(line, str):
        tokens = line.lower().replace(",", " ").split()
    else:
        tokens = [str(tok).lower() for tok in line]
    unknown = [tok for tok in tokens if tok not in OPERATION_TOKENS and tok != NONE_TOKEN]
    if unknown:
        raise ValidationError(
            f"Unknown operation(s): {', '.join(unknown)}",
            f"Valid operations: {' '.join(OPERATION_TOKENS)} (or {NONE_TOKEN})",
        )
    return OperationSelection(
        commit="commit" in tokens,
        push="push" in tokens,
        pr="pr" in tokens,
    )


__all__ = [
    "canonical_branch",
    "is_operations_line",
    "parse_issue_line",
    "parse_operations",
    "slugify",
]
