"""
Usage markers — the assistant's explicit "I used this suggestion" signal.

Grammar:
    marker := "[[sage:prompt_key=" value "]]"
    value  := one or more characters other than "]", surrounding whitespace
              ignored; must be non-empty after trimming

Only the literal form counts. A response that talks about a suggested skill
without echoing its marker carries no evidence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

MARKER_PREFIX = "[[sage:prompt_key="
MARKER_SUFFIX = "]]"


class MarkerOutcome(str, Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class MarkerScan:
    """Result of scanning one block of assistant text."""

    keys: tuple[str, ...] = ()  # distinct, first-seen order
    malformed: tuple[str, ...] = field(default=())  # raw fragments that failed

    @property
    def outcome(self) -> MarkerOutcome:
        if self.keys:
            return MarkerOutcome.MATCHED
        if self.malformed:
            return MarkerOutcome.MALFORMED
        return MarkerOutcome.NO_MATCH

    def matching(self, allowed: "set[str] | frozenset[str] | list[str] | tuple[str, ...]") -> list[str]:
        """Keys that also appear in ``allowed``, in first-seen order."""
        allowed_set = set(allowed)
        return [k for k in self.keys if k in allowed_set]


def format_marker(key: str) -> str:
    return f"{MARKER_PREFIX}{key}{MARKER_SUFFIX}"


def scan_markers(text: str) -> MarkerScan:
    """Scan text for usage markers."""
    if not text:
        return MarkerScan()

    keys: list[str] = []
    seen: set[str] = set()
    malformed: list[str] = []
    pos = 0

    while True:
        start = text.find(MARKER_PREFIX, pos)
        if start == -1:
            break
        value_start = start + len(MARKER_PREFIX)
        close = text.find("]", value_start)
        if close == -1:
            # Unterminated: nothing after this can close it either
            malformed.append(text[start:])
            break
        if not text.startswith(MARKER_SUFFIX, close):
            malformed.append(text[start : close + 1])
            pos = close + 1
            continue

        value = text[value_start:close].strip()
        if not value:
            malformed.append(text[start : close + len(MARKER_SUFFIX)])
        elif value not in seen:
            seen.add(value)
            keys.append(value)
        pos = close + len(MARKER_SUFFIX)

    return MarkerScan(keys=tuple(keys), malformed=tuple(malformed))


def extract_markers(text: str) -> list[str]:
    """Distinct marker keys found in text, in first-seen order."""
    return list(scan_markers(text).keys)
