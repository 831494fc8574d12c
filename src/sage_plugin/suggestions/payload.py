"""
Suggestion payloads — parse ``sage suggest skill --format json`` output and
render it as the block injected into the prompt.

Expected JSON:
    {"results": [{"name", "description"?, "key", "library"?, "content"?}, ...]}

Output that isn't JSON is still shown: the raw text becomes both the
rendered block and the correlation text, and a key is pulled out of it on a
best-effort basis.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from sage_plugin.correlation.markers import format_marker

BLOCK_SEPARATOR = "\n---\n\n"

_KEY_ANNOTATION = re.compile(r"\(key:\s*([^)]+)\)")
_KEY_LINE = re.compile(r"^\s*[-•*]?\s*([a-z0-9-]+)(?:\s*[-:]\s*|\s*$)")


@dataclass(frozen=True)
class Candidate:
    """One suggested skill/prompt."""

    name: str
    key: str
    description: str = ""
    library: str = ""
    content: str = ""

    @property
    def qualified_key(self) -> str:
        if self.library:
            return f"{self.library}/{self.key}"
        return self.key

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Candidate:
        def text(name: str) -> str:
            value = data.get(name)
            return "" if value is None else str(value)

        return cls(
            name=text("name"),
            key=text("key"),
            description=text("description"),
            library=text("library"),
            content=text("content"),
        )

    def render(self) -> str:
        qualified = self.qualified_key
        block = f"### {self.name} (key: {qualified})\n"
        if self.library:
            block += f"*Library: {self.library}*\n"
        if self.description:
            block += f"{self.description}\n"
        if self.content:
            block += f"\n```\n{self.content}\n```\n"
        block += (
            f"\n<!-- If you use this suggestion, include marker: "
            f"{format_marker(qualified)} -->\n"
        )
        return block


@dataclass(frozen=True)
class SuggestionPayload:
    """Everything the scheduler needs to install and show a suggestion."""

    rendered: str
    correlation_text: str
    primary_key: str | None = None
    shown_keys: list[str] = field(default_factory=list)
    structured: bool = True


def extract_fallback_key(text: str) -> str | None:
    """Best-effort key from free-form suggestion text."""
    match = _KEY_ANNOTATION.search(text)
    if match:
        return match.group(1).strip()

    for line in text.split("\n"):
        match = _KEY_LINE.match(line)
        if match and "-" in match.group(1):
            return match.group(1)
    return None


def build_payload(candidates: list[Candidate]) -> SuggestionPayload | None:
    if not candidates:
        return None

    shown_keys = list(
        dict.fromkeys(c.qualified_key for c in candidates if c.key)
    )
    # Names/descriptions/keys only: content bodies would swamp the overlap ratio
    correlation_text = " ".join(
        f"{c.name} {c.description} {c.key}" for c in candidates
    )
    rendered = BLOCK_SEPARATOR.join(c.render() for c in candidates)

    return SuggestionPayload(
        rendered=rendered,
        correlation_text=correlation_text,
        primary_key=shown_keys[0] if shown_keys else None,
        shown_keys=shown_keys,
    )


def parse_suggestion_output(output: str) -> SuggestionPayload | None:
    """Turn raw tool output into a payload, or None if there's nothing to show."""
    if not output or not output.strip():
        return None

    try:
        data = json.loads(output)
    except ValueError:
        return SuggestionPayload(
            rendered=output,
            correlation_text=output,
            primary_key=extract_fallback_key(output),
            shown_keys=[],
            structured=False,
        )

    if not isinstance(data, dict):
        return None
    results = data.get("results")
    if not isinstance(results, list):
        return None

    candidates = [Candidate.from_dict(r) for r in results if isinstance(r, dict)]
    return build_payload(candidates)
