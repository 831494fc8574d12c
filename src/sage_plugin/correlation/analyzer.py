"""
Prompt ↔ suggestion correlation.

Scores the user's next prompt against the text of the suggestion that was
just shown and classifies it:

    overlap >  0.7          → accepted
    0.3 < overlap <= 0.7    → steered  (with added / removed keywords)
    overlap <= 0.3          → rejected

overlap = |user tokens found in suggestion tokens| / max(|user|, |suggestion|)

Tokens are lower-cased, whitespace-split words. User tokens are not
deduplicated, so a repeated word counts once per occurrence. The ratio is
deliberately asymmetric (divides by the longer side); the thresholds above
were tuned against it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sage_plugin.session.state import Suggestion

ACCEPT_THRESHOLD = 0.7
STEER_THRESHOLD = 0.3


class CorrelationType(str, Enum):
    ACCEPTED = "accepted"
    STEERED = "steered"
    REJECTED = "rejected"


@dataclass(frozen=True)
class CorrelationResult:
    """Classification of one prompt against one suggestion. Never stored."""

    type: CorrelationType
    key: str
    overlap: float
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data: dict = {
            "type": self.type.value,
            "key": self.key,
            "overlap": self.overlap,
        }
        if self.type is CorrelationType.STEERED:
            data["added"] = list(self.added)
            data["removed"] = list(self.removed)
        return data


def tokenize(text: str) -> list[str]:
    return text.lower().split()


def overlap_ratio(user_tokens: list[str], suggestion_tokens: list[str]) -> float:
    denominator = max(len(user_tokens), len(suggestion_tokens))
    if denominator == 0:
        return 0.0
    suggestion_set = set(suggestion_tokens)
    shared = [t for t in user_tokens if t in suggestion_set]
    return len(shared) / denominator


def classify(overlap: float) -> CorrelationType:
    if overlap > ACCEPT_THRESHOLD:
        return CorrelationType.ACCEPTED
    if overlap > STEER_THRESHOLD:
        return CorrelationType.STEERED
    return CorrelationType.REJECTED


def correlate(prompt: str, suggestion_text: str, key: str) -> CorrelationResult:
    """Pure scoring of two strings. No window or liveness checks."""
    user_tokens = tokenize(prompt)
    suggestion_tokens = tokenize(suggestion_text)
    overlap = overlap_ratio(user_tokens, suggestion_tokens)
    kind = classify(overlap)

    if kind is CorrelationType.STEERED:
        user_set = set(user_tokens)
        suggestion_set = set(suggestion_tokens)
        return CorrelationResult(
            type=kind,
            key=key,
            overlap=overlap,
            added=[t for t in user_tokens if t not in suggestion_set],
            removed=[t for t in suggestion_tokens if t not in user_set],
        )
    return CorrelationResult(type=kind, key=key, overlap=overlap)


def analyze_prompt(
    prompt: str,
    suggestion: "Suggestion | None",
    *,
    now: float,
    window_seconds: float,
) -> CorrelationResult | None:
    """Correlate a prompt with the live suggestion, if one applies.

    Returns None when there is no suggestion, it has no timestamp, it is
    older than the correlation window, or it carries no usable key.
    """
    if suggestion is None or not suggestion.created_at:
        return None
    if now - suggestion.created_at > window_seconds:
        return None
    key = suggestion.primary_key
    if not key:
        return None
    return correlate(prompt, suggestion.correlation_text, key)
