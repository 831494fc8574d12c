"""
Plugin State — everything the plugin remembers, in one owned object.

All state is in-memory and lives for one plugin instance:

    PluginState
      ├── session      SessionInfo   (id + model, updated by prompts)
      ├── capture      CaptureState  (Idle / PromptCaptured)
      ├── buffer       streamed assistant text for the current capture
      └── suggestion   Suggestion | None  (at most one live)

A session.created event resets only the capture fields (see
``PluginState.reset_capture``); the live suggestion survives it so a
suggestion shown just before a subagent starts can still correlate.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum


class CaptureState(str, Enum):
    """Whether a user prompt is waiting for its assistant response."""

    IDLE = "idle"
    PROMPT_CAPTURED = "prompt_captured"


@dataclass
class SessionInfo:
    session_id: str | None = None
    model: str | None = None


@dataclass
class Suggestion:
    """A suggestion block that was injected into the UI.

    ``correlation_text`` holds the names, descriptions and keys of every shown
    candidate (content bodies excluded). ``shown_keys`` is an ordered,
    duplicate-free list of qualified keys.
    """

    correlation_text: str
    primary_key: str | None = None
    shown_keys: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)
    accepted_feedback_sent: bool = False
    implicit_feedback_sent: bool = False

    def __post_init__(self) -> None:
        self.shown_keys = list(dict.fromkeys(k for k in self.shown_keys if k))

    def age(self, now: float) -> float:
        return now - self.created_at

    def is_expired(self, now: float, window_seconds: float) -> bool:
        return self.age(now) > window_seconds

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "primary_key": self.primary_key,
            "shown_keys": list(self.shown_keys),
            "accepted_feedback_sent": self.accepted_feedback_sent,
            "implicit_feedback_sent": self.implicit_feedback_sent,
        }


@dataclass
class PluginState:
    """Mutable state owned by one plugin instance."""

    session: SessionInfo = field(default_factory=SessionInfo)
    capture: CaptureState = CaptureState.IDLE
    buffer: list[str] = field(default_factory=list)
    # Bumped on every captured prompt; lets a handler notice, after an await,
    # that a newer prompt has taken over the capture.
    capture_seq: int = 0
    suggestion: Suggestion | None = None
    last_injected: str = ""

    @property
    def prompt_captured(self) -> bool:
        return self.capture is CaptureState.PROMPT_CAPTURED

    def begin_capture(self) -> int:
        self.capture = CaptureState.PROMPT_CAPTURED
        self.buffer = []
        self.capture_seq += 1
        return self.capture_seq

    def reset_capture(self) -> None:
        """Back to Idle with an empty buffer. Leaves the suggestion alone."""
        self.capture = CaptureState.IDLE
        self.buffer = []

    def take_buffer(self) -> str:
        """Join the buffered fragments and end the capture."""
        text = "".join(self.buffer)
        self.reset_capture()
        return text

    def install_suggestion(self, suggestion: Suggestion) -> Suggestion | None:
        """Replace the live suggestion wholesale; returns the one replaced."""
        previous = self.suggestion
        self.suggestion = suggestion
        return previous

    def discard_suggestion(self) -> None:
        self.suggestion = None

    def summary(self) -> dict:
        return {
            "session_id": self.session.session_id,
            "model": self.session.model,
            "capture": self.capture.value,
            "buffered_parts": len(self.buffer),
            "suggestion": self.suggestion.to_dict() if self.suggestion else None,
        }
