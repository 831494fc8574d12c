"""
External sink — the plugin's only way to talk to the sage tool.

The core (session tracker, suggestion scheduler, feedback emitter) depends
on this interface alone. Production uses ``SageCliSink`` (spawns the sage
binary); tests substitute ``RecordingSink``.

Every method may raise ``SinkError``. Callers treat that as
"no capture / no suggestion / no feedback" and never let it escape.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class SinkError(Exception):
    """Base class for failures talking to the external tool."""


class SageSpawnError(SinkError):
    """The sage binary could not be started."""


class SageCommandError(SinkError):
    """The sage command ran but exited non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.command_args = list(args)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()[:500]}" if stderr.strip() else ""
        super().__init__(
            f"sage {' '.join(args[:3])} exited with code {returncode}{detail}"
        )


@dataclass(frozen=True)
class PromptCapture:
    prompt: str
    session_id: str | None = None
    model: str | None = None
    workspace: str | None = None

    def to_env(self) -> dict[str, str]:
        return {
            "PROMPT": self.prompt,
            "SAGE_SESSION_ID": self.session_id or "",
            "SAGE_MODEL": self.model or "",
            "SAGE_WORKSPACE": self.workspace or "",
        }


@dataclass(frozen=True)
class ResponseCapture:
    response: str
    session_id: str | None = None
    model: str | None = None
    tokens_input: int | None = None
    tokens_output: int | None = None

    def to_env(self) -> dict[str, str]:
        return {
            "SAGE_SESSION_ID": self.session_id or "",
            "SAGE_MODEL": self.model or "",
            "TOKENS_INPUT": "" if self.tokens_input is None else str(self.tokens_input),
            "TOKENS_OUTPUT": "" if self.tokens_output is None else str(self.tokens_output),
            "SAGE_RESPONSE": self.response,
        }


@dataclass(frozen=True)
class SuggestionCapture:
    """Report that a suggestion was shown for a prompt."""

    suggestion_id: str
    prompt: str
    shown_keys: list[str]
    source: str
    attributes: dict[str, Any] | None = None

    @property
    def attributes_json(self) -> str | None:
        if self.attributes is None:
            return None
        return json.dumps(self.attributes)


@dataclass(frozen=True)
class FeedbackEvent:
    """One structured feedback event about a shown suggestion."""

    kind: str  # accepted / steered / rejected / implicitly_helpful
    prompt_key: str
    confidence: float
    features: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "prompt_key": self.prompt_key,
            "confidence": self.confidence,
            "features_json": json.dumps(self.features),
        }


class ExternalSink(ABC):
    """Capability interface for the external sage tool."""

    @abstractmethod
    async def capture_prompt(self, capture: PromptCapture) -> None:
        ...

    @abstractmethod
    async def capture_response(self, capture: ResponseCapture) -> None:
        ...

    @abstractmethod
    async def fetch_suggestions(
        self, prompt: str, limit: int, provision: bool = False
    ) -> str:
        """Raw suggestion output (JSON text when the tool behaves)."""

    @abstractmethod
    async def record_suggestion(self, capture: SuggestionCapture) -> None:
        ...

    @abstractmethod
    async def record_feedback(
        self, suggestion_id: str, events: list[FeedbackEvent]
    ) -> None:
        ...

    @abstractmethod
    async def append_feedback(self, prompt_key: str, entry: str, source: str) -> str:
        """Append a one-line feedback entry to a prompt. Returns tool output."""

    async def aclose(self) -> None:
        return None
