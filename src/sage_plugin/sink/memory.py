"""In-memory ExternalSink: records every call instead of spawning sage."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from sage_plugin.sink.base import (
    ExternalSink,
    FeedbackEvent,
    PromptCapture,
    ResponseCapture,
    SinkError,
    SuggestionCapture,
)


@dataclass(frozen=True)
class SinkCall:
    op: str
    payload: Any


class RecordingSink(ExternalSink):
    """Records calls; scripted suggestion output; injectable failures.

    ``fail_ops`` names operations that raise SinkError. ``fetch_gate``, when
    set, holds every fetch until the event is set, which lets a test keep a
    fetch in flight while newer triggers arrive.
    """

    def __init__(
        self,
        suggestion_output: str = "",
        fail_ops: set[str] | None = None,
        append_output: str = "ok",
    ) -> None:
        self.suggestion_output = suggestion_output
        self.fail_ops = set(fail_ops or ())
        self.append_output = append_output
        self.fetch_gate: asyncio.Event | None = None
        self.calls: list[SinkCall] = []

    def _record(self, op: str, payload: Any) -> None:
        self.calls.append(SinkCall(op, payload))
        if op in self.fail_ops:
            raise SinkError(f"{op} failed (injected)")

    def ops(self, op: str) -> list[Any]:
        """Payloads of all recorded calls for one operation."""
        return [c.payload for c in self.calls if c.op == op]

    async def capture_prompt(self, capture: PromptCapture) -> None:
        self._record("capture_prompt", capture)

    async def capture_response(self, capture: ResponseCapture) -> None:
        self._record("capture_response", capture)

    async def fetch_suggestions(
        self, prompt: str, limit: int, provision: bool = False
    ) -> str:
        output = self.suggestion_output
        self._record(
            "fetch_suggestions",
            {"prompt": prompt, "limit": limit, "provision": provision},
        )
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        return output

    async def record_suggestion(self, capture: SuggestionCapture) -> None:
        self._record("record_suggestion", capture)

    async def record_feedback(
        self, suggestion_id: str, events: list[FeedbackEvent]
    ) -> None:
        self._record(
            "record_feedback", {"suggestion_id": suggestion_id, "events": list(events)}
        )

    async def append_feedback(self, prompt_key: str, entry: str, source: str) -> str:
        self._record(
            "append_feedback", {"prompt_key": prompt_key, "entry": entry, "source": source}
        )
        return self.append_output
