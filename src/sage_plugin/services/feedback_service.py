"""
Feedback Service — turns correlation and marker outcomes into feedback.

Two independent paths reach the sage tool:

- Legacy one-line entries appended to a prompt
  (``suggest feedback <key> <entry>``), e.g.
      [2026-10-18] Prompt suggestion accepted (overlap: 85%)
- Structured events for a shown suggestion
  (``suggest prompt feedback <id> --events-json``): accepted / steered /
  rejected from prompt correlation, implicitly_helpful from markers.

Everything here is best-effort. Failures are logged and reported as False;
nothing is raised to the caller.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Callable

from sage_plugin.core.metrics import metrics
from sage_plugin.correlation.analyzer import CorrelationResult, CorrelationType
from sage_plugin.sink.base import ExternalSink, FeedbackEvent

if TYPE_CHECKING:
    from sage_plugin.core.config import SageConfig
    from sage_plugin.core.logging import HostLogger
    from sage_plugin.session.state import Suggestion


IMPLICITLY_HELPFUL = "implicitly_helpful"
KEYWORD_SAMPLE = 3


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def compose_entry(result: CorrelationResult, today: date | None = None) -> str:
    """Single-line, dated, human-readable entry for one classification."""
    stamp = (today or _utc_today()).isoformat()
    percent = f"{result.overlap * 100:.0f}%"

    if result.type is CorrelationType.ACCEPTED:
        return f"[{stamp}] Prompt suggestion accepted (overlap: {percent})"
    if result.type is CorrelationType.STEERED:
        added = ", ".join(result.added[:KEYWORD_SAMPLE]) or "none"
        removed = ", ".join(result.removed[:KEYWORD_SAMPLE]) or "none"
        return (
            f'[{stamp}] User steered from suggestion - Added keywords: "{added}"'
            f' - Removed: "{removed}"'
        )
    return f"[{stamp}] Prompt suggestion rejected (low overlap: {percent})"


class FeedbackService:
    """Best-effort feedback emitter over an ExternalSink."""

    def __init__(
        self,
        sink: ExternalSink,
        config: "SageConfig",
        log: "HostLogger",
        today: Callable[[], date] = _utc_today,
    ) -> None:
        self._sink = sink
        self._config = config
        self._log = log
        self._today = today

    @property
    def enabled(self) -> bool:
        return self._config.feedback_enabled

    async def append_feedback(self, prompt_key: str | None, entry: str) -> bool:
        """Append a legacy feedback line to a prompt."""
        if not self.enabled or not prompt_key:
            return False

        await self._log(
            "debug", "appending RLM feedback", {"promptKey": prompt_key, "feedback": entry}
        )
        try:
            output = await self._sink.append_feedback(
                prompt_key, entry, self._config.feedback_source
            )
        except Exception as e:
            metrics.inc("feedback.failed", labels={"path": "append"})
            await self._log(
                "warn",
                "failed to append RLM feedback",
                {"promptKey": prompt_key, "error": str(e)},
            )
            return False

        if not output:
            return False
        await self._log("info", "RLM feedback appended", {"promptKey": prompt_key})
        return True

    async def record_feedback(
        self, suggestion_id: str, events: list[FeedbackEvent]
    ) -> bool:
        """Send structured feedback events for a shown suggestion."""
        if not self.enabled or not suggestion_id or not events:
            return False
        try:
            await self._sink.record_feedback(suggestion_id, events)
        except Exception as e:
            metrics.inc("feedback.failed", labels={"path": "events"})
            await self._log(
                "debug",
                "prompt suggestion feedback failed (daemon may be down)",
                {"error": str(e)},
            )
            return False
        return True

    async def emit_correlation(
        self, suggestion: "Suggestion", result: CorrelationResult
    ) -> bool:
        """Both feedback paths for an accepted / steered / rejected prompt."""
        metrics.inc("feedback.correlation", labels={"type": result.type.value})
        entry = compose_entry(result, self._today())
        await self.append_feedback(result.key, entry)

        return await self.record_feedback(
            suggestion.id,
            [
                FeedbackEvent(
                    kind=result.type.value,
                    prompt_key=result.key,
                    confidence=result.overlap,
                    features={"overlap": result.overlap},
                )
            ],
        )

    async def emit_implicit(self, suggestion: "Suggestion", prompt_key: str) -> bool:
        """The assistant echoed exactly one shown key's marker."""
        metrics.inc("feedback.implicit")
        return await self.record_feedback(
            suggestion.id,
            [
                FeedbackEvent(
                    kind=IMPLICITLY_HELPFUL,
                    prompt_key=prompt_key,
                    confidence=1.0,
                    features={"marker": True},
                )
            ],
        )
