"""
Session Tracker — the prompt/response capture state machine.

    Idle ──(non-empty user prompt)──▶ PromptCaptured
      ▲                                   │ assistant text fragments buffered
      └──(assistant message completed)────┘ buffer flushed + captured

On each captured prompt the live suggestion (if any) is correlated against
the prompt. On each assistant completion the response is scanned for an
explicit usage marker, then the suggestion is dropped once it has outlived
the correlation window.

Every sink call is an await point. State touched after one is re-read, never
assumed unchanged: ``capture_seq`` tells a prompt handler whether a newer
prompt has taken over the capture in the meantime.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Callable

from sage_plugin.core.metrics import metrics
from sage_plugin.correlation.analyzer import CorrelationResult, analyze_prompt
from sage_plugin.correlation.markers import MarkerOutcome, scan_markers
from sage_plugin.session.state import SessionInfo
from sage_plugin.sink.base import PromptCapture, ResponseCapture

if TYPE_CHECKING:
    from sage_plugin.core.config import HostConfig, SageConfig
    from sage_plugin.core.logging import HostLogger
    from sage_plugin.services.feedback_service import FeedbackService
    from sage_plugin.session.state import PluginState
    from sage_plugin.sink.base import ExternalSink


class SessionTracker:
    """Drives PluginState from prompt / response / session events."""

    def __init__(
        self,
        state: "PluginState",
        sink: "ExternalSink",
        feedback: "FeedbackService",
        sage_config: "SageConfig",
        host_config: "HostConfig",
        log: "HostLogger",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._state = state
        self._sink = sink
        self._feedback = feedback
        self._window = sage_config.correlation_window_seconds
        self._host_config = host_config
        self._log = log
        self._clock = clock

    # ─── User prompts ─────────────────────────────────────────

    async def on_user_prompt(
        self, session_id: str | None, model: str | None, text: str
    ) -> CorrelationResult | None:
        """Capture a user prompt; returns the correlation it produced, if any."""
        if not text.strip():
            return None

        session = self._state.session
        session.session_id = session_id if session_id is not None else session.session_id
        session.model = model if model is not None else session.model
        seq = self._state.begin_capture()

        correlation = await self._correlate(text)

        try:
            await self._sink.capture_prompt(
                PromptCapture(
                    prompt=text,
                    session_id=session.session_id,
                    model=session.model,
                    workspace=self._host_config.directory,
                )
            )
            metrics.inc("capture.prompt")
        except Exception as e:
            await self._log("warn", "capture prompt failed", {"error": str(e)})
            # Only undo our own capture; a newer prompt may own it by now
            if self._state.capture_seq == seq:
                self._state.reset_capture()

        return correlation

    async def _correlate(self, text: str) -> CorrelationResult | None:
        suggestion = self._state.suggestion
        if suggestion is None or suggestion.accepted_feedback_sent:
            return None

        result = analyze_prompt(
            text, suggestion, now=self._clock(), window_seconds=self._window
        )
        if result is None:
            return None

        # Claimed before the first await: a concurrent prompt sees it set.
        # The suggestion stays live for the marker check on completion.
        suggestion.accepted_feedback_sent = True
        await self._log("debug", "prompt correlation detected", result.to_dict())
        await self._feedback.emit_correlation(suggestion, result)
        return result

    # ─── Assistant responses ──────────────────────────────────

    def on_assistant_fragment(self, text: str) -> bool:
        """Buffer streamed assistant text; dropped unless a prompt is captured."""
        if not self._state.prompt_captured:
            return False
        self._state.buffer.append(text)
        return True

    async def on_assistant_complete(
        self,
        session_id: str | None = None,
        model: str | None = None,
        tokens_input: int | None = None,
        tokens_output: int | None = None,
    ) -> bool:
        """Flush the buffered response. Returns True if a capture was attempted."""
        if not self._state.prompt_captured:
            return False

        # Back to Idle before any await: a prompt arriving meanwhile starts clean
        response = self._state.take_buffer()
        attempted = False

        if response.strip():
            await self._check_markers(response)
            attempted = True
            try:
                await self._sink.capture_response(
                    ResponseCapture(
                        response=response,
                        session_id=session_id or self._state.session.session_id,
                        model=model or self._state.session.model,
                        tokens_input=tokens_input,
                        tokens_output=tokens_output,
                    )
                )
                metrics.inc("capture.response")
            except Exception as e:
                await self._log("warn", "capture response failed", {"error": str(e)})

        self._expire_suggestion()
        return attempted

    async def _check_markers(self, response: str) -> None:
        suggestion = self._state.suggestion
        if suggestion is None or suggestion.implicit_feedback_sent:
            return
        if suggestion.is_expired(self._clock(), self._window):
            return

        scan = scan_markers(response)
        matched = scan.matching(suggestion.shown_keys)
        # Claimed before the first await, as in _correlate
        if len(matched) == 1:
            suggestion.implicit_feedback_sent = True

        if scan.outcome is MarkerOutcome.MALFORMED:
            await self._log(
                "debug", "malformed suggestion marker", {"fragments": list(scan.malformed)}
            )
        if len(matched) > 1:
            await self._log("debug", "ambiguous suggestion markers", {"keys": matched})
        if len(matched) == 1:
            await self._feedback.emit_implicit(suggestion, matched[0])

    def _expire_suggestion(self) -> None:
        suggestion = self._state.suggestion
        if suggestion is not None and suggestion.is_expired(self._clock(), self._window):
            self._state.discard_suggestion()
            metrics.inc("suggestion.discarded", labels={"reason": "expired"})

    # ─── Session lifecycle ────────────────────────────────────

    async def on_session_created(
        self,
        session_id: str | None,
        parent_id: str | None = None,
        directory: str | None = None,
    ) -> None:
        """New (sub)session: reset capture, keep the live suggestion."""
        self._state.session = SessionInfo(session_id=session_id)
        self._state.reset_capture()
        await self._log(
            "info",
            "session created",
            {
                "sessionId": session_id or "unknown",
                "isSubagent": parent_id is not None,
                "cwd": directory or self._host_config.directory,
            },
        )
