"""
SagePlugin — capture + suggest + feedback for one chat host.

Wires the pieces around a single PluginState:

    chat.message        → SessionTracker.on_user_prompt
    message.part.updated→ SessionTracker.on_assistant_fragment
    message.updated     → SessionTracker.on_assistant_complete
    session.created     → SessionTracker.on_session_created
    tui.prompt.append   → SuggestionScheduler.on_ui_trigger

The two public handlers (``chat_message`` and ``event``) are the outer
guard: nothing raised below them reaches the host.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from sage_plugin.core.config import PluginConfig, config as default_config
from sage_plugin.core.logging import HostLogger
from sage_plugin.host.client import HostClient, HttpHostClient
from sage_plugin.host.events import (
    ChatMessage,
    HostEvent,
    MessageUpdated,
    PartUpdated,
    PromptAppended,
    SessionCreated,
    parse_event,
)
from sage_plugin.services.feedback_service import FeedbackService
from sage_plugin.services.suggestion_service import SuggestionScheduler
from sage_plugin.session.state import PluginState
from sage_plugin.session.tracker import SessionTracker
from sage_plugin.sink.base import ExternalSink
from sage_plugin.sink.cli import SageCliSink

logger = logging.getLogger(__name__)


class SagePlugin:
    """One plugin instance: owns its state, tracker, scheduler and emitter."""

    def __init__(
        self,
        sink: ExternalSink,
        host: HostClient,
        config: PluginConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or default_config
        self.sink = sink
        self.host = host
        self.state = PluginState()
        self.log = HostLogger(host, service=self.config.host.service)
        self.feedback = FeedbackService(sink, self.config.sage, self.log)
        self.tracker = SessionTracker(
            self.state,
            sink,
            self.feedback,
            self.config.sage,
            self.config.host,
            self.log,
            clock=clock,
        )
        self.scheduler = SuggestionScheduler(
            self.state,
            sink,
            host,
            self.config.sage,
            self.config.host,
            self.log,
            clock=clock,
        )

    @classmethod
    def from_config(cls, config: PluginConfig | None = None) -> SagePlugin:
        """Production wiring: sage CLI sink + OpenCode HTTP host client."""
        config = config or default_config
        host = HttpHostClient(
            config.host.url,
            directory=config.host.directory,
            timeout=config.host.timeout,
        )
        return cls(SageCliSink(config.sage), host, config=config)

    # ─── Host handlers ────────────────────────────────────────

    async def chat_message(self, input: Any, output: Any) -> None:
        """``chat.message`` hook: a user prompt with its session metadata."""
        try:
            message = ChatMessage.from_payload(input, output)
            await self.tracker.on_user_prompt(
                message.session_id, message.model_id, message.text
            )
        except Exception:
            logger.exception("chat.message handler failed")

    async def event(self, event: Any) -> None:
        """Generic ``event`` hook: ``{type, properties}``."""
        try:
            await self.dispatch(parse_event(event))
        except Exception:
            logger.exception("event handler failed")

    async def dispatch(self, event: HostEvent) -> None:
        if isinstance(event, PartUpdated):
            if event.part_type == "text":
                self.tracker.on_assistant_fragment(event.text)
        elif isinstance(event, MessageUpdated):
            if event.is_assistant:
                await self.tracker.on_assistant_complete(
                    session_id=event.session_id,
                    model=event.model_id,
                    tokens_input=event.tokens_input,
                    tokens_output=event.tokens_output,
                )
        elif isinstance(event, SessionCreated):
            await self.tracker.on_session_created(
                event.session_id, event.parent_id, event.directory
            )
        elif isinstance(event, PromptAppended):
            if event.text.strip():
                self.scheduler.on_ui_trigger(event.text)

    # ─── Lifecycle ────────────────────────────────────────────

    def status(self) -> dict:
        return {**self.state.summary(), "generation": self.scheduler.generation}

    async def aclose(self) -> None:
        await self.scheduler.aclose()
        await self.sink.aclose()
        await self.host.aclose()
