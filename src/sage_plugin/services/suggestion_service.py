"""
Suggestion Scheduler — debounced skill suggestions for the prompt being typed.

Flow for each UI trigger (tui.prompt.append):

    on_ui_trigger(text)
      → remember text as the latest input, issue a new token, re-arm timer
    timer fires (debounce_ms later)
      → abort if the token is stale, the text is blank, or already shown
      → sage suggest skill <text> --format json --limit N [--provision]
      → abort if a newer trigger arrived while the fetch was in flight
      → parse + render, install as the live Suggestion (replaces any other)
      → inject the block into the prompt (undo the install if that fails)
      → report the shown suggestion to sage (best-effort)

Any failure along the way is logged and swallowed; a suggestion problem must
never break the chat.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Callable

from sage_plugin.core.metrics import metrics
from sage_plugin.kernel.debounce import CancellationToken, Debouncer
from sage_plugin.session.state import Suggestion
from sage_plugin.sink.base import SuggestionCapture
from sage_plugin.suggestions.payload import SuggestionPayload, parse_suggestion_output

if TYPE_CHECKING:
    from sage_plugin.core.config import HostConfig, SageConfig
    from sage_plugin.core.logging import HostLogger
    from sage_plugin.host.client import HostClient
    from sage_plugin.session.state import PluginState
    from sage_plugin.sink.base import ExternalSink


class SuggestionScheduler:
    """Debounces UI triggers into at most one live suggestion."""

    def __init__(
        self,
        state: "PluginState",
        sink: "ExternalSink",
        host: "HostClient",
        sage_config: "SageConfig",
        host_config: "HostConfig",
        log: "HostLogger",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._state = state
        self._sink = sink
        self._host = host
        self._sage = sage_config
        self._host_config = host_config
        self._log = log
        self._clock = clock
        self._debouncer = Debouncer(sage_config.debounce_seconds, name="sage-suggest")
        self._latest_input = ""
        # Last prompt a block was injected for; identical input is not re-fetched
        self._last_prompt = ""

    @property
    def generation(self) -> int:
        return self._debouncer.generation

    @property
    def latest_input(self) -> str:
        return self._latest_input

    def on_ui_trigger(self, text: str) -> CancellationToken:
        """Record the latest input and (re)start the debounce timer."""
        self._latest_input = text
        token = self._debouncer.schedule(self._run)
        metrics.gauge_set("scheduler.generation", token.generation)
        return token

    async def wait_idle(self) -> None:
        await self._debouncer.wait_idle()

    async def aclose(self) -> None:
        await self._debouncer.aclose()

    def _already_shown(self, prompt: str) -> bool:
        return prompt == self._last_prompt or prompt == self._state.last_injected

    async def _run(self, token: CancellationToken) -> None:
        prompt = self._latest_input.strip()
        if token.cancelled or not prompt or self._already_shown(prompt):
            return

        await self._log(
            "debug",
            "running sage suggest",
            {"cwd": self._host_config.directory, "prompt_len": len(prompt)},
        )

        if token.cancelled:
            return

        try:
            output = await self._sink.fetch_suggestions(
                prompt, self._sage.suggest_limit, self._sage.provision
            )
            if not output:
                return
            # Decided before any state change; nothing below awaits until the
            # new suggestion is installed and marked shown
            if token.cancelled:
                await self._log(
                    "debug", "suggestion superseded", {"generation": token.generation}
                )
                return

            payload = parse_suggestion_output(output)
            if payload is None or not payload.rendered:
                return

            suggestion, previous = self._install(payload)
            last_prompt, last_injected = self._last_prompt, self._state.last_injected
            self._last_prompt = prompt
            self._state.last_injected = payload.rendered.strip()

            try:
                await self._host.append_prompt(f"\n\n{payload.rendered}\n")
            except Exception:
                # Never shown: put back what was live before
                if self._state.suggestion is suggestion:
                    self._state.suggestion = previous
                self._last_prompt, self._state.last_injected = last_prompt, last_injected
                raise
            metrics.inc("suggestion.shown")

            await self._log(
                "debug",
                "suggestion stored for correlation",
                {"key": suggestion.primary_key, "timestamp": suggestion.created_at},
            )
            await self._record(suggestion, prompt)
        except Exception as e:
            await self._log("warn", "sage suggest failed", {"error": str(e)})

    def _install(
        self, payload: SuggestionPayload
    ) -> tuple[Suggestion, Suggestion | None]:
        """Install a fresh suggestion; returns it with the one it replaced."""
        suggestion = Suggestion(
            correlation_text=payload.correlation_text,
            primary_key=payload.primary_key,
            shown_keys=payload.shown_keys,
            created_at=self._clock(),
        )
        replaced = self._state.install_suggestion(suggestion)
        if replaced is not None:
            metrics.inc("suggestion.discarded", labels={"reason": "replaced"})
        return suggestion, replaced

    async def _record(self, suggestion: Suggestion, prompt: str) -> None:
        capture = SuggestionCapture(
            suggestion_id=suggestion.id,
            prompt=prompt,
            shown_keys=list(suggestion.shown_keys),
            source=self._sage.source,
            attributes={
                "opencode": {
                    "sessionId": self._state.session.session_id,
                    "model": self._state.session.model,
                    "workspace": self._host_config.directory,
                }
            },
        )
        try:
            await self._sink.record_suggestion(capture)
        except Exception as e:
            await self._log(
                "debug",
                "prompt suggestion capture failed (daemon may be down)",
                {"error": str(e)},
            )
