"""
Sage CLI sink — runs the ``sage`` binary as a subprocess for every call.

    capture hook prompt|response          (payload via env vars)
    suggest skill <prompt> --format json --limit N [--provision]
    suggest prompt capture <id> <prompt> --source S --shown K... [--attributes-json J]
    suggest prompt feedback <id> --events-json J
    suggest feedback <key> <entry> --source S

No timeout is imposed: a hung sage process stalls only the handler that
awaited it. Dry-run mode spawns nothing and returns empty output.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time

from sage_plugin.core.config import SageConfig
from sage_plugin.core.metrics import metrics
from sage_plugin.sink.base import (
    ExternalSink,
    FeedbackEvent,
    PromptCapture,
    ResponseCapture,
    SageCommandError,
    SageSpawnError,
    SuggestionCapture,
)

logger = logging.getLogger(__name__)


class SageCli:
    """Thin async wrapper around the sage executable."""

    def __init__(self, config: SageConfig) -> None:
        self.config = config

    async def run(self, args: list[str], env: dict[str, str] | None = None) -> str:
        """Run ``sage <args>`` and return stripped stdout.

        Raises SageSpawnError if the binary can't start and SageCommandError on
        a non-zero exit.
        """
        if self.config.dry_run:
            logger.debug("dry-run: skipping sage %s", " ".join(args[:3]))
            return ""

        op = "_".join(args[:2]) if args else "sage"
        proc_env = {**os.environ, **(env or {}), "SAGE_SOURCE": self.config.source}
        started = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                self.config.bin,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=proc_env,
            )
        except OSError as e:
            metrics.inc("sage.command.calls", labels={"op": op, "status": "spawn_error"})
            raise SageSpawnError(f"could not start {self.config.bin}: {e}") from e

        stdout, stderr = await proc.communicate()
        elapsed_ms = round((time.monotonic() - started) * 1000)
        metrics.observe("sage.command.duration_ms", elapsed_ms, labels={"op": op})

        if proc.returncode != 0:
            metrics.inc("sage.command.calls", labels={"op": op, "status": "error"})
            raise SageCommandError(
                args, proc.returncode, stderr.decode("utf-8", errors="replace")
            )

        metrics.inc("sage.command.calls", labels={"op": op, "status": "ok"})
        return stdout.decode("utf-8", errors="replace").strip()


class SageCliSink(ExternalSink):
    """ExternalSink backed by the sage command-line tool."""

    def __init__(self, config: SageConfig, cli: SageCli | None = None) -> None:
        self.config = config
        self.cli = cli or SageCli(config)

    async def capture_prompt(self, capture: PromptCapture) -> None:
        await self.cli.run(["capture", "hook", "prompt"], env=capture.to_env())

    async def capture_response(self, capture: ResponseCapture) -> None:
        await self.cli.run(["capture", "hook", "response"], env=capture.to_env())

    async def fetch_suggestions(
        self, prompt: str, limit: int, provision: bool = False
    ) -> str:
        args = ["suggest", "skill", prompt, "--format", "json", "--limit", str(limit)]
        if provision:
            args.append("--provision")
        return await self.cli.run(args)

    async def record_suggestion(self, capture: SuggestionCapture) -> None:
        args = [
            "suggest",
            "prompt",
            "capture",
            capture.suggestion_id,
            capture.prompt,
            "--source",
            capture.source,
        ]
        if capture.shown_keys:
            args += ["--shown", *capture.shown_keys]
        if capture.attributes_json:
            args += ["--attributes-json", capture.attributes_json]
        await self.cli.run(args)

    async def record_feedback(
        self, suggestion_id: str, events: list[FeedbackEvent]
    ) -> None:
        payload = json.dumps([e.to_dict() for e in events])
        await self.cli.run(
            ["suggest", "prompt", "feedback", suggestion_id, "--events-json", payload]
        )

    async def append_feedback(self, prompt_key: str, entry: str, source: str) -> str:
        return await self.cli.run(
            ["suggest", "feedback", prompt_key, entry, "--source", source]
        )
