"""
Host client — the calls the plugin makes back into the chat host.

    log(service, level, message, extra)   → POST /log
    append_prompt(text)                   → POST /tui/append-prompt

``HttpHostClient`` talks to an OpenCode server over HTTP.
``RecordingHost`` keeps everything in memory for tests and dry runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class HostError(Exception):
    """The host rejected or failed a call."""


class HostClient(ABC):
    @abstractmethod
    async def log(
        self, service: str, level: str, message: str, extra: dict[str, Any]
    ) -> None:
        ...

    @abstractmethod
    async def append_prompt(self, text: str) -> None:
        ...

    async def aclose(self) -> None:
        return None


class HttpHostClient(HostClient):
    """Host client for an OpenCode server's HTTP API."""

    def __init__(
        self,
        base_url: str,
        directory: str | None = None,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._directory = directory
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def _post(self, path: str, body: dict[str, Any]) -> None:
        params = {"directory": self._directory} if self._directory else None
        try:
            resp = await self._client.post(path, json=body, params=params)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise HostError(f"host call {path} failed: {e}") from e

    async def log(
        self, service: str, level: str, message: str, extra: dict[str, Any]
    ) -> None:
        await self._post(
            "/log",
            {"service": service, "level": level, "message": message, "extra": extra},
        )

    async def append_prompt(self, text: str) -> None:
        await self._post("/tui/append-prompt", {"text": text})

    async def aclose(self) -> None:
        await self._client.aclose()


class RecordingHost(HostClient):
    """In-memory host: keeps log lines and prompt appends."""

    def __init__(self) -> None:
        self.logs: list[dict[str, Any]] = []
        self.appends: list[str] = []

    async def log(
        self, service: str, level: str, message: str, extra: dict[str, Any]
    ) -> None:
        self.logs.append(
            {"service": service, "level": level, "message": message, "extra": extra}
        )

    async def append_prompt(self, text: str) -> None:
        self.appends.append(text)

    def messages(self, level: str | None = None) -> list[str]:
        return [e["message"] for e in self.logs if level is None or e["level"] == level]
