"""Tests for the host client and HostLogger."""

from __future__ import annotations

import json
import logging

import httpx
import pytest

from sage_plugin.core.logging import HostLogger
from sage_plugin.host.client import HostError, HttpHostClient, RecordingHost


def _client(handler, directory="/tmp/project") -> HttpHostClient:
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(transport=transport, base_url="http://opencode.test")
    return HttpHostClient("http://opencode.test", directory=directory, client=http)


class TestHttpHostClient:
    @pytest.mark.asyncio
    async def test_append_prompt(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=True)

        client = _client(handler)
        await client.append_prompt("\n\nblock\n")
        await client.aclose()

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/tui/append-prompt"
        assert request.url.params["directory"] == "/tmp/project"
        assert json.loads(request.content) == {"text": "\n\nblock\n"}

    @pytest.mark.asyncio
    async def test_log_body(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        client = _client(handler, directory=None)
        await client.log("sage-plugin", "info", "hello", {"a": 1})
        await client.aclose()

        assert seen[0].url.path == "/log"
        assert "directory" not in seen[0].url.params
        assert json.loads(seen[0].content) == {
            "service": "sage-plugin",
            "level": "info",
            "message": "hello",
            "extra": {"a": 1},
        }

    @pytest.mark.asyncio
    async def test_http_error_becomes_host_error(self):
        client = _client(lambda request: httpx.Response(500))
        with pytest.raises(HostError):
            await client.append_prompt("x")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_becomes_host_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler)
        with pytest.raises(HostError):
            await client.log("s", "info", "m", {})
        await client.aclose()


class _BrokenHost(RecordingHost):
    async def log(self, service, level, message, extra):
        raise HostError("host down")


class TestHostLogger:
    @pytest.mark.asyncio
    async def test_mirrors_to_host(self):
        host = RecordingHost()
        log = HostLogger(host, service="svc")
        await log("warn", "something odd", {"k": "v"})
        assert host.logs == [
            {"service": "svc", "level": "warn", "message": "something odd", "extra": {"k": "v"}}
        ]

    @pytest.mark.asyncio
    async def test_host_failure_is_swallowed(self, caplog):
        log = HostLogger(_BrokenHost(), logger=logging.getLogger("sage_plugin.test"))
        with caplog.at_level(logging.DEBUG, logger="sage_plugin.test"):
            await log("error", "still logged locally")
        assert any("still logged locally" in r.getMessage() for r in caplog.records)
        assert caplog.records[0].levelno == logging.ERROR

    @pytest.mark.asyncio
    async def test_without_host(self):
        await HostLogger(None)("info", "local only")
