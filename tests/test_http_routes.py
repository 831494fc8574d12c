"""
Tests for the sidecar HTTP API.

Uses FastAPI's TestClient against create_app() with an injected plugin
built on the in-memory sink and host.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from sage_plugin.core.metrics import metrics
from sage_plugin.host.client import RecordingHost
from sage_plugin.main import create_app
from sage_plugin.plugin import SagePlugin
from sage_plugin.sink.memory import RecordingSink

from conftest import make_config


@pytest.fixture
def wired():
    sink = RecordingSink()
    host = RecordingHost()
    config = make_config(debounce_ms=60_000)
    plugin = SagePlugin(sink, host, config=config)
    app = create_app(config, plugin=plugin)
    with TestClient(app) as client:
        yield client, plugin, sink


def test_health(wired):
    client, _, _ = wired
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["dry_run"] is False
    assert body["state"]["capture"] == "idle"
    assert body["state"]["suggestion"] is None


def test_chat_message_captures_prompt(wired):
    client, plugin, sink = wired
    resp = client.post(
        "/v1/chat.message",
        json={
            "input": {"sessionID": "ses_1", "model": {"modelID": "claude-3"}},
            "output": {"parts": [{"type": "text", "text": "hello"}]},
        },
    )
    assert resp.status_code == 202
    assert resp.json() == {"accepted": True}
    assert sink.ops("capture_prompt")[0].prompt == "hello"
    assert plugin.state.session.session_id == "ses_1"


def test_event_envelope_and_wrapper(wired):
    client, plugin, sink = wired
    client.post(
        "/v1/chat.message",
        json={"input": {}, "output": {"parts": [{"type": "text", "text": "q"}]}},
    )
    bare = {
        "type": "message.part.updated",
        "properties": {"part": {"type": "text", "text": "an"}},
    }
    wrapped = {
        "event": {
            "type": "message.part.updated",
            "properties": {"part": {"type": "text", "text": "swer"}},
        }
    }
    assert client.post("/v1/event", json=bare).status_code == 202
    assert client.post("/v1/event", json=wrapped).status_code == 202
    client.post(
        "/v1/event",
        json={"type": "message.updated", "properties": {"info": {"role": "assistant"}}},
    )

    assert sink.ops("capture_response")[0].response == "answer"


def test_prompt_append_arms_scheduler(wired):
    client, plugin, _ = wired
    client.post(
        "/v1/event",
        json={"type": "tui.prompt.append", "properties": {"text": "build a thing"}},
    )
    assert plugin.scheduler.generation == 1
    assert plugin.scheduler.latest_input == "build a thing"


def test_non_object_body_is_rejected(wired):
    client, _, sink = wired
    assert client.post("/v1/event", json=[1, 2]).status_code == 400
    resp = client.post(
        "/v1/chat.message",
        content=b"not json",
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 400
    assert sink.calls == []


def test_unknown_event_still_accepted(wired):
    client, _, sink = wired
    resp = client.post("/v1/event", json={"type": "lsp.updated", "properties": {}})
    assert resp.status_code == 202
    assert sink.calls == []


def test_metrics_snapshot(wired):
    client, _, _ = wired
    client.post(
        "/v1/chat.message",
        json={"input": {}, "output": {"parts": [{"type": "text", "text": "q"}]}},
    )
    body = client.get("/metrics").json()
    assert body["counters"]["capture.prompt"] == 1
    assert "uptime_seconds" in body


def test_owned_plugin_built_from_config():
    config = make_config(dry_run=True)
    app = create_app(config)
    with TestClient(app) as client:
        body = client.get("/health").json()
    assert body["dry_run"] is True
    assert body["state"]["session_id"] is None
    metrics.reset()
