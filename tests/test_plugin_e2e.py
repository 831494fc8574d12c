"""
End-to-end flows through SagePlugin's public handlers.

Drives the plugin with raw host payloads (chat.message + event envelopes)
against RecordingSink / RecordingHost and checks what reached sage.
"""

from __future__ import annotations

import pytest

from sage_plugin.plugin import SagePlugin
from sage_plugin.session.state import CaptureState

from conftest import make_config, suggestion_json

DB_OPT = {
    "name": "optimize database queries",
    "key": "db-opt",
    "library": "lib",
    "content": "Database Optimization tips for queries",
}


# ─── Payload builders ────────────────────────────────────────────


def chat_input(session_id="ses_1", model="claude-3"):
    return {"sessionID": session_id, "model": {"modelID": model}}


def chat_output(*texts):
    return {"parts": [{"type": "text", "text": t} for t in texts]}


def part_event(text, part_type="text"):
    return {
        "type": "message.part.updated",
        "properties": {"part": {"type": part_type, "text": text}},
    }


def assistant_done(session_id="ses_1", tokens=(12, 34)):
    return {
        "type": "message.updated",
        "properties": {
            "info": {
                "role": "assistant",
                "sessionID": session_id,
                "modelID": "claude-3",
                "tokens": {"input": tokens[0], "output": tokens[1]},
            }
        },
    }


def prompt_append(text):
    return {"type": "tui.prompt.append", "properties": {"text": text}}


async def prompt(plugin, text, **kw):
    await plugin.chat_message(chat_input(**kw), chat_output(text))


async def reply(plugin, *fragments):
    for fragment in fragments:
        await plugin.event(part_event(fragment))
    await plugin.event(assistant_done())


async def show_suggestion(plugin, sink, text, *results):
    sink.suggestion_output = suggestion_json(*results)
    await plugin.event(prompt_append(text))
    await plugin.scheduler.wait_idle()


def feedback_kinds(sink):
    return [e.kind for call in sink.ops("record_feedback") for e in call["events"]]


# ─── Scenarios ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_identical_follow_up_is_accepted(plugin, sink, host):
    await show_suggestion(plugin, sink, "optimize database queries", DB_OPT)
    assert plugin.state.suggestion.primary_key == "lib/db-opt"
    assert len(host.appends) == 1

    await prompt(plugin, "optimize database queries")

    events = sink.ops("record_feedback")[0]["events"]
    assert events[0].kind == "accepted"
    assert events[0].prompt_key == "lib/db-opt"
    assert events[0].confidence == pytest.approx(0.75)

    appended = sink.ops("append_feedback")[0]
    assert appended["prompt_key"] == "lib/db-opt"
    assert "Prompt suggestion accepted (overlap: 75%)" in appended["entry"]
    assert appended["source"] == "opencode-plugin"


@pytest.mark.asyncio
async def test_marker_in_reply_counts_once(plugin, sink):
    mcp = {"name": "MCP Builder", "key": "mcp-builder", "library": "my-lib"}
    await show_suggestion(plugin, sink, "build an mcp server", mcp)
    suggestion = plugin.state.suggestion

    await prompt(plugin, "ok go")
    await reply(plugin, "Here you go.\n", "[[sage:prompt_key=my-lib/mcp-builder]]")

    assert feedback_kinds(sink).count("implicitly_helpful") == 1
    assert suggestion.implicit_feedback_sent is True

    await prompt(plugin, "and tests too")
    await reply(plugin, "[[sage:prompt_key=my-lib/mcp-builder]]")
    assert feedback_kinds(sink).count("implicitly_helpful") == 1


@pytest.mark.asyncio
async def test_no_suggestion_means_no_feedback(plugin, sink):
    await prompt(plugin, "first question")
    await reply(plugin, "first answer")
    await prompt(plugin, "second question")

    assert sink.ops("record_feedback") == []
    assert sink.ops("append_feedback") == []
    assert len(sink.ops("capture_prompt")) == 2


@pytest.mark.asyncio
async def test_three_cycles_capture_everything(plugin, sink):
    for i in range(3):
        await prompt(plugin, f"question {i}")
        await reply(plugin, "answer ", f"{i}")

    assert [c.op for c in sink.calls] == [
        "capture_prompt",
        "capture_response",
    ] * 3
    assert [c.response for c in sink.ops("capture_response")] == [
        "answer 0",
        "answer 1",
        "answer 2",
    ]
    env = sink.ops("capture_response")[0].to_env()
    assert env["TOKENS_INPUT"] == "12"
    assert env["TOKENS_OUTPUT"] == "34"


@pytest.mark.asyncio
async def test_reasoning_parts_are_not_captured(plugin, sink):
    await prompt(plugin, "question")
    await plugin.event(part_event("thinking...", part_type="reasoning"))
    await reply(plugin, "answer")

    assert sink.ops("capture_response")[0].response == "answer"


@pytest.mark.asyncio
async def test_user_message_updates_do_not_complete(plugin, sink):
    await prompt(plugin, "question")
    await plugin.event(
        {"type": "message.updated", "properties": {"info": {"role": "user"}}}
    )
    assert plugin.state.capture is CaptureState.PROMPT_CAPTURED
    assert sink.ops("capture_response") == []


@pytest.mark.asyncio
async def test_expired_suggestion_gives_no_correlation(plugin, sink, clock):
    await show_suggestion(plugin, sink, "optimize database queries", DB_OPT)
    clock.advance(30.001)

    await prompt(plugin, "optimize database queries")

    assert sink.ops("record_feedback") == []
    assert len(sink.ops("capture_prompt")) == 1


@pytest.mark.asyncio
async def test_subagent_session_keeps_suggestion(plugin, sink, host):
    await show_suggestion(plugin, sink, "optimize database queries", DB_OPT)
    await plugin.event(
        {
            "type": "session.created",
            "properties": {"info": {"id": "ses_2", "parentID": "ses_1"}},
        }
    )
    await prompt(plugin, "optimize database queries", session_id="ses_2")

    assert feedback_kinds(sink) == ["accepted"]
    assert plugin.state.session.session_id == "ses_2"


# ─── Robustness ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_unknown_and_malformed_events_ignored(plugin, sink):
    for event in (
        {"type": "file.edited", "properties": {"file": "x.py"}},
        {"type": "message.updated", "properties": "nonsense"},
        {"properties": {}},
        None,
        "not even a dict",
    ):
        await plugin.event(event)

    assert sink.calls == []
    assert plugin.state.capture is CaptureState.IDLE


@pytest.mark.asyncio
async def test_chat_message_without_text_parts(plugin, sink):
    await plugin.chat_message(chat_input(), {"parts": [{"type": "file"}]})
    await plugin.chat_message(None, None)
    assert sink.calls == []


@pytest.mark.asyncio
async def test_handler_errors_never_escape(sink, host, clock, monkeypatch):
    plugin = SagePlugin(sink, host, config=make_config(), clock=clock)

    async def boom(*args, **kwargs):
        raise RuntimeError("tracker exploded")

    monkeypatch.setattr(plugin.tracker, "on_user_prompt", boom)
    monkeypatch.setattr(plugin.tracker, "on_assistant_complete", boom)

    await prompt(plugin, "hello")
    await plugin.event(assistant_done())
    await plugin.aclose()


@pytest.mark.asyncio
async def test_blank_prompt_append_does_not_arm_timer(plugin):
    await plugin.event(prompt_append("   "))
    assert plugin.scheduler.generation == 0


@pytest.mark.asyncio
async def test_status_reports_state(plugin, sink):
    await show_suggestion(plugin, sink, "optimize database queries", DB_OPT)
    await prompt(plugin, "something else")

    status = plugin.status()
    assert status["capture"] == "prompt_captured"
    assert status["session_id"] == "ses_1"
    assert status["suggestion"]["primary_key"] == "lib/db-opt"
    assert status["generation"] == 1
