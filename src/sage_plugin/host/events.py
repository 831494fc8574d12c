"""
Host events — normalized views of the raw payloads the chat host delivers.

The host speaks OpenCode's plugin shapes:

    chat.message(input{sessionID, model{modelID}}, output{parts[{type, text}]})
    event{type, properties}:
        message.part.updated  {part{type, text}}
        message.updated       {info{role, sessionID, modelID, tokens{input, output}}}
        session.created       {info{id, parentID, directory}}
        tui.prompt.append     {text}

Parsing never raises: missing or mistyped fields become None / "".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

PART_UPDATED = "message.part.updated"
MESSAGE_UPDATED = "message.updated"
SESSION_CREATED = "session.created"
PROMPT_APPEND = "tui.prompt.append"


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None


@dataclass(frozen=True)
class ChatMessage:
    """A user prompt, with the session/model it was sent under."""

    session_id: str | None
    model_id: str | None
    text: str

    @classmethod
    def from_payload(cls, input: Any, output: Any) -> ChatMessage:
        meta = _dict(input)
        parts = _dict(output).get("parts") or []
        texts = [
            str(p.get("text") or "")
            for p in parts
            if isinstance(p, dict) and p.get("type") == "text"
        ]
        return cls(
            session_id=_str_or_none(meta.get("sessionID")),
            model_id=_str_or_none(_dict(meta.get("model")).get("modelID")),
            text="\n".join(texts),
        )


@dataclass(frozen=True)
class PartUpdated:
    part_type: str | None
    text: str


@dataclass(frozen=True)
class MessageUpdated:
    role: str | None
    session_id: str | None
    model_id: str | None
    tokens_input: int | None
    tokens_output: int | None

    @property
    def is_assistant(self) -> bool:
        return self.role == "assistant"


@dataclass(frozen=True)
class SessionCreated:
    session_id: str | None
    parent_id: str | None
    directory: str | None

    @property
    def is_subagent(self) -> bool:
        return self.parent_id is not None


@dataclass(frozen=True)
class PromptAppended:
    text: str


@dataclass(frozen=True)
class UnknownEvent:
    type: str | None


HostEvent = Union[
    PartUpdated, MessageUpdated, SessionCreated, PromptAppended, UnknownEvent
]


def parse_event(event: Any) -> HostEvent:
    """Normalize an ``{type, properties}`` envelope."""
    event = _dict(event)
    event_type = event.get("type")
    props = _dict(event.get("properties"))

    if event_type == PART_UPDATED:
        part = _dict(props.get("part"))
        return PartUpdated(
            part_type=_str_or_none(part.get("type")),
            text=str(part.get("text") or ""),
        )

    if event_type == MESSAGE_UPDATED:
        info = _dict(props.get("info"))
        tokens = _dict(info.get("tokens"))
        return MessageUpdated(
            role=_str_or_none(info.get("role")),
            session_id=_str_or_none(info.get("sessionID")),
            model_id=_str_or_none(info.get("modelID")),
            tokens_input=_int_or_none(tokens.get("input")),
            tokens_output=_int_or_none(tokens.get("output")),
        )

    if event_type == SESSION_CREATED:
        info = _dict(props.get("info"))
        return SessionCreated(
            session_id=_str_or_none(info.get("id")),
            parent_id=_str_or_none(info.get("parentID")),
            directory=_str_or_none(info.get("directory")),
        )

    if event_type == PROMPT_APPEND:
        return PromptAppended(text=str(props.get("text") or ""))

    return UnknownEvent(type=_str_or_none(event_type))
