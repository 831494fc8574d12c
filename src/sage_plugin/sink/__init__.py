"""
External sinks — where captures, suggestions and feedback go.

- ExternalSink: the capability interface the core depends on
- SageCliSink: production implementation (spawns the sage binary)
- RecordingSink: in-memory implementation for tests
"""

from sage_plugin.sink.base import (
    ExternalSink,
    FeedbackEvent,
    PromptCapture,
    ResponseCapture,
    SageCommandError,
    SageSpawnError,
    SinkError,
    SuggestionCapture,
)
from sage_plugin.sink.cli import SageCli, SageCliSink
from sage_plugin.sink.memory import RecordingSink

__all__ = [
    "ExternalSink",
    "FeedbackEvent",
    "PromptCapture",
    "ResponseCapture",
    "SuggestionCapture",
    "SinkError",
    "SageCommandError",
    "SageSpawnError",
    "SageCli",
    "SageCliSink",
    "RecordingSink",
]
