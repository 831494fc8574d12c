"""Host side: event normalization and calls back into the chat host."""

from sage_plugin.host.client import HostClient, HostError, HttpHostClient, RecordingHost
from sage_plugin.host.events import parse_event

__all__ = ["HostClient", "HostError", "HttpHostClient", "RecordingHost", "parse_event"]
