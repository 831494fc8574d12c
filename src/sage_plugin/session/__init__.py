"""
Session state — in-memory only, reset on restart.

- PluginState / Suggestion / CaptureState: the owned state object
- SessionTracker: prompt/response capture state machine
"""

from sage_plugin.session.state import CaptureState, PluginState, SessionInfo, Suggestion
from sage_plugin.session.tracker import SessionTracker

__all__ = [
    "CaptureState",
    "PluginState",
    "SessionInfo",
    "Suggestion",
    "SessionTracker",
]
