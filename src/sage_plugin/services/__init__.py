"""
Services Package — the plugin's two outward-facing workflows.

- FeedbackService: best-effort feedback emission (legacy entries + events)
- SuggestionScheduler: debounced suggestion fetch, install and injection
"""

from sage_plugin.services.feedback_service import FeedbackService, compose_entry
from sage_plugin.services.suggestion_service import SuggestionScheduler

__all__ = ["FeedbackService", "SuggestionScheduler", "compose_entry"]
