"""
Calendar request resolution: structured generation, tool loop, delete disambiguation.
"""

from .disambiguation import DisambiguationResolver
from .orchestrator import (
    ActionResolver,
    execute_confirmed_delete,
    render_disambiguation_message,
    resolve_calendar_request,
)
from .prefilter import rank_events
from .validator import validate_action_request

__all__ = [
    "ActionResolver",
    "DisambiguationResolver",
    "execute_confirmed_delete",
    "rank_events",
    "render_disambiguation_message",
    "resolve_calendar_request",
    "validate_action_request",
]
