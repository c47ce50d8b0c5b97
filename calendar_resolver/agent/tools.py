from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict

from ..config import DEFAULT_CALENDAR_ID, GCAL_TIMEOUT_SECONDS, UPCOMING_EVENTS_LIMIT
from ..utils import _log_debug
from .errors import CollaboratorFailure, ResolutionError, UnrecognizedAction
from .schemas import ToolInvocation

logger = logging.getLogger(__name__)

FETCH_UPCOMING_EVENTS_TOOL = "fetch_upcoming_events"

TOOL_DESCRIPTIONS: Dict[str, str] = {
    FETCH_UPCOMING_EVENTS_TOOL: (
        "Returns the user's upcoming events (id, summary, description, start, "
        "end, deepLink) ordered by start time. params: {\"calendarId\": string}"
    ),
}


async def call_calendar(fn: Callable[..., Any],
                        *args: Any,
                        timeout: float = GCAL_TIMEOUT_SECONDS,
                        **kwargs: Any) -> Any:
  """Run a blocking collaborator call off the event loop with a timeout."""
  name = getattr(fn, "__name__", "calendar_call")
  try:
    return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs),
                                  timeout=timeout)
  except ResolutionError:
    raise
  except asyncio.TimeoutError as exc:
    logger.error("Calendar call %s timed out after %ss", name, timeout)
    raise CollaboratorFailure(f"{name} timed out") from exc
  except Exception as exc:
    logger.exception("Calendar call %s failed", name)
    raise CollaboratorFailure(f"{name} failed: {exc}") from exc


def _calendar_id_param(params: Dict[str, Any]) -> str:
  value = params.get("calendarId")
  if isinstance(value, str) and value.strip():
    return value.strip()
  return DEFAULT_CALENDAR_ID


async def _fetch_upcoming_events(calendar: Any, params: Dict[str, Any]) -> Dict[str, Any]:
  calendar_id = _calendar_id_param(params)
  events = await call_calendar(calendar.list_upcoming_events,
                               calendar_id,
                               UPCOMING_EVENTS_LIMIT)
  return {
      "calendarId": calendar_id,
      "events": [
          {
              "id": event.id,
              "summary": event.summary,
              "description": event.description,
              "start": event.start,
              "end": event.end,
              "deepLink": event.deep_link,
          }
          for event in events
      ],
  }


ToolHandler = Callable[[Any, Dict[str, Any]], Awaitable[Dict[str, Any]]]

TOOL_REGISTRY: Dict[str, ToolHandler] = {
    FETCH_UPCOMING_EVENTS_TOOL: _fetch_upcoming_events,
}


async def execute_tool(invocation: ToolInvocation, calendar: Any) -> str:
  """Execute a tool request and serialize its result for the conversation."""
  handler = TOOL_REGISTRY.get(invocation.tool)
  if handler is None:
    raise UnrecognizedAction(f"Unknown tool: {invocation.tool}")
  _log_debug(f"[TOOL] {invocation.tool} params={invocation.params}")
  result = await handler(calendar, invocation.params)
  return json.dumps({"tool_result": {"name": invocation.tool, "result": result}},
                    ensure_ascii=False)
