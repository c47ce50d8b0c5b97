from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from ..config import (
    AGENT_ACTION_MODEL,
    AGENT_DISAMBIGUATION_MODEL,
    AGENT_MAX_TOOL_ITERATIONS,
    DEFAULT_TIMEZONE,
)
from ..gcal import AuthenticatedClient, GoogleCalendarClient
from ..utils import _format_event_start, _log_debug, normalize_text
from .disambiguation import DisambiguationResolver
from .errors import (
    CollaboratorFailure,
    GenerationFailure,
    IncompleteAction,
    ResolutionError,
    ToolLoopExceeded,
    UnrecognizedAction,
)
from .llm_provider import OpenAIGenerator
from .schemas import (
    ActionGenerationOutput,
    CalendarActionRequest,
    DisambiguationKind,
    DisambiguationResult,
    ResolutionOutcome,
    ResolverState,
    ToolInvocation,
)
from .tools import TOOL_DESCRIPTIONS, TOOL_REGISTRY, call_calendar, execute_tool
from .validator import check_required_fields, validate_action_request, validate_payload

logger = logging.getLogger(__name__)

ACTION_SYSTEM_PROMPT_TEMPLATE = """You turn a user's calendar request into exactly one structured calendar action.
Return JSON only. No markdown.
Current date/time is {now_iso}. Timezone is {timezone}.

Actions:
- create: requires summary, startDateTime, endDateTime.
- update: requires eventId and summary. startDateTime/endDateTime are optional.
- delete: set eventId when you know it. Otherwise set summary to the title the user referred to.
Timestamps are calendar-local without offset: YYYY-MM-DDTHH:MM:SS.
calendarId defaults to "primary".
Never invent an eventId. Only use ids that appear in a tool_result.

Tools:
{tool_lines}
To call a tool return only: {{"tool": "<name>", "params": {{...}}}}
Call a tool only when the request depends on the user's existing events.
After a tool_result arrives, use it and return the final action.
"""


def _tool_lines() -> str:
  return "\n".join(f"- {name}: {desc}" for name, desc in TOOL_DESCRIPTIONS.items())


def build_action_system_prompt(timezone_name: str, now: Optional[datetime] = None) -> str:
  current = now or datetime.now(ZoneInfo(timezone_name))
  return ACTION_SYSTEM_PROMPT_TEMPLATE.format(
      now_iso=current.isoformat(timespec="seconds"),
      timezone=timezone_name,
      tool_lines=_tool_lines(),
  )


def _declares_tool(raw: Dict[str, Any]) -> bool:
  return raw.get("tool") not in (None, "")


def _push_transition(trace: Dict[str, Any], state: ResolverState,
                     detail: Optional[Dict[str, Any]] = None) -> None:
  trace["state"] = state
  trace["transitions"].append({"state": state.value, "detail": detail or {}})
  _log_debug(f"[RESOLVER] -> {state.value} {json.dumps(detail or {}, ensure_ascii=False)}")


def render_disambiguation_message(result: DisambiguationResult) -> str:
  if result.kind == DisambiguationKind.AUTO_RESOLVED and result.best is not None:
    best = result.best
    return f"About to delete \"{best.summary}\" ({_format_event_start(best.start)}). Confirm?"
  if result.kind == DisambiguationKind.CANDIDATE_LIST:
    lines = ["Which event did you mean?"]
    for index, candidate in enumerate(result.candidates, start=1):
      lines.append(f"{index}. {candidate.summary} ({_format_event_start(candidate.start)})")
    return "\n".join(lines)
  return f"I couldn't find an event matching \"{result.query}\"."


class ActionResolver:
  """Turns one user utterance into a calendar mutation or a delete proposal."""

  def __init__(self,
               generator: Any = None,
               disambiguator: Optional[DisambiguationResolver] = None,
               calendar_factory: Callable[[AuthenticatedClient], Any] = GoogleCalendarClient,
               max_tool_iterations: int = AGENT_MAX_TOOL_ITERATIONS,
               timezone_name: str = DEFAULT_TIMEZONE):
    if max_tool_iterations < 0:
      raise ValueError("max_tool_iterations must be >= 0")
    self.generator = generator or OpenAIGenerator(AGENT_ACTION_MODEL)
    self.disambiguator = disambiguator or DisambiguationResolver(
        OpenAIGenerator(AGENT_DISAMBIGUATION_MODEL))
    self.calendar_factory = calendar_factory
    self.max_tool_iterations = max_tool_iterations
    self.timezone_name = timezone_name

  async def resolve(self, input_as_text: str, auth: AuthenticatedClient) -> ResolutionOutcome:
    text = normalize_text(input_as_text)
    trace: Dict[str, Any] = {
        "state": ResolverState.REQUESTING,
        "transitions": [],
        "tool_calls": 0,
    }
    action: Optional[CalendarActionRequest] = None
    try:
      if not text:
        raise GenerationFailure("empty input")
      calendar = self.calendar_factory(auth)
      action = await self._generate_action(text, calendar, trace)
      return await self._dispatch(text, action, calendar, trace)
    except ResolutionError as exc:
      _push_transition(trace, ResolverState.FAILED, {"error": exc.code, "detail": str(exc)})
      return self._failed(exc, action, trace)
    except Exception as exc:
      logger.exception("Unexpected failure while resolving calendar request")
      failure = CollaboratorFailure(str(exc))
      _push_transition(trace, ResolverState.FAILED, {"error": failure.code})
      return self._failed(failure, action, trace)

  async def _generate_action(self,
                             text: str,
                             calendar: Any,
                             trace: Dict[str, Any]) -> CalendarActionRequest:
    system_prompt = build_action_system_prompt(self.timezone_name)
    messages: List[Dict[str, str]] = [{"role": "user", "content": text}]
    _push_transition(trace, ResolverState.REQUESTING)
    while True:
      raw = await self.generator.generate(system_prompt, messages, ActionGenerationOutput)
      if not _declares_tool(raw):
        action = validate_action_request(raw)
        _push_transition(trace, ResolverState.RESOLVED,
                         action.model_dump(exclude_none=True))
        return action

      invocation = validate_payload(ToolInvocation, raw)
      _push_transition(trace, ResolverState.TOOL_PENDING,
                       {"tool": invocation.tool, "params": invocation.params})
      if trace["tool_calls"] >= self.max_tool_iterations:
        raise ToolLoopExceeded(trace["tool_calls"])
      if invocation.tool not in TOOL_REGISTRY:
        raise UnrecognizedAction(f"Unknown tool: {invocation.tool}")
      trace["tool_calls"] += 1
      tool_result = await execute_tool(invocation, calendar)
      messages.append({"role": "assistant",
                       "content": json.dumps(raw, ensure_ascii=False)})
      messages.append({"role": "user", "content": tool_result})
      _push_transition(trace, ResolverState.REQUESTING,
                       {"tool_calls": trace["tool_calls"]})

  async def _dispatch(self,
                      text: str,
                      action: CalendarActionRequest,
                      calendar: Any,
                      trace: Dict[str, Any]) -> ResolutionOutcome:
    if action.action == "create":
      check_required_fields(action)
      event = await call_calendar(calendar.create_event,
                                  action.calendarId,
                                  action.summary,
                                  action.startDateTime,
                                  action.endDateTime)
      message = f"Event created: {event.summary or action.summary}"
      if event.deep_link:
        message = f"{message} ({event.deep_link})"
      return ResolutionOutcome(status="executed", message=message, action=action,
                               event=event, tool_calls=trace["tool_calls"])

    if action.action == "update":
      check_required_fields(action)
      event = await call_calendar(calendar.update_event,
                                  action.calendarId,
                                  action.eventId,
                                  summary=action.summary,
                                  start=action.startDateTime,
                                  end=action.endDateTime)
      return ResolutionOutcome(status="executed",
                               message=f"Event updated: {event.summary or action.summary}",
                               action=action,
                               event=event,
                               tool_calls=trace["tool_calls"])

    if action.action == "delete":
      if action.eventId:
        await call_calendar(calendar.delete_event, action.calendarId, action.eventId)
        return ResolutionOutcome(status="executed", message="Event deleted.",
                                 action=action, tool_calls=trace["tool_calls"])
      if action.summary:
        result = await self.disambiguator.resolve(text, action.summary, calendar,
                                                  action.calendarId)
        status = "no_match" if result.kind == DisambiguationKind.NO_MATCH else "needs_confirmation"
        return ResolutionOutcome(status=status,
                                 message=render_disambiguation_message(result),
                                 action=action,
                                 disambiguation=result,
                                 tool_calls=trace["tool_calls"])
      raise IncompleteAction("delete", ["eventId", "summary"])

    raise UnrecognizedAction(f"Unsupported action: {action.action}")

  def _failed(self,
              exc: ResolutionError,
              action: Optional[CalendarActionRequest],
              trace: Dict[str, Any]) -> ResolutionOutcome:
    return ResolutionOutcome(status="failed",
                             message=exc.user_message,
                             action=action,
                             error_code=exc.code,
                             tool_calls=trace["tool_calls"])


async def resolve_calendar_request(input_as_text: str,
                                   auth: AuthenticatedClient,
                                   resolver: Optional[ActionResolver] = None) -> ResolutionOutcome:
  return await (resolver or ActionResolver()).resolve(input_as_text, auth)


async def execute_confirmed_delete(auth: AuthenticatedClient,
                                   event_id: str,
                                   calendar_id: str,
                                   calendar_factory: Callable[[AuthenticatedClient], Any] = GoogleCalendarClient
                                   ) -> Tuple[bool, str]:
  """Delete after the user confirmed a disambiguation proposal."""
  calendar = calendar_factory(auth)
  try:
    await call_calendar(calendar.delete_event, calendar_id, event_id)
  except CollaboratorFailure as exc:
    return False, exc.user_message
  return True, "Event deleted."
