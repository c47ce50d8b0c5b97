from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from .agent import ActionResolver, execute_confirmed_delete
from .agent.errors import CollaboratorFailure
from .agent.tools import call_calendar
from .config import DEFAULT_CALENDAR_ID, GOOGLE_TOKEN_FILE, OPENAI_API_KEY
from .gcal import AuthenticatedClient, load_authenticated_client
from .models import AgentRunRequest, ConfirmDeleteRequest

router = APIRouter()
logger = logging.getLogger(__name__)
_resolver: Optional[ActionResolver] = None


def require_auth_client() -> AuthenticatedClient:
  try:
    auth = load_authenticated_client()
  except Exception as exc:
    logger.exception("Stored Google credentials are invalid")
    raise HTTPException(status_code=401,
                        detail="Stored Google credentials are invalid.") from exc
  if auth is None:
    raise HTTPException(status_code=401,
                        detail="Google Calendar is not connected.")
  return auth


def get_resolver() -> ActionResolver:
  global _resolver
  if _resolver is None:
    _resolver = ActionResolver()
  return _resolver


@router.get("/health")
def health() -> Dict[str, Any]:
  return {
      "ok": True,
      "openai_configured": bool(OPENAI_API_KEY),
      "google_token_present": GOOGLE_TOKEN_FILE.exists(),
  }


@router.post("/api/agent/run")
async def agent_run(body: AgentRunRequest,
                    auth: AuthenticatedClient = Depends(require_auth_client),
                    resolver: ActionResolver = Depends(get_resolver)):
  outcome = await resolver.resolve(body.input_as_text or "", auth)
  if outcome.status == "failed":
    logger.info("Agent run failed: %s", outcome.error_code)
  return outcome.model_dump(mode="json")


@router.post("/api/agent/confirm-delete")
async def agent_confirm_delete(body: ConfirmDeleteRequest,
                               auth: AuthenticatedClient = Depends(require_auth_client),
                               resolver: ActionResolver = Depends(get_resolver)):
  if not body.event_id.strip():
    raise HTTPException(status_code=400, detail="event_id is missing.")
  ok, message = await execute_confirmed_delete(
      auth,
      body.event_id,
      body.calendar_id or DEFAULT_CALENDAR_ID,
      calendar_factory=resolver.calendar_factory,
  )
  if not ok:
    raise HTTPException(status_code=502, detail=message)
  return {"ok": True, "message": message}


@router.get("/api/google/calendars")
async def google_calendars(auth: AuthenticatedClient = Depends(require_auth_client),
                           resolver: ActionResolver = Depends(get_resolver)):
  calendar = resolver.calendar_factory(auth)
  try:
    calendars = await call_calendar(calendar.list_calendars)
  except CollaboratorFailure as exc:
    raise HTTPException(status_code=502, detail=exc.user_message) from exc
  return {"calendars": [entry.model_dump() for entry in calendars]}
