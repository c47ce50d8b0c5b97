from __future__ import annotations

import json
import pathlib
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httplib2
from google.oauth2.credentials import Credentials
from google.auth.transport.requests import Request as GoogleRequest
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build

from .config import (
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GCAL_SCOPES,
    GCAL_TIMEOUT_SECONDS,
    GOOGLE_TOKEN_FILE,
    DEFAULT_CALENDAR_ID,
    DEFAULT_TIMEZONE,
)
from .models import CalendarEntry, Event
from .utils import _log_debug


class AuthenticatedClient:
  """Opaque credential capability handed to every calendar call.

  The resolution core only passes it along; `GoogleCalendarClient` is the
  single place that unwraps it.
  """

  def __init__(self,
               credentials: Credentials,
               on_refresh: Optional[Callable[[Dict[str, Any]], None]] = None):
    self._credentials = credentials
    self._on_refresh = on_refresh

  @classmethod
  def from_token_info(cls,
                      token_data: Dict[str, Any],
                      on_refresh: Optional[Callable[[Dict[str, Any]], None]] = None
                      ) -> "AuthenticatedClient":
    info = dict(token_data)
    if GOOGLE_CLIENT_ID:
      info.setdefault("client_id", GOOGLE_CLIENT_ID)
    if GOOGLE_CLIENT_SECRET:
      info.setdefault("client_secret", GOOGLE_CLIENT_SECRET)
    creds = Credentials.from_authorized_user_info(info, GCAL_SCOPES)
    return cls(creds, on_refresh=on_refresh)

  def valid_credentials(self) -> Credentials:
    creds = self._credentials
    if creds.expired and creds.refresh_token:
      creds.refresh(GoogleRequest())
      if callable(self._on_refresh):
        self._on_refresh(json.loads(creds.to_json()))
    return creds


def load_token_file(path: pathlib.Path = GOOGLE_TOKEN_FILE) -> Optional[Dict[str, Any]]:
  if not path.exists():
    return None
  try:
    with path.open("r", encoding="utf-8") as f:
      data = json.load(f)
  except Exception as exc:
    _log_debug(f"[GCAL] token file unreadable: {exc}")
    return None
  return data if isinstance(data, dict) else None


def save_token_file(data: Dict[str, Any],
                    path: pathlib.Path = GOOGLE_TOKEN_FILE) -> None:
  path.parent.mkdir(parents=True, exist_ok=True)
  path.write_text(json.dumps(data, ensure_ascii=False, indent=2),
                  encoding="utf-8")


def load_authenticated_client(
    path: pathlib.Path = GOOGLE_TOKEN_FILE) -> Optional[AuthenticatedClient]:
  token_data = load_token_file(path)
  if not token_data:
    return None
  return AuthenticatedClient.from_token_info(
      token_data, on_refresh=lambda data: save_token_file(data, path))


def _convert_gcal_time(obj: Dict[str, Any]) -> Optional[str]:
  if not isinstance(obj, dict):
    return None
  return obj.get("dateTime") or obj.get("date")


def _normalize_gcal_event(raw: Dict[str, Any]) -> Optional[Event]:
  event_id = raw.get("id")
  if not isinstance(event_id, str) or not event_id:
    return None
  return Event(
      id=event_id,
      summary=raw.get("summary") or "",
      description=raw.get("description") or "",
      start=_convert_gcal_time(raw.get("start") or {}),
      end=_convert_gcal_time(raw.get("end") or {}),
      deep_link=raw.get("htmlLink"),
  )


def _local_time_body(value: str, timezone_value: str) -> Dict[str, str]:
  return {"dateTime": value, "timeZone": timezone_value}


class GoogleCalendarClient:
  """Calendar collaborator backed by the Google Calendar v3 API."""

  def __init__(self,
               auth: AuthenticatedClient,
               service: Any = None,
               timezone_value: str = DEFAULT_TIMEZONE,
               http_timeout: float = GCAL_TIMEOUT_SECONDS):
    self._auth = auth
    self._service = service
    self._timezone = timezone_value
    self._http_timeout = http_timeout

  def _get_service(self):
    if self._service is None:
      creds = self._auth.valid_credentials()
      # asyncio timeouts cannot stop the worker thread; bound the socket too.
      http = AuthorizedHttp(creds, http=httplib2.Http(timeout=self._http_timeout))
      self._service = build("calendar", "v3", http=http, cache_discovery=False)
    return self._service

  def create_event(self,
                   calendar_id: str,
                   summary: str,
                   start: str,
                   end: str) -> Event:
    body = {
        "summary": summary,
        "start": _local_time_body(start, self._timezone),
        "end": _local_time_body(end, self._timezone),
    }
    created = self._get_service().events().insert(
        calendarId=calendar_id or DEFAULT_CALENDAR_ID, body=body).execute()
    event = _normalize_gcal_event(created)
    if event is None:
      raise RuntimeError("Google Calendar returned an event without id.")
    return event

  def update_event(self,
                   calendar_id: str,
                   event_id: str,
                   summary: Optional[str] = None,
                   start: Optional[str] = None,
                   end: Optional[str] = None) -> Event:
    if not event_id:
      raise ValueError("event_id is empty")
    body: Dict[str, Any] = {}
    if summary is not None:
      body["summary"] = summary
    if start:
      body["start"] = _local_time_body(start, self._timezone)
    if end:
      body["end"] = _local_time_body(end, self._timezone)
    updated = self._get_service().events().patch(
        calendarId=calendar_id or DEFAULT_CALENDAR_ID,
        eventId=event_id,
        body=body).execute()
    event = _normalize_gcal_event(updated)
    if event is None:
      raise RuntimeError("Google Calendar returned an event without id.")
    return event

  def delete_event(self, calendar_id: str, event_id: str) -> None:
    if not event_id:
      raise ValueError("event_id is empty")
    self._get_service().events().delete(
        calendarId=calendar_id or DEFAULT_CALENDAR_ID,
        eventId=event_id).execute()

  def list_upcoming_events(self, calendar_id: str, max_results: int) -> List[Event]:
    time_min = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    response = self._get_service().events().list(
        calendarId=calendar_id or DEFAULT_CALENDAR_ID,
        timeMin=time_min,
        maxResults=max_results,
        singleEvents=True,
        orderBy="startTime",
    ).execute()
    events: List[Event] = []
    for raw in response.get("items", []):
      if not isinstance(raw, dict):
        continue
      event = _normalize_gcal_event(raw)
      if event is not None:
        events.append(event)
    return events

  def list_calendars(self) -> List[CalendarEntry]:
    service = self._get_service()
    calendars: List[CalendarEntry] = []
    page_token: Optional[str] = None
    while True:
      response = service.calendarList().list(pageToken=page_token).execute()
      for raw in response.get("items", []):
        if not isinstance(raw, dict) or raw.get("deleted"):
          continue
        calendar_id = raw.get("id")
        if not isinstance(calendar_id, str) or not calendar_id.strip():
          continue
        calendars.append(CalendarEntry(
            id=calendar_id,
            summary=raw.get("summary") or "",
            primary=bool(raw.get("primary")),
        ))
      page_token = response.get("nextPageToken")
      if not page_token:
        break
    return calendars
