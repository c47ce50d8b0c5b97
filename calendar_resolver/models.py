from __future__ import annotations

from pydantic import BaseModel
from typing import Optional


class Event(BaseModel):
    id: str
    summary: str = ""
    description: str = ""
    start: Optional[str] = None  # RFC3339 dateTime or "YYYY-MM-DD" for all-day
    end: Optional[str] = None
    deep_link: Optional[str] = None


class CalendarEntry(BaseModel):
    id: str
    summary: str = ""
    primary: bool = False


class AgentRunRequest(BaseModel):
    input_as_text: Optional[str] = None


class ConfirmDeleteRequest(BaseModel):
    event_id: str
    calendar_id: Optional[str] = None
