from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import DEFAULT_CALENDAR_ID, ISO_DATETIME_SECONDS_RE
from ..models import Event

ActionName = Literal["create", "update", "delete"]
TIMESTAMP_FORMAT_HINT = "YYYY-MM-DDTHH:MM:SS"


# ---------------------------------------------------------------------------
#  Action contract
# ---------------------------------------------------------------------------

class CalendarActionRequest(BaseModel):
  """Validated interpretation of a user's calendar request."""
  model_config = ConfigDict(extra="ignore")

  action: ActionName
  calendarId: str = DEFAULT_CALENDAR_ID
  summary: Optional[str] = None
  startDateTime: Optional[str] = None
  endDateTime: Optional[str] = None
  eventId: Optional[str] = None

  @field_validator("calendarId", mode="before")
  @classmethod
  def _default_calendar(cls, value: Any) -> Any:
    if value is None:
      return DEFAULT_CALENDAR_ID
    if isinstance(value, str) and not value.strip():
      return DEFAULT_CALENDAR_ID
    return value

  @field_validator("summary", "eventId", mode="before")
  @classmethod
  def _blank_to_none(cls, value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
      return None
    return value

  @field_validator("startDateTime", "endDateTime")
  @classmethod
  def _local_timestamp(cls, value: Optional[str]) -> Optional[str]:
    if value is None:
      return None
    if not ISO_DATETIME_SECONDS_RE.fullmatch(value):
      raise ValueError(f"must be formatted as {TIMESTAMP_FORMAT_HINT}")
    return value


class ToolInvocation(BaseModel):
  """A model-declared request for live data, scoped to one resolution call."""
  model_config = ConfigDict(extra="ignore")

  tool: str = Field(min_length=1)
  params: Dict[str, Any] = Field(default_factory=dict)

  @field_validator("params", mode="before")
  @classmethod
  def _null_params(cls, value: Any) -> Any:
    return {} if value is None else value


class ActionGenerationOutput(BaseModel):
  """Output shape advertised to the generation model.

  Either `tool` is set (a tool request) or the action fields are.
  """
  model_config = ConfigDict(extra="ignore")

  tool: Optional[str] = None
  params: Optional[Dict[str, Any]] = None
  action: Optional[ActionName] = None
  calendarId: Optional[str] = None
  summary: Optional[str] = None
  startDateTime: Optional[str] = Field(default=None, description=TIMESTAMP_FORMAT_HINT)
  endDateTime: Optional[str] = Field(default=None, description=TIMESTAMP_FORMAT_HINT)
  eventId: Optional[str] = None


# ---------------------------------------------------------------------------
#  Disambiguation
# ---------------------------------------------------------------------------

class RankedMatch(BaseModel):
  model_config = ConfigDict(extra="ignore")

  id: str
  score: float
  reason: str = ""


class SemanticRankingOutput(BaseModel):
  model_config = ConfigDict(extra="ignore")

  matches: List[RankedMatch] = Field(default_factory=list)


class MatchCandidate(BaseModel):
  model_config = ConfigDict(extra="forbid")

  id: str
  summary: str
  start: Optional[str] = None
  score: float = Field(ge=0.0, le=1.0)
  deep_link: Optional[str] = None


class DisambiguationKind(str, Enum):
  AUTO_RESOLVED = "auto_resolved"
  CANDIDATE_LIST = "candidate_list"
  NO_MATCH = "no_match"


class DisambiguationResult(BaseModel):
  model_config = ConfigDict(extra="forbid")

  kind: DisambiguationKind
  query: str
  calendar_id: str = DEFAULT_CALENDAR_ID
  candidates: List[MatchCandidate] = Field(default_factory=list)

  @property
  def best(self) -> Optional[MatchCandidate]:
    return self.candidates[0] if self.candidates else None


# ---------------------------------------------------------------------------
#  Orchestrator
# ---------------------------------------------------------------------------

class ResolverState(str, Enum):
  REQUESTING = "requesting"
  TOOL_PENDING = "tool_pending"
  RESOLVED = "resolved"
  FAILED = "failed"


class ResolutionOutcome(BaseModel):
  model_config = ConfigDict(extra="forbid")

  status: Literal["executed", "needs_confirmation", "no_match", "failed"]
  message: str
  action: Optional[CalendarActionRequest] = None
  event: Optional[Event] = None
  disambiguation: Optional[DisambiguationResult] = None
  error_code: Optional[str] = None
  tool_calls: int = 0
