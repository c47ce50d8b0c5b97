"""
Schema validation for model output.

Every violated constraint is reported, never just the first one.
"""

from __future__ import annotations

from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import IncompleteAction, SchemaValidationError
from .schemas import CalendarActionRequest

T = TypeVar("T", bound=BaseModel)

REQUIRED_FIELDS_BY_ACTION: Dict[str, List[str]] = {
    "create": ["summary", "startDateTime", "endDateTime"],
    "update": ["eventId", "summary"],
    "delete": [],
}


def _error_location(error: Dict[str, Any]) -> str:
  loc = error.get("loc") or ()
  parts = [str(part) for part in loc]
  return ".".join(parts) if parts else "(root)"


def _error_message(error: Dict[str, Any]) -> str:
  ctx = error.get("ctx") or {}
  if error.get("type") == "value_error" and ctx.get("error") is not None:
    return str(ctx["error"])
  return str(error.get("msg") or "invalid value")


def validation_messages(exc: ValidationError) -> List[str]:
  return [f"{_error_location(err)}: {_error_message(err)}" for err in exc.errors()]


def validate_payload(model: Type[T], data: Any) -> T:
  if not isinstance(data, dict):
    raise SchemaValidationError([f"(root): expected a JSON object, got {type(data).__name__}"])
  try:
    return model.model_validate(data)
  except ValidationError as exc:
    raise SchemaValidationError(validation_messages(exc)) from exc


def validate_action_request(data: Any) -> CalendarActionRequest:
  return validate_payload(CalendarActionRequest, data)


def missing_fields(request: CalendarActionRequest) -> List[str]:
  required = REQUIRED_FIELDS_BY_ACTION.get(request.action, [])
  return [name for name in required if not getattr(request, name)]


def check_required_fields(request: CalendarActionRequest) -> None:
  missing = missing_fields(request)
  if missing:
    raise IncompleteAction(request.action, missing)
