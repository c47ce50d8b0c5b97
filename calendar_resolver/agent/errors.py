from __future__ import annotations

from typing import List, Optional, Sequence

GENERIC_NOT_UNDERSTOOD_MESSAGE = "Sorry, I could not understand the event details."


class ResolutionError(Exception):
  """Base for every failure recovered at the resolver boundary."""

  code = "resolution_error"

  @property
  def user_message(self) -> str:
    return "Something went wrong. Please try again."


class SchemaValidationError(ResolutionError):
  code = "schema_validation_error"

  def __init__(self, messages: Sequence[str]):
    self.messages: List[str] = [str(m) for m in messages] or ["unknown validation error"]
    super().__init__("; ".join(self.messages))

  @property
  def user_message(self) -> str:
    return f"Invalid data format: {'; '.join(self.messages)}"


class GenerationFailure(ResolutionError):
  code = "generation_failure"

  def __init__(self, detail: str = "no schema-conforming output", raw_output: str = ""):
    self.raw_output = raw_output
    super().__init__(detail)

  @property
  def user_message(self) -> str:
    return "I couldn't understand that request. Please rephrase and try again."


class IncompleteAction(ResolutionError):
  code = "incomplete_action"

  def __init__(self, action: Optional[str], missing: Sequence[str]):
    self.action = action
    self.missing = list(missing)
    super().__init__(f"{action}: missing {', '.join(self.missing)}")

  @property
  def user_message(self) -> str:
    return GENERIC_NOT_UNDERSTOOD_MESSAGE


class UnrecognizedAction(ResolutionError):
  code = "unrecognized_action"

  @property
  def user_message(self) -> str:
    return GENERIC_NOT_UNDERSTOOD_MESSAGE


class ToolLoopExceeded(ResolutionError):
  code = "tool_loop_exceeded"

  def __init__(self, iterations: int):
    self.iterations = iterations
    super().__init__(f"tool requests exceeded {iterations} iterations")

  @property
  def user_message(self) -> str:
    return "Sorry, that took too many steps to work out. Please try a more specific request."


class CollaboratorFailure(ResolutionError):
  code = "collaborator_failure"

  @property
  def user_message(self) -> str:
    return "Something went wrong while talking to the calendar service. Please try again later."
