from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional, Type

import openai
from pydantic import BaseModel

from ..config import (
    AGENT_LLM_TIMEOUT_SECONDS,
    AGENT_MAX_COMPLETION_TOKENS,
)
from ..llm import get_async_client
from ..utils import _log_debug
from .errors import CollaboratorFailure, GenerationFailure

logger = logging.getLogger(__name__)


def _get_openai_reasoning_effort() -> str:
  """Get OpenAI reasoning_effort from environment or default to 'low'."""
  return os.getenv("OPENAI_REASONING_EFFORT", "low").strip() or "low"


def _get_openai_verbosity() -> str:
  """Get OpenAI verbosity from environment or default to 'low'."""
  return os.getenv("OPENAI_VERBOSITY", "low").strip() or "low"


def _print_raw_output(*, model: str, raw_output: str, schema: str) -> None:
  _log_debug(f"[AGENT LLM RAW] model={model} schema={schema}")
  _log_debug(raw_output if raw_output else "(empty)")
  _log_debug("[AGENT LLM RAW END]")


def _extract_message_text(content: Any) -> str:
  if isinstance(content, str):
    return content.strip()
  if isinstance(content, list):
    chunks = []
    for item in content:
      if isinstance(item, dict):
        text_val = item.get("text")
        if isinstance(text_val, str) and text_val.strip():
          chunks.append(text_val.strip())
      elif isinstance(item, str) and item.strip():
        chunks.append(item.strip())
    return " ".join(chunks).strip()
  return ""


def _clean_json_text(text: str) -> str:
  cleaned = (text or "").strip()
  if cleaned.startswith("```"):
    cleaned = re.sub(r"^```[a-zA-Z0-9_-]*\s*", "", cleaned).strip()
    cleaned = re.sub(r"\s*```$", "", cleaned).strip()
  return cleaned


def extract_json_object(raw_output: str) -> Optional[Dict[str, Any]]:
  """Pull the first JSON object out of raw model text, or None."""
  if not raw_output:
    return None
  candidates = [raw_output, _clean_json_text(raw_output)]
  cleaned = candidates[-1]
  if cleaned:
    left = cleaned.find("{")
    right = cleaned.rfind("}")
    if left != -1 and right != -1 and right > left:
      candidates.append(cleaned[left:right + 1])
  seen = set()
  for candidate in candidates:
    text = (candidate or "").strip()
    if not text or text in seen:
      continue
    seen.add(text)
    try:
      value = json.loads(text)
    except ValueError:
      continue
    if isinstance(value, dict):
      return value
    # JSON array responses: take the first object
    if isinstance(value, list) and value and isinstance(value[0], dict):
      return value[0]
  return None


def schema_instruction(output_schema: Type[BaseModel]) -> str:
  schema = json.dumps(output_schema.model_json_schema(), ensure_ascii=False)
  return ("Respond with a single JSON object conforming to this JSON schema. "
          "No markdown, no extra text.\n"
          f"{schema}")


def _compose_openai_messages(system_prompt: str,
                             output_schema: Type[BaseModel],
                             messages: List[Dict[str, str]]) -> List[Dict[str, str]]:
  instruction = f"{system_prompt.strip()}\n\n{schema_instruction(output_schema)}"
  composed = [{"role": "system", "content": instruction}]
  for message in messages:
    role = message.get("role") or "user"
    content = message.get("content") or ""
    composed.append({"role": role, "content": content})
  return composed


class OpenAIGenerator:
  """Generation step backed by OpenAI chat completions in JSON mode."""

  def __init__(self,
               model: str,
               max_completion_tokens: int = AGENT_MAX_COMPLETION_TOKENS,
               timeout_seconds: float = AGENT_LLM_TIMEOUT_SECONDS,
               reasoning_effort: Optional[str] = None,
               verbosity: Optional[str] = None):
    self.model = model
    self.max_completion_tokens = max_completion_tokens
    self.timeout_seconds = timeout_seconds
    self.reasoning_effort = reasoning_effort or _get_openai_reasoning_effort()
    self.verbosity = verbosity or _get_openai_verbosity()

  async def generate(self,
                     system_prompt: str,
                     messages: List[Dict[str, str]],
                     output_schema: Type[BaseModel]) -> Dict[str, Any]:
    try:
      client = get_async_client()
    except RuntimeError as exc:
      raise CollaboratorFailure(str(exc)) from exc

    composed = _compose_openai_messages(system_prompt, output_schema, messages)
    try:
      completion = await asyncio.wait_for(
          client.chat.completions.create(
              model=self.model,
              messages=composed,
              response_format={"type": "json_object"},
              reasoning_effort=self.reasoning_effort,
              verbosity=self.verbosity,
              max_completion_tokens=self.max_completion_tokens,
          ),
          timeout=self.timeout_seconds,
      )
    except asyncio.TimeoutError as exc:
      raise CollaboratorFailure(
          f"generation timed out after {self.timeout_seconds}s") from exc
    except openai.OpenAIError as exc:
      logger.exception("OpenAI request failed model=%s", self.model)
      raise CollaboratorFailure(f"generation request failed: {exc}") from exc

    raw_output = ""
    if completion.choices:
      raw_output = _extract_message_text(completion.choices[0].message.content)
    _print_raw_output(model=self.model,
                      raw_output=raw_output,
                      schema=output_schema.__name__)
    parsed = extract_json_object(raw_output)
    if parsed is None:
      raise GenerationFailure("model returned no JSON object", raw_output=raw_output)
    return parsed
