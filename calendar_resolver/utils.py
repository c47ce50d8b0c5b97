from __future__ import annotations

from datetime import datetime
from typing import Optional
import re

from .config import LLM_DEBUG

_NON_WORD_RE = re.compile(r"[^\w\s]+")
_WHITESPACE_RE = re.compile(r"\s+")


def _log_debug(message: str) -> None:
    if LLM_DEBUG:
        print(message, flush=True)


def normalize_text(text: str) -> str:
    t = (text or "").strip()
    t = re.sub(r"\s+", " ", t)
    return t


def normalize_for_matching(text: Optional[str]) -> str:
    """Lower-case, drop punctuation, collapse whitespace."""
    if not isinstance(text, str):
        return ""
    t = _NON_WORD_RE.sub(" ", text.lower())
    t = t.replace("_", " ")
    t = _WHITESPACE_RE.sub(" ", t)
    return t.strip()


def _format_event_start(start: Optional[str]) -> str:
    if not isinstance(start, str) or not start:
        return "unknown time"
    raw = start.strip()
    if len(raw) == 10:
        return raw
    candidate = raw.replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(candidate)
    except Exception:
        return raw
    return dt.strftime("%Y-%m-%d %H:%M")
