from __future__ import annotations

import os
import pathlib
import re

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
LLM_DEBUG = os.getenv("LLM_DEBUG", "0") == "1"

# Calendar-local timestamp without offset, e.g. "2025-05-20T15:00:00"
ISO_DATETIME_SECONDS_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}$")

# -------------------------
# Google Calendar
# -------------------------
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
DEFAULT_CALENDAR_ID = os.getenv("DEFAULT_CALENDAR_ID", "primary").strip() or "primary"
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC").strip() or "UTC"
GCAL_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
]

BASE_DIR = pathlib.Path(__file__).resolve().parent.parent
GOOGLE_TOKEN_FILE = pathlib.Path(
    os.getenv("GOOGLE_TOKEN_FILE", str(BASE_DIR / "gcal_token.json")))
GCAL_TIMEOUT_SECONDS = float(os.getenv("GCAL_TIMEOUT_SECONDS", "15"))
UPCOMING_EVENTS_LIMIT = int(os.getenv("UPCOMING_EVENTS_LIMIT", "50"))

# -------------------------
# Generation model
# -------------------------
AGENT_ACTION_MODEL = os.getenv("AGENT_ACTION_MODEL", "gpt-5-mini").strip()
AGENT_DISAMBIGUATION_MODEL = os.getenv("AGENT_DISAMBIGUATION_MODEL",
                                       "gpt-5-mini").strip()
AGENT_MAX_COMPLETION_TOKENS = int(
    os.getenv("AGENT_MAX_COMPLETION_TOKENS", "4000"))
AGENT_LLM_TIMEOUT_SECONDS = float(os.getenv("AGENT_LLM_TIMEOUT_SECONDS", "30"))
AGENT_MAX_TOOL_ITERATIONS = int(os.getenv("AGENT_MAX_TOOL_ITERATIONS", "5"))

# -------------------------
# Disambiguation
# -------------------------
AUTO_RESOLVE_THRESHOLD = float(os.getenv("AUTO_RESOLVE_THRESHOLD", "0.9"))
CANDIDATE_THRESHOLD = float(os.getenv("CANDIDATE_THRESHOLD", "0.8"))
PREFILTER_TOP_K = int(os.getenv("PREFILTER_TOP_K", "10"))
MAX_MATCH_CANDIDATES = 3
