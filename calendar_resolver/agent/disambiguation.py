from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from ..config import (
    AUTO_RESOLVE_THRESHOLD,
    CANDIDATE_THRESHOLD,
    MAX_MATCH_CANDIDATES,
    PREFILTER_TOP_K,
    UPCOMING_EVENTS_LIMIT,
)
from ..utils import _log_debug
from .errors import GenerationFailure, SchemaValidationError
from .prefilter import ScoredEvent, rank_events, tokenize
from .schemas import (
    DisambiguationKind,
    DisambiguationResult,
    MatchCandidate,
    SemanticRankingOutput,
)
from .tools import call_calendar
from .validator import validate_payload

DISAMBIGUATION_SYSTEM_PROMPT = """You resolve which upcoming calendar event a user wants to cancel.
Return JSON only. No markdown or extra text.
Use only IDs from candidates. Never fabricate IDs.
Return 1 to 3 matches ordered from most to least likely, each with a calibrated confidence score from 0 to 1.
Return an empty matches list when no candidate plausibly matches.
"""

DISAMBIGUATION_DEVELOPER_PROMPT = """Inputs:
- user_text
- summary_hint: the event title the user referred to
- candidates: [{id, summary, description, start, lexical_score}]

lexical_score is keyword overlap only. Treat it as a hint, never as your score.
Near-duplicate titles ("Team sync" vs "Sync w/ team") can both score high lexically;
use meaning and timing in user_text to separate them.

Score guide:
- 0.9 or above: the request clearly refers to this event and no other.
- 0.8 to 0.9: plausible, but another candidate could also fit.
- below 0.8: weak match.

Examples:

User says "cancel the team sync", candidates include one "Team sync":
{"matches":[{"id":"abc123","score":0.95,"reason":"Title matches exactly."}]}

User says "cancel my meeting", candidates "Budget meeting" and "Design meeting":
{"matches":[{"id":"b1","score":0.85,"reason":"Meeting in title."},{"id":"d2","score":0.82,"reason":"Meeting in title."}]}

User says "cancel the dentist", no candidate is related:
{"matches":[]}
"""


class DisambiguationResolver:
  """Two-stage matcher for delete requests that carry only a summary hint."""

  def __init__(self,
               generator: Any,
               auto_resolve_threshold: float = AUTO_RESOLVE_THRESHOLD,
               candidate_threshold: float = CANDIDATE_THRESHOLD,
               top_k: int = PREFILTER_TOP_K,
               max_candidates: int = MAX_MATCH_CANDIDATES,
               events_limit: int = UPCOMING_EVENTS_LIMIT):
    if not 0.0 <= candidate_threshold <= auto_resolve_threshold <= 1.0:
      raise ValueError("thresholds must satisfy 0 <= candidate <= auto_resolve <= 1")
    self.generator = generator
    self.auto_resolve_threshold = auto_resolve_threshold
    self.candidate_threshold = candidate_threshold
    self.top_k = top_k
    self.max_candidates = max_candidates
    self.events_limit = events_limit

  async def resolve(self,
                    user_text: str,
                    summary_hint: str,
                    calendar: Any,
                    calendar_id: str) -> DisambiguationResult:
    events = await call_calendar(calendar.list_upcoming_events,
                                 calendar_id,
                                 self.events_limit)
    if not events:
      return self._no_match(summary_hint, calendar_id)

    query = summary_hint if tokenize(summary_hint) else user_text
    shortlist = rank_events(query, events, top_k=self.top_k)
    ranking = await self._semantic_ranking(user_text, summary_hint, shortlist)
    if ranking is None:
      return self._no_match(summary_hint, calendar_id)

    candidates = self._calibrated_candidates(ranking, shortlist)
    return self._apply_policy(summary_hint, calendar_id, candidates)

  async def _semantic_ranking(self,
                              user_text: str,
                              summary_hint: str,
                              shortlist: List[ScoredEvent]) -> Optional[SemanticRankingOutput]:
    payload = {
        "user_text": user_text,
        "summary_hint": summary_hint,
        "candidates": [
            {
                "id": item.event.id,
                "summary": item.event.summary,
                "description": item.event.description,
                "start": item.event.start,
                "lexical_score": item.score,
            }
            for item in shortlist
        ],
    }
    messages = [{"role": "user", "content": json.dumps(payload, ensure_ascii=False)}]
    system_prompt = f"{DISAMBIGUATION_SYSTEM_PROMPT}\n{DISAMBIGUATION_DEVELOPER_PROMPT}"
    try:
      raw = await self.generator.generate(system_prompt, messages, SemanticRankingOutput)
      return validate_payload(SemanticRankingOutput, raw)
    except (GenerationFailure, SchemaValidationError) as exc:
      _log_debug(f"[DISAMBIGUATION] semantic ranking unusable: {exc}")
      return None

  def _calibrated_candidates(self,
                             ranking: SemanticRankingOutput,
                             shortlist: List[ScoredEvent]) -> List[MatchCandidate]:
    by_id: Dict[str, ScoredEvent] = {item.event.id: item for item in shortlist}
    seen = set()
    candidates: List[MatchCandidate] = []
    for match in ranking.matches:
      item = by_id.get(match.id)
      if item is None or match.id in seen:
        _log_debug(f"[DISAMBIGUATION] dropped match id={match.id}")
        continue
      seen.add(match.id)
      candidates.append(MatchCandidate(
          id=item.event.id,
          summary=item.event.summary,
          start=item.event.start,
          score=min(1.0, max(0.0, float(match.score))),
          deep_link=item.event.deep_link,
      ))
    candidates.sort(key=lambda candidate: candidate.score, reverse=True)
    return candidates[:self.max_candidates]

  def _apply_policy(self,
                    query: str,
                    calendar_id: str,
                    candidates: List[MatchCandidate]) -> DisambiguationResult:
    if not candidates or candidates[0].score < self.candidate_threshold:
      return self._no_match(query, calendar_id)
    best = candidates[0]
    if best.score >= self.auto_resolve_threshold:
      return DisambiguationResult(kind=DisambiguationKind.AUTO_RESOLVED,
                                  query=query,
                                  calendar_id=calendar_id,
                                  candidates=[best])
    plausible = [c for c in candidates if c.score >= self.candidate_threshold]
    return DisambiguationResult(kind=DisambiguationKind.CANDIDATE_LIST,
                                query=query,
                                calendar_id=calendar_id,
                                candidates=plausible)

  def _no_match(self, query: str, calendar_id: str) -> DisambiguationResult:
    return DisambiguationResult(kind=DisambiguationKind.NO_MATCH,
                                query=query,
                                calendar_id=calendar_id,
                                candidates=[])
