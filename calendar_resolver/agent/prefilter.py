"""
Lexical prefilter: TF-IDF cosine ranking of candidate events against free text.

Scores only bound how many events reach the semantic ranker. They are not
comparable across queries and are never used alone to pick a match.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Dict, List, Sequence

from pydantic import BaseModel

from ..config import PREFILTER_TOP_K
from ..models import Event
from ..utils import normalize_for_matching


class ScoredEvent(BaseModel):
  event: Event
  score: float


def tokenize(text: str) -> List[str]:
  normalized = normalize_for_matching(text)
  return normalized.split() if normalized else []


def _event_document(event: Event) -> str:
  return f"{event.summary or ''} {event.description or ''}"


def _inverse_document_frequencies(documents: Sequence[List[str]]) -> Dict[str, float]:
  doc_count = len(documents)
  frequencies: Counter = Counter()
  for tokens in documents:
    frequencies.update(set(tokens))
  return {
      term: math.log((1 + doc_count) / (1 + df)) + 1.0
      for term, df in frequencies.items()
  }


def _tfidf_vector(tokens: List[str], idf: Dict[str, float]) -> Dict[str, float]:
  if not tokens:
    return {}
  counts = Counter(tokens)
  total = len(tokens)
  return {term: (count / total) * idf.get(term, 0.0) for term, count in counts.items()}


def _cosine(left: Dict[str, float], right: Dict[str, float]) -> float:
  if not left or not right:
    return 0.0
  dot = sum(weight * right[term] for term, weight in left.items() if term in right)
  if dot <= 0.0:
    return 0.0
  left_norm = math.sqrt(sum(w * w for w in left.values()))
  right_norm = math.sqrt(sum(w * w for w in right.values()))
  if left_norm == 0.0 or right_norm == 0.0:
    return 0.0
  return min(1.0, dot / (left_norm * right_norm))


def rank_events(query: str,
                events: Sequence[Event],
                top_k: int = PREFILTER_TOP_K) -> List[ScoredEvent]:
  """Return up to `top_k` events by descending lexical score.

  Ties keep the input order, which is start-time order for live event sets.
  """
  if top_k <= 0 or not events:
    return []
  query_tokens = tokenize(query)
  event_tokens = [tokenize(_event_document(event)) for event in events]
  # The query counts as a document so its terms always get an idf weight.
  idf = _inverse_document_frequencies(event_tokens + [query_tokens])
  query_vector = _tfidf_vector(query_tokens, idf)

  scored = [
      ScoredEvent(event=event,
                  score=round(_cosine(query_vector, _tfidf_vector(tokens, idf)), 6))
      for event, tokens in zip(events, event_tokens)
  ]
  ranked = sorted(scored, key=lambda item: item.score, reverse=True)
  return ranked[:top_k]
