"""Fuzzy matching of free-form question text against crawled questions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import AbstractSet, Iterable, List, Sequence

from quizdocs.models import IndexedQuestion

DEFAULT_THRESHOLD = 0.4

EXACT_SCORE = 1.0
CONTAINED_SCORE = 0.95
SUBSTRING_SCORE = 0.85
MIN_CONTAINED_CHARS = 20
MIN_SUBSTRING_CHARS = 4

_ESCAPES_RE = re.compile(r"\\[nrt]")
_NON_ALNUM_RE = re.compile(r"[\W_]+")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(slots=True, frozen=True)
class Match:
    question: IndexedQuestion
    score: float


def normalize_text(text: str) -> str:
    """Lower-case, strip punctuation and symbols, collapse whitespace.

    Literal ``\\n``/``\\r``/``\\t`` sequences, as they appear in escaped API
    payloads, count as whitespace.
    """
    text = _ESCAPES_RE.sub(" ", text).lower()
    text = text.replace("‘", "'").replace("’", "'")
    text = _NON_ALNUM_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def to_tokens(normalized: str) -> frozenset[str]:
    return frozenset(t for t in normalized.split(" ") if len(t) >= 2)


def make_question(id: int, text: str, image_urls: Iterable[str] = ()) -> IndexedQuestion:
    normalized = normalize_text(text)
    return IndexedQuestion(
        id=id,
        text=text,
        normalized=normalized,
        tokens=to_tokens(normalized),
        image_urls=tuple(image_urls),
    )


def jaccard(a: AbstractSet[str], b: AbstractSet[str]) -> float:
    if not a or not b:
        return 0.0
    inter = len(a & b)
    union = len(a) + len(b) - inter
    return inter / union if union else 0.0


def overlap_coefficient(a: AbstractSet[str], b: AbstractSet[str]) -> float:
    smaller = min(len(a), len(b))
    if not smaller:
        return 0.0
    return len(a & b) / smaller


def substring_score(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    if a == b:
        return EXACT_SCORE
    if len(a) < MIN_SUBSTRING_CHARS or len(b) < MIN_SUBSTRING_CHARS:
        return 0.0
    if a in b or b in a:
        return SUBSTRING_SCORE
    return 0.0


def score_match(query: IndexedQuestion, candidate: IndexedQuestion) -> float:
    if not query.normalized or not candidate.normalized:
        return 0.0
    if query.normalized == candidate.normalized:
        return EXACT_SCORE

    shorter, longer = sorted((query.normalized, candidate.normalized), key=len)
    if len(shorter) >= MIN_CONTAINED_CHARS and shorter in longer:
        return CONTAINED_SCORE

    blended = 0.3 * jaccard(query.tokens, candidate.tokens) + 0.7 * overlap_coefficient(
        query.tokens, candidate.tokens
    )
    return max(blended, substring_score(query.normalized, candidate.normalized))


def match(
    query_text: str,
    candidates: Sequence[IndexedQuestion],
    *,
    threshold: float = DEFAULT_THRESHOLD,
    top_n: int | None = 1,
) -> List[Match]:
    """Candidates scoring at least ``threshold``, best first.

    Ties keep candidate order. ``top_n=None`` returns every match.
    """
    if top_n is not None and top_n < 0:
        raise ValueError("top_n must be non-negative")
    query = make_question(-1, query_text)
    scored = [Match(candidate, score_match(query, candidate)) for candidate in candidates]
    kept = [m for m in scored if m.score >= threshold]
    kept.sort(key=lambda m: m.score, reverse=True)
    return kept if top_n is None else kept[:top_n]
