"""Lexical search over the corpus bundle."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence

from quizdocs.index.bundle import Corpus, CorpusStore
from quizdocs.index.inverted import IndexHit
from quizdocs.models import Chunk, FileRecord, ScoredChunk
from quizdocs.utils.text import collapse_whitespace, is_numeric, unique

LOGGER = logging.getLogger(__name__)

MAX_QUERY_TERMS = 12
PRIMARY_HITS = 250
SECONDARY_HITS = 80
SECONDARY_WEIGHT = 0.55
MAX_CANDIDATES = 250
PER_FILE_CAP = 4
EXCERPT_CHARS = 900

DRIVE_VIEW_URL = "https://drive.google.com/file/d/{file_id}/view"

# Swedish and English function words.
STOP_WORDS = frozenset(
    """
    och att det den som vad hur är ska kan för med till på i av en ett
    the a an to of in on and or is are was were be been being for with from
    by as at it its this that these those what how can could should would
    may might shall must
    """.split()
)

_NON_TERM_RE = re.compile(r"[^\w\s-]+")


def extract_terms(text: str) -> List[str]:
    """Distinctive lower-cased terms of a query, at most twelve."""
    cleaned = _NON_TERM_RE.sub(" ", text.lower())
    terms = [t for t in cleaned.split() if len(t) >= 2 and t not in STOP_WORDS]
    return unique(terms)[:MAX_QUERY_TERMS]


def make_excerpt(text: str, terms: Sequence[str], max_len: int = EXCERPT_CHARS) -> str:
    """Window of ``max_len`` characters centred on the earliest matching term.

    Falls back to the head of the text when no term occurs. Truncated sides
    are marked with ``...``.
    """
    hay = collapse_whitespace(text)
    if not hay:
        return ""

    lower = hay.lower()
    best_idx = -1
    best_term = ""
    for term in terms:
        if not term:
            continue
        idx = lower.find(term.lower())
        if idx != -1 and (best_idx == -1 or idx < best_idx):
            best_idx = idx
            best_term = term

    if best_idx == -1:
        return hay if len(hay) <= max_len else f"{hay[:max_len]}..."

    pad = (max_len - len(best_term)) // 2
    start = max(0, best_idx - pad)
    end = min(len(hay), best_idx + len(best_term) + pad)
    prefix = "..." if start > 0 else ""
    suffix = "..." if end < len(hay) else ""
    return f"{prefix}{hay[start:end]}{suffix}"


def build_external_url(record: Optional[FileRecord], chunk: Chunk) -> Optional[str]:
    if record is None or record.drive is None or not record.drive.file_id:
        return None
    url = DRIVE_VIEW_URL.format(file_id=record.drive.file_id)
    if chunk.page:
        return f"{url}#page={chunk.page}"
    return url


def diversify(ranked: Sequence[ScoredChunk], limit: int, per_file_cap: int = PER_FILE_CAP) -> List[ScoredChunk]:
    """Cap results per source file, backfilling by score if the cap leaves gaps."""
    picked: List[ScoredChunk] = []
    picked_ids = set()
    per_file: Dict[str, int] = {}

    for item in ranked:
        count = per_file.get(item.file_name, 0)
        if count >= per_file_cap:
            continue
        picked.append(item)
        picked_ids.add(item.chunk_id)
        per_file[item.file_name] = count + 1
        if len(picked) >= limit:
            break

    if len(picked) < limit:
        for item in ranked:
            if item.chunk_id in picked_ids:
                continue
            picked.append(item)
            picked_ids.add(item.chunk_id)
            if len(picked) >= limit:
                break
        # Backfilled items were skipped at their score position; restore order.
        picked.sort(key=lambda item: item.score, reverse=True)

    return picked


class LexicalSearchEngine:
    """Multi-query lexical search with per-source diversification."""

    def __init__(self, store: CorpusStore) -> None:
        self.store = store

    def search(
        self,
        query: str,
        *,
        year: Optional[str] = None,
        limit: int = 12,
        extra_terms: Iterable[str] = (),
        source_allow_list: Optional[Iterable[str]] = None,
        kind_allow_list: Optional[Iterable[str]] = None,
    ) -> List[ScoredChunk]:
        if limit < 1:
            raise ValueError("limit must be at least 1")

        corpus = self.store.load()
        query = query.strip()
        year = (year or "").strip() or None
        terms = unique([*extra_terms, *extract_terms(query)])
        kinds = set(kind_allow_list) if kind_allow_list is not None else None
        allowed_sources = (
            {name.lower() for name in source_allow_list} if source_allow_list else None
        )

        scores: Dict[str, float] = {}

        def add_results(hits: Sequence[IndexHit], weight: float) -> None:
            for hit in hits:
                scores[hit.id] = scores.get(hit.id, 0.0) + hit.score * weight

        add_results(corpus.index.search(query)[:PRIMARY_HITS], 1.0)

        # Per-keyword passes help when the question itself is generic.
        for raw in terms:
            term = raw.strip()
            if len(term) < 3 or is_numeric(term):
                continue
            add_results(corpus.index.search(term)[:SECONDARY_HITS], SECONDARY_WEIGHT)

        candidates = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        candidates = candidates[:MAX_CANDIDATES]
        LOGGER.debug("Query %r: %d terms, %d candidates", query, len(terms), len(candidates))

        ranked = self._resolve(corpus, candidates, terms, year, kinds, allowed_sources)
        return diversify(ranked, limit)

    def _resolve(
        self,
        corpus: Corpus,
        candidates: Sequence[tuple[str, float]],
        terms: Sequence[str],
        year: Optional[str],
        kinds: Optional[set],
        allowed_sources: Optional[set],
    ) -> List[ScoredChunk]:
        out: List[ScoredChunk] = []
        for chunk_id, score in candidates:
            chunk = corpus.chunk(chunk_id)
            if chunk is None:
                continue
            if kinds is not None and chunk.kind not in kinds:
                continue
            if chunk.kind == "pdf":
                if allowed_sources and chunk.file_name.lower() not in allowed_sources:
                    continue
                if year and chunk.year != year:
                    continue

            out.append(
                ScoredChunk(
                    chunk=chunk,
                    score=score,
                    excerpt=make_excerpt(chunk.text, terms),
                    external_url=build_external_url(corpus.file(chunk.file_id), chunk),
                )
            )
        out.sort(key=lambda item: item.score, reverse=True)
        return out
