"""Pull the body text that follows retrieved section headers into the results."""

from __future__ import annotations

import logging
import re
from typing import List, Sequence, Set

from quizdocs.index.bundle import Corpus, CorpusStore
from quizdocs.index.search import build_external_url, extract_terms, make_excerpt
from quizdocs.models import ScoredChunk
from quizdocs.utils.text import collapse_whitespace

LOGGER = logging.getLogger(__name__)

MAX_HEADER_CHARS = 200
EXTRA_SCORE_FACTOR = 0.7
MIN_EXTRA_SCORE = 0.1

_TOC_RE = re.compile(r"^(table of contents|contents)\b", re.IGNORECASE)
_STRUCTURAL_RE = re.compile(
    r"\b(chapter|section|appendix|article|clause|rule|rules|definition|definitions|scope)\b",
    re.IGNORECASE,
)
_ALL_CAPS_RE = re.compile(r"^[A-Z0-9][A-Z0-9 ._-]{6,}$")
_NUMBERED_RE = re.compile(r"^[0-9IVX]+(\.|:)\s+\S+")
_TITLE_WORD_RE = re.compile(r"^[A-Z][a-z]")


def is_likely_header(text: str) -> bool:
    """Heuristic: is this chunk a structural heading rather than body text?"""
    trimmed = collapse_whitespace(text)
    if not trimmed or len(trimmed) > MAX_HEADER_CHARS:
        return False

    if _TOC_RE.match(trimmed):
        return True
    if _STRUCTURAL_RE.search(trimmed):
        return True
    if len(trimmed) <= 120 and _ALL_CAPS_RE.match(trimmed):
        return True
    if _NUMBERED_RE.match(trimmed):
        return True

    words = trimmed.split(" ")
    if len(words) >= 2:
        title_case = sum(1 for w in words if _TITLE_WORD_RE.match(w))
        if title_case / len(words) > 0.7:
            return True

    return False


class ContextExpander:
    """Adds the chunks following header hits, within char and count budgets."""

    def __init__(self, store: CorpusStore) -> None:
        self.store = store

    def expand(
        self,
        ranked: Sequence[ScoredChunk],
        *,
        max_total: int = 28,
        max_per_header: int = 3,
        max_extra_total: int = 8,
        max_extra_chars: int = 5000,
    ) -> List[ScoredChunk]:
        if min(max_total, max_per_header, max_extra_total, max_extra_chars) < 0:
            raise ValueError("expansion budgets must be non-negative")
        if not ranked:
            return list(ranked)

        corpus = self.store.load()
        existing: Set[str] = {item.chunk_id for item in ranked}
        pinned: Set[str] = set()
        extras: List[ScoredChunk] = []

        for base in ranked:
            if not is_likely_header(base.text):
                continue
            if len(extras) >= max_extra_total:
                break
            pinned.add(base.chunk_id)
            extras.extend(
                self._follow_header(
                    corpus,
                    base,
                    existing,
                    pinned,
                    max_per_header=max_per_header,
                    remaining=max_extra_total - len(extras),
                    max_extra_chars=max_extra_chars,
                )
            )

        if not extras:
            return list(ranked)

        LOGGER.debug("Expanded %d header(s) with %d chunk(s)", len(pinned) - len(extras), len(extras))
        merged = [*ranked, *extras]
        return _evict(merged, pinned, max_total)

    def _follow_header(
        self,
        corpus: Corpus,
        base: ScoredChunk,
        existing: Set[str],
        pinned: Set[str],
        *,
        max_per_header: int,
        remaining: int,
        max_extra_chars: int,
    ) -> List[ScoredChunk]:
        sequence = corpus.chunks_for_file(base.file_id)
        position = next(
            (i for i, chunk in enumerate(sequence) if chunk.chunk_id == base.chunk_id), -1
        )
        if position < 0:
            return []

        terms = extract_terms(base.text)
        score = max(MIN_EXTRA_SCORE, base.score * EXTRA_SCORE_FACTOR)
        added: List[ScoredChunk] = []
        extra_chars = 0

        for chunk in sequence[position + 1 :]:
            if chunk.chunk_id in existing:
                continue
            text = chunk.text.strip()
            if not text:
                continue
            if len(added) >= max_per_header or len(added) >= remaining:
                break

            extra_chars += len(text)
            added.append(
                ScoredChunk(
                    chunk=chunk,
                    score=score,
                    excerpt=make_excerpt(text, terms),
                    external_url=build_external_url(corpus.file(chunk.file_id), chunk),
                )
            )
            existing.add(chunk.chunk_id)
            pinned.add(chunk.chunk_id)

            if extra_chars >= max_extra_chars:
                break
            # The next section starts here; keep its heading, stop the walk.
            if is_likely_header(text):
                break

        return added


def _evict(merged: List[ScoredChunk], pinned: Set[str], max_total: int) -> List[ScoredChunk]:
    """Drop the lowest-scored unpinned items until ``max_total`` fits."""
    if len(merged) <= max_total:
        return merged

    to_drop = len(merged) - max_total
    candidates = sorted(
        (item for item in merged if item.chunk_id not in pinned), key=lambda item: item.score
    )
    dropped = {item.chunk_id for item in candidates[:to_drop]}
    return [item for item in merged if item.chunk_id not in dropped]
