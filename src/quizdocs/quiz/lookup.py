"""Resolve a pasted question to its FS-Quiz entry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from quizdocs.quiz.crawler import RemoteQuestionCrawler
from quizdocs.quiz.matcher import DEFAULT_THRESHOLD, Match, match

LOGGER = logging.getLogger(__name__)

MAX_QUERY_CHARS = 10_000


@dataclass(slots=True)
class LookupResult:
    complete: bool
    indexed_count: int
    newly_indexed: int
    query_used: str
    matches: List[Match] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complete": self.complete,
            "indexed_count": self.indexed_count,
            "newly_indexed": self.newly_indexed,
            "query_used": self.query_used,
            "matches": [
                {
                    "question_id": m.question.id,
                    "score": m.score,
                    "text": m.question.text,
                    "image_urls": list(m.question.image_urls),
                }
                for m in self.matches
            ],
        }


class QuestionLookup:
    def __init__(
        self,
        crawler: RemoteQuestionCrawler,
        *,
        time_budget: float = 25.0,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self.crawler = crawler
        self.time_budget = time_budget
        self.threshold = threshold

    def lookup(self, query: str, *, limit: int = 1) -> LookupResult:
        """Crawl within the time budget, then match ``query``.

        An empty ``matches`` list means nothing cleared the threshold;
        upstream failures raise ``UpstreamFetchError`` instead.
        """
        query_used = query.strip()[:MAX_QUERY_CHARS]
        if not query_used:
            raise ValueError("Provide a query.")
        if limit < 1:
            raise ValueError("limit must be at least 1")

        crawl = self.crawler.ensure_indexed(self.time_budget)
        matches = match(query_used, crawl.items, threshold=self.threshold, top_n=limit)
        LOGGER.info(
            "Lookup matched %s (indexed=%d, new=%d)",
            [(m.question.id, round(m.score, 3)) for m in matches],
            crawl.indexed_count,
            crawl.newly_indexed,
        )
        return LookupResult(
            complete=crawl.complete,
            indexed_count=crawl.indexed_count,
            newly_indexed=crawl.newly_indexed,
            query_used=query_used,
            matches=matches,
        )
