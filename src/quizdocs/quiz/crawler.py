"""Incremental crawl of the FS-Quiz question id space.

The API has no listing endpoint, so questions are discovered by probing
increasing ids in fixed-size concurrent batches. The crawl is resumable: each
call continues from the cursor left by the previous one until the time budget
runs out, and it latches complete once a run of missing ids is seen after
enough questions have been indexed.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from quizdocs.config import DEFAULT_IMAGE_HOST, CrawlSettings
from quizdocs.models import CrawlState, IndexedQuestion
from quizdocs.quiz.client import QuestionSourceClient, image_urls
from quizdocs.quiz.matcher import make_question

LOGGER = logging.getLogger(__name__)

FIRST_QUESTION_ID = 1


@dataclass(slots=True, frozen=True)
class CrawlResult:
    complete: bool
    next_id: int
    newly_indexed: int
    items: Tuple[IndexedQuestion, ...]

    @property
    def indexed_count(self) -> int:
        return len(self.items)


class RemoteQuestionCrawler:
    """Owns the crawl state; safe to share between request handlers."""

    def __init__(
        self,
        client: QuestionSourceClient,
        settings: CrawlSettings | None = None,
        *,
        image_host: str = DEFAULT_IMAGE_HOST,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.settings = settings or CrawlSettings()
        self.image_host = image_host
        self.state = CrawlState(next_id=FIRST_QUESTION_ID)
        self._clock = clock
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.batch_size, thread_name_prefix="quiz-crawl"
        )

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def reset(self) -> None:
        with self._lock:
            self.state = CrawlState(next_id=FIRST_QUESTION_ID)

    def recover(self) -> bool:
        """Restart a crawl that latched complete without indexing anything.

        Such a state comes from a failed earlier run, never from an empty
        question bank. Returns whether a reset happened.
        """
        state = self.state
        if state.complete and not state.items:
            LOGGER.warning("Crawl marked complete with no questions; restarting from id %d", FIRST_QUESTION_ID)
            self.state = CrawlState(next_id=FIRST_QUESTION_ID)
            return True
        if state.next_id < FIRST_QUESTION_ID:
            state.next_id = FIRST_QUESTION_ID
        return False

    def snapshot(self, newly_indexed: int = 0) -> CrawlResult:
        state = self.state
        return CrawlResult(
            complete=state.complete,
            next_id=state.next_id,
            newly_indexed=newly_indexed,
            items=tuple(state.items),
        )

    def _fetch(self, question_id: int) -> Optional[IndexedQuestion]:
        LOGGER.debug("Probing question id=%d", question_id)
        payload = self.client.fetch_question(question_id)
        if payload is None:
            return None
        text = str(payload.get("text") or "").strip()
        urls = image_urls(payload, host=self.image_host, limit=self.settings.max_image_urls)
        return make_question(question_id, text, urls)

    def ensure_indexed(self, time_budget: float) -> CrawlResult:
        """Advance the crawl for up to ``time_budget`` seconds.

        The budget is checked before each batch; a batch in flight always
        completes. Raises ``UpstreamFetchError`` if any fetch in a batch fails,
        keeping everything indexed by earlier batches.
        """
        with self._lock:
            self.recover()
            state = self.state
            settings = self.settings
            started = self._clock()
            newly_indexed = 0

            while not state.complete:
                if self._clock() - started >= time_budget:
                    break

                ids: List[int] = list(range(state.next_id, state.next_id + settings.batch_size))
                state.next_id += settings.batch_size
                results = list(self._executor.map(self._fetch, ids))

                for question_id, question in zip(ids, results):
                    if question is None:
                        state.not_found_streak += 1
                        if (
                            state.not_found_streak >= settings.max_consecutive_not_found
                            and len(state.items) >= settings.min_indexed_before_stop
                        ):
                            LOGGER.info(
                                "Crawl complete after %d consecutive misses (last id=%d, %d questions)",
                                state.not_found_streak,
                                question_id,
                                len(state.items),
                            )
                            state.complete = True
                            break
                        continue

                    state.not_found_streak = 0
                    state.items.append(question)
                    newly_indexed += 1

            LOGGER.debug(
                "Crawl advanced to id=%d, %d new, %d total",
                state.next_id,
                newly_indexed,
                len(state.items),
            )
            return self.snapshot(newly_indexed)
