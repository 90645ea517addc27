"""HTTP client for the FS-Quiz question API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from quizdocs.config import DEFAULT_IMAGE_HOST, DEFAULT_QUESTION_API
from quizdocs.errors import UpstreamFetchError

LOGGER = logging.getLogger(__name__)

# (connect timeout, read timeout)
TIMEOUT = (5.0, 20.0)


def pick_question(payload: Any) -> Optional[Dict[str, Any]]:
    """The API returns either a bare question or ``{"questions": [...]}``."""
    if not isinstance(payload, dict):
        return None
    questions = payload.get("questions")
    if isinstance(questions, list) and questions and isinstance(questions[0], dict):
        return questions[0]
    if "question_id" in payload:
        return payload
    return None


def to_bool(value: Any) -> bool:
    if value in (1, "1"):
        return True
    if value in (0, "0"):
        return False
    return bool(value)


def image_urls(question: Dict[str, Any], *, host: str = DEFAULT_IMAGE_HOST, limit: int = 6) -> List[str]:
    images = question.get("images")
    if not isinstance(images, list):
        return []
    paths = [str((img or {}).get("path") or "").lstrip("/") for img in images if isinstance(img, dict)]
    return [f"{host}/{path}" for path in paths if path][:limit]


@dataclass(slots=True)
class AnswerLookup:
    answer: Dict[str, Any]
    question: Optional[Dict[str, Any]]


class QuestionSourceClient:
    """Thin wrapper over ``/question/{id}`` and ``/answer/{id}``."""

    def __init__(
        self,
        base_url: str = DEFAULT_QUESTION_API,
        *,
        session: requests.Session | None = None,
        timeout: tuple[float, float] = TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, path: str) -> Optional[Any]:
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.get(
                url, headers={"Accept": "application/json"}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise UpstreamFetchError(f"FS-Quiz request failed: {exc}") from exc

        if response.status_code == 404:
            LOGGER.debug("GET %s -> 404", url)
            return None
        if not response.ok:
            raise UpstreamFetchError(
                f"FS-Quiz request failed ({response.status_code}).", status=response.status_code
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamFetchError(f"FS-Quiz returned invalid JSON for {path}") from exc

    def fetch_question(self, question_id: int) -> Optional[Dict[str, Any]]:
        """Question payload, or ``None`` if the id does not exist.

        An unrecognised payload comes back as ``{}`` so the crawl can index it
        as an empty question.
        """
        payload = self._get(f"question/{question_id}")
        if payload is None:
            return None
        return pick_question(payload) or {}

    def fetch_answer(self, answer_id: int) -> Optional[AnswerLookup]:
        """Answer with its question, or ``None`` if the answer does not exist."""
        answer = self._get(f"answer/{answer_id}")
        if answer is None:
            return None
        if not isinstance(answer, dict) or not isinstance(answer.get("question_id"), int):
            raise UpstreamFetchError("Unexpected answer payload.")
        answer = {**answer, "is_correct": to_bool(answer.get("is_correct"))}
        question = self.fetch_question(answer["question_id"])
        return AnswerLookup(answer=answer, question=question or None)

    def close(self) -> None:
        self.session.close()
