"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_INDEX_PATH = Path("data/index/bundle.json")
DEFAULT_QUESTION_API = "https://api.fs-quiz.eu/2"
DEFAULT_IMAGE_HOST = "https://img.fs-quiz.eu"


def _get_default_index_path() -> Path:
    """Get the corpus bundle path, honouring the environment override."""
    override = os.environ.get("QUIZDOCS_INDEX_PATH", "").strip()
    if override:
        return Path(override)
    return DEFAULT_INDEX_PATH


def _get_default_lookup_budget() -> float:
    raw = os.environ.get("QUIZDOCS_LOOKUP_BUDGET", "").strip()
    if not raw:
        return 25.0
    try:
        return max(0.0, float(raw))
    except ValueError:
        return 25.0


@dataclass(slots=True)
class CrawlSettings:
    """Tuning knobs for the question crawl.

    The stop rule only trusts a run of missing ids once enough questions have
    been seen, since the upstream id space has gaps near its start.
    """

    batch_size: int = 8
    max_consecutive_not_found: int = 4
    min_indexed_before_stop: int = 200
    max_image_urls: int = 6

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_consecutive_not_found < 1:
            raise ValueError("max_consecutive_not_found must be at least 1")


@dataclass(slots=True)
class AppConfig:
    index_path: Path | None = None
    question_api: str = ""
    image_host: str = DEFAULT_IMAGE_HOST
    lookup_budget: float | None = None
    crawl: CrawlSettings = field(default_factory=CrawlSettings)

    def __post_init__(self) -> None:
        if self.index_path is None:
            self.index_path = _get_default_index_path()
        if not self.question_api:
            self.question_api = (
                os.environ.get("QUIZDOCS_QUESTION_API", "").strip() or DEFAULT_QUESTION_API
            )
        self.question_api = self.question_api.rstrip("/")
        if self.lookup_budget is None:
            self.lookup_budget = _get_default_lookup_budget()

    def resolve_index_path(self, base_dir: Path | None = None) -> Path:
        if self.index_path is None:
            self.index_path = _get_default_index_path()
        if Path(self.index_path).is_absolute() or base_dir is None:
            return Path(self.index_path)
        return base_dir / self.index_path
