"""Exceptions raised by the corpus store and the question crawler."""

from __future__ import annotations

from pathlib import Path


class QuizDocsError(Exception):
    """Base class for quizdocs errors."""


class MissingCorpus(QuizDocsError):
    """The corpus bundle does not exist; search is unavailable."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            f"Missing docs index at {path}. Build the corpus bundle before searching."
        )
        self.path = path


class CorruptCorpus(QuizDocsError):
    """The corpus bundle exists but cannot be parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Corrupt docs index at {path}: {reason}")
        self.path = path
        self.reason = reason


class UpstreamFetchError(QuizDocsError):
    """Transport or protocol failure talking to the question source."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
