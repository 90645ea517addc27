"""Text helpers shared by search and matching."""

from __future__ import annotations

import re
from typing import Hashable, Iterable, List, TypeVar

T = TypeVar("T", bound=Hashable)

_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def unique(items: Iterable[T]) -> List[T]:
    """Drop duplicates, keeping first-seen order."""
    return list(dict.fromkeys(items))


def is_numeric(term: str) -> bool:
    return term.isascii() and term.isdigit()
