"""Loading and caching of the precomputed corpus bundle."""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from quizdocs.errors import CorruptCorpus, MissingCorpus
from quizdocs.index.inverted import InvertedIndex
from quizdocs.models import Chunk, FileRecord
from quizdocs.utils.text import collapse_whitespace, unique

LOGGER = logging.getLogger(__name__)

FALLBACK_YEARS = ["2026", "2025"]

_YEAR_RE = re.compile(r"^(?:19|20)\d{2}$")
_LABEL_KEYWORDS_RE = re.compile(r"\b(?:handbook|rulebook|rules?)\b", re.IGNORECASE)


def is_valid_year(year: str) -> bool:
    return bool(_YEAR_RE.match(year))


def rulebook_label(file_name: str) -> str:
    """Human label for a rulebook file: basename without the generic words."""
    stem = Path(file_name).stem
    stripped = _LABEL_KEYWORDS_RE.sub(" ", stem)
    return collapse_whitespace(re.sub(r"[_-]+", " ", stripped))


@dataclass(slots=True)
class Corpus:
    """Immutable in-memory view of one bundle load."""

    generated_at: str
    files: List[FileRecord]
    chunks: List[Chunk]
    index: InvertedIndex
    _chunks_by_id: Dict[str, Chunk] = field(init=False, repr=False)
    _files_by_id: Dict[str, FileRecord] = field(init=False, repr=False)
    _chunks_by_file: Dict[str, List[Chunk]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._chunks_by_id = {c.chunk_id: c for c in self.chunks}
        self._files_by_id = {f.id: f for f in self.files}
        by_file: Dict[str, List[Chunk]] = {}
        for chunk in self.chunks:
            by_file.setdefault(chunk.file_id, []).append(chunk)
        for sequence in by_file.values():
            sequence.sort(key=lambda c: c.order_key)
        self._chunks_by_file = by_file

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Corpus":
        return cls(
            generated_at=str(data.get("generatedAt") or ""),
            files=[FileRecord.from_dict(f) for f in data["files"]],
            chunks=[Chunk.from_dict(c) for c in data["chunks"]],
            index=InvertedIndex.from_dict(data["miniSearch"]),
        )

    def chunk(self, chunk_id: str) -> Optional[Chunk]:
        return self._chunks_by_id.get(chunk_id)

    def file(self, file_id: str) -> Optional[FileRecord]:
        return self._files_by_id.get(file_id)

    def chunks_for_file(self, file_id: str) -> List[Chunk]:
        """Chunks of a file in reading order."""
        return self._chunks_by_file.get(file_id, [])

    def years(self) -> List[str]:
        years = unique(f.year for f in self.files if f.kind == "pdf" and f.year)
        return sorted(years, reverse=True)

    def rulebooks(self, year: str) -> Dict[str, List[Dict[str, str]]]:
        """PDF handbooks and rulebooks of a competition year."""
        handbooks: List[Dict[str, str]] = []
        rules: List[Dict[str, str]] = []
        for record in self.files:
            if record.kind != "pdf" or record.year != year:
                continue
            base = Path(record.file_name).name.lower()
            option = {"file_name": record.file_name, "label": rulebook_label(record.file_name)}
            if "handbook" in base:
                handbooks.append(option)
            elif "rules" in base or "rulebook" in base:
                rules.append(option)
        handbooks.sort(key=lambda o: o["label"])
        rules.sort(key=lambda o: o["label"])
        return {"handbooks": handbooks, "rules": rules}


class CorpusStore:
    """Process-wide cache of the corpus bundle, reloaded when the file changes."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._cached: Optional[Corpus] = None
        self._cached_token: Optional[float] = None

    def is_ready(self) -> bool:
        return self.path.exists()

    def _change_token(self) -> float:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError as exc:
            raise MissingCorpus(self.path) from exc

    def load(self) -> Corpus:
        """Return the cached corpus, re-parsing only if the bundle changed."""
        token = self._change_token()
        with self._lock:
            if self._cached is not None and self._cached_token == token:
                return self._cached

            LOGGER.info("Loading corpus bundle from %s", self.path)
            try:
                raw = self.path.read_text(encoding="utf-8")
            except FileNotFoundError as exc:
                raise MissingCorpus(self.path) from exc
            try:
                corpus = Corpus.from_dict(json.loads(raw))
            except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as exc:
                LOGGER.error("Failed to parse corpus bundle %s: %s", self.path, exc)
                raise CorruptCorpus(self.path, str(exc)) from exc

            LOGGER.debug(
                "Loaded %d files, %d chunks", len(corpus.files), len(corpus.chunks)
            )
            self._cached = corpus
            self._cached_token = token
            return corpus

    def manifest(self) -> Dict[str, Any]:
        try:
            corpus = self.load()
        except (MissingCorpus, CorruptCorpus) as exc:
            return {
                "generated_at": None,
                "years": list(FALLBACK_YEARS),
                "file_count": 0,
                "chunk_count": 0,
                "index_ready": False,
                "message": str(exc),
            }
        return {
            "generated_at": corpus.generated_at,
            "years": corpus.years(),
            "file_count": len(corpus.files),
            "chunk_count": len(corpus.chunks),
            "index_ready": True,
            "message": None,
        }

    def file_summaries(self) -> List[Dict[str, Any]]:
        try:
            corpus = self.load()
        except (MissingCorpus, CorruptCorpus):
            return []
        return [
            {"file_name": f.file_name, "kind": f.kind, "year": f.year, "bytes": f.bytes}
            for f in corpus.files
        ]
