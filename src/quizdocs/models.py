"""Core quizdocs data models."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Literal, Optional

DocKind = Literal["pdf", "text"]

_SEGMENT_RE = re.compile(r":s(\d+)")


@dataclass(slots=True, frozen=True)
class DriveLink:
    """Reference to the hosted copy of a corpus file."""

    file_id: str
    web_view_link: Optional[str] = None


@dataclass(slots=True, frozen=True)
class FileRecord:
    """A source document of the corpus."""

    id: str
    file_name: str
    kind: DocKind
    ext: str = ""
    year: Optional[str] = None
    bytes: Optional[int] = None
    drive: Optional[DriveLink] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileRecord":
        drive = data.get("drive")
        return cls(
            id=str(data["id"]),
            file_name=str(data["fileName"]),
            kind=data["kind"],
            ext=str(data.get("ext") or ""),
            year=data.get("year") or None,
            bytes=data.get("bytes"),
            drive=DriveLink(str(drive["fileId"]), drive.get("webViewLink")) if drive else None,
        )


@dataclass(slots=True, frozen=True)
class Chunk:
    """Contiguous slice of a source document, the unit of retrieval."""

    chunk_id: str
    file_id: str
    file_name: str
    kind: DocKind
    text: str
    year: Optional[str] = None
    page: Optional[int] = None
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chunk":
        return cls(
            chunk_id=str(data["chunkId"]),
            file_id=str(data["fileId"]),
            file_name=str(data["fileName"]),
            kind=data["kind"],
            text=str(data.get("text") or ""),
            year=data.get("year") or None,
            page=data.get("page"),
            start_line=data.get("startLine"),
            end_line=data.get("endLine"),
        )

    @property
    def segment(self) -> int:
        match = _SEGMENT_RE.search(self.chunk_id)
        return int(match.group(1)) if match else 0

    @property
    def order_key(self) -> int:
        """Position of the chunk inside its file.

        Pages are spaced 1000 apart so that segments of the same page sort
        between them; text chunks are ordered by their first line.
        """
        if self.kind == "pdf":
            return (self.page or 0) * 1000 + self.segment
        return self.start_line or 0

    @property
    def location(self) -> str:
        if self.page:
            return f"p. {self.page}"
        if self.start_line is not None and self.end_line is not None:
            return f"lines {self.start_line}-{self.end_line}"
        return ""


@dataclass(slots=True)
class ScoredChunk:
    """Chunk paired with a per-request relevance score and excerpt."""

    chunk: Chunk
    score: float
    excerpt: str
    external_url: Optional[str] = None

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    @property
    def file_id(self) -> str:
        return self.chunk.file_id

    @property
    def file_name(self) -> str:
        return self.chunk.file_name

    @property
    def text(self) -> str:
        return self.chunk.text

    def to_dict(self) -> Dict[str, Any]:
        chunk = self.chunk
        return {
            "chunk_id": chunk.chunk_id,
            "file_name": chunk.file_name,
            "kind": chunk.kind,
            "year": chunk.year,
            "page": chunk.page,
            "start_line": chunk.start_line,
            "end_line": chunk.end_line,
            "location": chunk.location,
            "excerpt": self.excerpt,
            "score": self.score,
            "external_url": self.external_url,
        }


@dataclass(slots=True, frozen=True)
class IndexedQuestion:
    """Crawled FS-Quiz question, normalised for matching."""

    id: int
    text: str
    normalized: str
    tokens: FrozenSet[str]
    image_urls: tuple[str, ...] = ()


@dataclass(slots=True)
class CrawlState:
    """Resumable progress of the question crawl."""

    complete: bool = False
    next_id: int = 1
    not_found_streak: int = 0
    items: List[IndexedQuestion] = field(default_factory=list)
