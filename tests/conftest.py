"""Shared fixtures: a small rulebook corpus written as a bundle file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest

from quizdocs.index.bundle import CorpusStore
from quizdocs.index.inverted import InvertedIndex

FILES: List[Dict[str, Any]] = [
    {
        "id": "file_1",
        "fileName": "2025/Rules 2025.pdf",
        "kind": "pdf",
        "ext": "pdf",
        "year": "2025",
        "bytes": 1024,
        "drive": {"fileId": "drv1", "webViewLink": "https://drive.example/drv1"},
    },
    {"id": "file_2", "fileName": "2024/Rules 2024.pdf", "kind": "pdf", "ext": "pdf", "year": "2024", "bytes": 900},
    {"id": "file_3", "fileName": "scripts/lap_time.py", "kind": "text", "ext": "py", "bytes": 80},
    {"id": "file_4", "fileName": "2025/Handbook 2025.pdf", "kind": "pdf", "ext": "pdf", "year": "2025", "bytes": 512},
    {"id": "file_5", "fileName": "notes/untagged.pdf", "kind": "pdf", "ext": "pdf", "bytes": 64},
]


def _pdf(file_id: str, file_name: str, year: str | None, page: int, seg: int, text: str) -> Dict[str, Any]:
    chunk = {
        "chunkId": f"{file_id}:p{page}:s{seg}",
        "fileId": file_id,
        "fileName": file_name,
        "kind": "pdf",
        "page": page,
        "text": text,
    }
    if year:
        chunk["year"] = year
    return chunk


CHUNKS: List[Dict[str, Any]] = [
    # Deliberately out of reading order; the store sorts per file.
    _pdf("file_1", "2025/Rules 2025.pdf", "2025", 4, 1,
         "EV4.1 The total current limit of the tractive system is set by the accumulator fuses."),
    _pdf("file_1", "2025/Rules 2025.pdf", "2025", 1, 1, "Table of Contents"),
    _pdf("file_1", "2025/Rules 2025.pdf", "2025", 2, 1, "ARTICLE T6 BRAKE SYSTEM"),
    _pdf("file_1", "2025/Rules 2025.pdf", "2025", 2, 2,
         "T6.1 The brake system must act on all four wheels and be operated by a single control."),
    _pdf("file_1", "2025/Rules 2025.pdf", "2025", 2, 3,
         "T6.2 The brake pedal must be designed to withstand a force of 2000 N."),
    _pdf("file_1", "2025/Rules 2025.pdf", "2025", 3, 1, "T6.3 A brake system encoder is not required."),
    _pdf("file_2", "2024/Rules 2024.pdf", "2024", 1, 1, "T6.1 The brake system must act on all four wheels."),
    {
        "chunkId": "file_3:l1-2",
        "fileId": "file_3",
        "fileName": "scripts/lap_time.py",
        "kind": "text",
        "startLine": 1,
        "endLine": 2,
        "text": "def lap_time(distance, speed):\n    return distance / speed  # brake point ignored",
    },
    _pdf("file_4", "2025/Handbook 2025.pdf", "2025", 1, 1,
         "Handbook: registration deadline and cost report submission."),
    _pdf("file_5", "notes/untagged.pdf", None, 1, 1, "Brake test procedure for scrutineering."),
]


def build_bundle(files: List[Dict[str, Any]], chunks: List[Dict[str, Any]]) -> Dict[str, Any]:
    index = InvertedIndex.from_documents(
        (c["chunkId"], {"text": c["text"], "fileName": c["fileName"]}) for c in chunks
    )
    return {
        "generatedAt": "2025-06-01T12:00:00.000Z",
        "files": files,
        "chunks": chunks,
        "miniSearch": index.to_dict(),
    }


def write_bundle(path: Path, files: List[Dict[str, Any]], chunks: List[Dict[str, Any]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(build_bundle(files, chunks)), encoding="utf-8")
    return path


@pytest.fixture
def bundle_path(tmp_path: Path) -> Path:
    return write_bundle(tmp_path / "index" / "bundle.json", FILES, CHUNKS)


@pytest.fixture
def store(bundle_path: Path) -> CorpusStore:
    return CorpusStore(bundle_path)


@pytest.fixture
def bundle_writer():
    """Write a custom bundle: ``bundle_writer(path, files, chunks)``."""
    return write_bundle
