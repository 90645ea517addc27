"""Inverted index over corpus chunks with prefix and fuzzy term matching.

The on-disk layout is the MiniSearch JSON serialisation produced by the
indexing pipeline, so a bundle built there can be searched here unchanged:

* ``documentIds`` maps short numeric ids to chunk ids,
* ``fieldIds`` maps field names to numeric field ids,
* ``fieldLength`` holds the number of distinct terms per document and field,
* ``index`` is a list of ``[term, {fieldId: {shortId: termFrequency}}]``.

Scoring is BM25+ per field, weighted by field boost and by how the index term
was reached (exact, prefix or fuzzy), summed over the query terms.
"""

from __future__ import annotations

import bisect
import itertools
import math
import unicodedata
from collections import Counter
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

DEFAULT_BOOST: Dict[str, float] = {"fileName": 4.0, "text": 1.0}

BM25_K = 1.2
BM25_B = 0.7
BM25_D = 0.5

PREFIX_WEIGHT = 0.375
FUZZY_WEIGHT = 0.45
MAX_FUZZY = 6

EXPANSION_CACHE_SIZE = 4096

# term -> field id -> short doc id -> term frequency
Postings = Dict[int, Dict[int, int]]
Trie = Dict[str, Any]


@dataclass(slots=True)
class IndexHit:
    id: str
    score: float
    terms: Tuple[str, ...]


def _is_separator(char: str) -> bool:
    if char in "\n\r":
        return True
    return unicodedata.category(char)[0] in ("Z", "P")


def tokenize(text: str) -> List[str]:
    """Split on runs of line breaks, separators and punctuation, lower-cased."""
    terms: List[str] = []
    current: List[str] = []
    for char in text:
        if _is_separator(char):
            if current:
                terms.append("".join(current).lower())
                current = []
        else:
            current.append(char)
    if current:
        terms.append("".join(current).lower())
    return terms


def build_trie(terms: Iterable[str]) -> Trie:
    """Character trie; the ``""`` key of a node holds the term ending there."""
    root: Trie = {}
    for term in terms:
        node = root
        for char in term:
            node = node.setdefault(char, {})
        node[""] = term
    return root


def fuzzy_search(trie: Trie, query: str, max_distance: int) -> List[Tuple[str, int]]:
    """Terms within ``max_distance`` edits of ``query``, sorted by term.

    Walks the trie carrying one Levenshtein row per node and drops a branch as
    soon as every cell of its row exceeds ``max_distance``.
    """
    found: List[Tuple[str, int]] = []
    stack = [(trie, list(range(len(query) + 1)))]
    while stack:
        node, previous = stack.pop()
        for char, child in node.items():
            if not char:
                continue
            row = [previous[0] + 1]
            for j, query_char in enumerate(query, start=1):
                row.append(
                    min(previous[j] + 1, row[j - 1] + 1, previous[j - 1] + (query_char != char))
                )
            if row[-1] <= max_distance and "" in child:
                found.append((child[""], row[-1]))
            if min(row) <= max_distance:
                stack.append((child, row))
    found.sort()
    return found


def _bm25(tf: int, matching: int, total: int, length: float, avg_length: float) -> float:
    idf = math.log(1 + (total - matching + 0.5) / (matching + 0.5))
    norm = 1 - BM25_B + BM25_B * (length / avg_length if avg_length else 0.0)
    return idf * (BM25_D + tf * (BM25_K + 1) / (tf + BM25_K * norm))


class InvertedIndex:
    """Read-only term index with MiniSearch-compatible search semantics."""

    def __init__(
        self,
        *,
        document_ids: Mapping[int, str],
        field_ids: Mapping[str, int],
        field_length: Mapping[int, Sequence[int]],
        average_field_length: Sequence[float],
        postings: Mapping[str, Postings],
    ) -> None:
        self._document_ids = dict(document_ids)
        self._field_ids = dict(field_ids)
        self._field_length = {k: list(v) for k, v in field_length.items()}
        self._average_field_length = list(average_field_length)
        self._postings = dict(postings)
        self._sorted_terms = sorted(self._postings)
        self._trie = build_trie(self._sorted_terms)
        self._expand_cached = lru_cache(maxsize=EXPANSION_CACHE_SIZE)(self._expand_term)

    @property
    def document_count(self) -> int:
        return len(self._document_ids)

    @property
    def fields(self) -> List[str]:
        return list(self._field_ids)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InvertedIndex":
        """Load the serialised form; raises ``KeyError``/``ValueError``/``TypeError`` if malformed."""
        document_ids = {int(k): str(v) for k, v in data["documentIds"].items()}
        field_ids = {str(k): int(v) for k, v in data["fieldIds"].items()}
        field_length = {int(k): [int(n) for n in v] for k, v in data["fieldLength"].items()}
        average = [float(v) for v in data["averageFieldLength"]]
        postings: Dict[str, Postings] = {}
        for term, fields in data["index"]:
            postings[str(term)] = {
                int(fid): {int(doc): int(tf) for doc, tf in docs.items()}
                for fid, docs in fields.items()
            }
        return cls(
            document_ids=document_ids,
            field_ids=field_ids,
            field_length=field_length,
            average_field_length=average,
            postings=postings,
        )

    @classmethod
    def from_documents(
        cls,
        documents: Iterable[Tuple[str, Mapping[str, str]]],
        *,
        fields: Sequence[str] = ("text", "fileName"),
    ) -> "InvertedIndex":
        """Build an index from ``(document_id, {field: text})`` pairs."""
        field_ids = {name: i for i, name in enumerate(fields)}
        document_ids: Dict[int, str] = {}
        field_length: Dict[int, List[int]] = {}
        postings: Dict[str, Postings] = {}
        for short_id, (doc_id, values) in enumerate(documents):
            document_ids[short_id] = doc_id
            lengths = [0] * len(fields)
            for name, fid in field_ids.items():
                terms = [t for t in tokenize(values.get(name, "")) if t]
                lengths[fid] = len(set(terms))
                for term, tf in Counter(terms).items():
                    postings.setdefault(term, {}).setdefault(fid, {})[short_id] = tf
            field_length[short_id] = lengths
        count = len(document_ids)
        average = [
            sum(lengths[fid] for lengths in field_length.values()) / count if count else 0.0
            for fid in range(len(fields))
        ]
        return cls(
            document_ids=document_ids,
            field_ids=field_ids,
            field_length=field_length,
            average_field_length=average,
            postings=postings,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documentCount": self.document_count,
            "nextId": max(self._document_ids, default=-1) + 1,
            "documentIds": {str(k): v for k, v in self._document_ids.items()},
            "fieldIds": dict(self._field_ids),
            "fieldLength": {str(k): v for k, v in self._field_length.items()},
            "averageFieldLength": list(self._average_field_length),
            "storedFields": {str(k): {"chunkId": v} for k, v in self._document_ids.items()},
            "dirtCount": 0,
            "index": [
                [term, {str(fid): {str(d): tf for d, tf in docs.items()} for fid, docs in fields.items()}]
                for term, fields in self._postings.items()
            ],
            "serializationVersion": 2,
        }

    def _prefix_terms(self, prefix: str) -> Iterator[str]:
        start = bisect.bisect_left(self._sorted_terms, prefix)
        for term in itertools.islice(self._sorted_terms, start, None):
            if not term.startswith(prefix):
                break
            yield term

    def _expand_term(
        self, term: str, *, prefix: bool, fuzzy: float
    ) -> List[Tuple[str, float]]:
        """Index terms reachable from a query term, with their match weight."""
        matches: List[Tuple[str, float]] = []
        if term in self._postings:
            matches.append((term, 1.0))
        seen = {term}
        if prefix:
            for candidate in self._prefix_terms(term):
                distance = len(candidate) - len(term)
                if not distance:
                    continue
                seen.add(candidate)
                weight = PREFIX_WEIGHT * len(candidate) / (len(candidate) + 0.3 * distance)
                matches.append((candidate, weight))
        if fuzzy:
            max_distance = min(MAX_FUZZY, round(len(term) * fuzzy)) if fuzzy < 1 else int(fuzzy)
            if max_distance > 0:
                for candidate, distance in fuzzy_search(self._trie, term, max_distance):
                    if not distance or candidate in seen:
                        continue
                    weight = FUZZY_WEIGHT * len(candidate) / (len(candidate) + distance)
                    matches.append((candidate, weight))
        return matches

    def search(
        self,
        query: str,
        *,
        boost: Mapping[str, float] | None = None,
        prefix: bool = True,
        fuzzy: float = 0.2,
    ) -> List[IndexHit]:
        """OR-combined search; returns hits sorted by descending score."""
        boost = DEFAULT_BOOST if boost is None else boost
        scores: Dict[int, float] = {}
        matched: Dict[int, List[str]] = {}
        total = self.document_count
        for query_term in dict.fromkeys(t for t in tokenize(query) if t):
            for term, weight in self._expand_cached(query_term, prefix=prefix, fuzzy=fuzzy):
                for name, fid in self._field_ids.items():
                    docs = self._postings[term].get(fid)
                    if not docs:
                        continue
                    field_boost = boost.get(name, 1.0) or 1.0
                    avg_length = self._average_field_length[fid]
                    for doc, tf in docs.items():
                        if doc not in self._document_ids:
                            continue
                        length = self._field_length.get(doc, [0] * (fid + 1))[fid]
                        raw = _bm25(tf, len(docs), total, length, avg_length)
                        scores[doc] = scores.get(doc, 0.0) + weight * field_boost * raw
                        terms = matched.setdefault(doc, [])
                        if query_term not in terms:
                            terms.append(query_term)

        hits = [
            IndexHit(
                id=self._document_ids[doc],
                score=score * (len(matched[doc]) or 1),
                terms=tuple(matched[doc]),
            )
            for doc, score in scores.items()
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits
