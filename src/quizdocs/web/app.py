"""FastAPI application exposing corpus search and FS-Quiz lookup."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Literal

from fastapi import FastAPI, HTTPException, Request
from fastapi import Path as PathParam
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from quizdocs.config import AppConfig
from quizdocs.errors import CorruptCorpus, MissingCorpus, UpstreamFetchError
from quizdocs.index.bundle import CorpusStore, is_valid_year
from quizdocs.index.expand import ContextExpander
from quizdocs.index.search import LexicalSearchEngine
from quizdocs.models import ScoredChunk
from quizdocs.quiz.client import QuestionSourceClient
from quizdocs.quiz.crawler import RemoteQuestionCrawler
from quizdocs.quiz.lookup import MAX_QUERY_CHARS, QuestionLookup

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="quizdocs", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class SearchPayload(BaseModel):
    query: str
    year: str | None = None
    limit: int = 12
    extra_terms: List[str] = Field(default_factory=list)
    files: List[str] | None = None
    kinds: List[Literal["pdf", "text"]] | None = None
    expand: bool = True


class LookupPayload(BaseModel):
    query: str = ""
    limit: int = Field(default=1, ge=1, le=12)


@dataclass(slots=True)
class Services:
    """Long-lived objects shared by every request."""

    store: CorpusStore
    engine: LexicalSearchEngine
    expander: ContextExpander
    client: QuestionSourceClient
    lookup: QuestionLookup

    def close(self) -> None:
        self.lookup.crawler.close()
        self.client.close()


def build_services(config: AppConfig, base_dir: Path | None = None) -> Services:
    store = CorpusStore(config.resolve_index_path(base_dir))
    client = QuestionSourceClient(config.question_api)
    crawler = RemoteQuestionCrawler(client, config.crawl, image_host=config.image_host)
    return Services(
        store=store,
        engine=LexicalSearchEngine(store),
        expander=ContextExpander(store),
        client=client,
        lookup=QuestionLookup(crawler, time_budget=config.lookup_budget),
    )


def _services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services(AppConfig(), Path.cwd())
        request.app.state.services = services
    return services


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    services = getattr(app.state, "services", None)
    if services is not None:
        services.close()


def _run_search(services: Services, query: str, payload: SearchPayload, limit: int) -> List[ScoredChunk]:
    results = services.engine.search(
        query,
        year=payload.year,
        limit=limit,
        extra_terms=payload.extra_terms,
        source_allow_list=payload.files,
        kind_allow_list=payload.kinds,
    )
    if payload.expand:
        results = services.expander.expand(results)
    return results


@app.post("/search")
async def search_documents(payload: SearchPayload, request: Request) -> dict[str, Any]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")

    limit = max(1, min(payload.limit, 50))
    services = _services(request)
    try:
        results = await asyncio.to_thread(_run_search, services, query, payload, limit)
    except MissingCorpus as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except CorruptCorpus as exc:
        LOGGER.error("Search failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return {"results": [item.to_dict() for item in results]}


@app.get("/manifest")
async def manifest(request: Request) -> dict[str, Any]:
    return _services(request).store.manifest()


@app.get("/files")
async def list_files(request: Request) -> dict[str, Any]:
    return {"files": _services(request).store.file_summaries()}


@app.get("/books")
async def list_books(request: Request, year: str = "") -> dict[str, Any]:
    year = year.strip()
    if not is_valid_year(year):
        raise HTTPException(status_code=400, detail="Invalid or missing year.")

    try:
        corpus = _services(request).store.load()
    except MissingCorpus:
        return {"year": year, "handbooks": [], "rules": []}
    except CorruptCorpus as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"year": year, **corpus.rulebooks(year)}


@app.post("/lookup")
async def lookup_question(payload: LookupPayload, request: Request) -> dict[str, Any]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Provide a query.")
    if len(query) > MAX_QUERY_CHARS:
        raise HTTPException(status_code=400, detail="Query is too long.")

    lookup = _services(request).lookup
    try:
        result = await asyncio.to_thread(lookup.lookup, query, limit=payload.limit)
    except UpstreamFetchError as exc:
        LOGGER.error("Lookup failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return result.to_dict()


@app.get("/question/{question_id}")
async def get_question(
    request: Request, question_id: int = PathParam(..., ge=0, le=1_000_000)
) -> dict[str, Any]:
    client = _services(request).client
    try:
        question = await asyncio.to_thread(client.fetch_question, question_id)
    except UpstreamFetchError as exc:
        raise HTTPException(status_code=502, detail="Failed to fetch question.") from exc
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found.")
    if not question:
        raise HTTPException(status_code=502, detail="Unexpected question payload.")
    return {"question": question}


@app.get("/answer/{answer_id}")
async def get_answer(
    request: Request, answer_id: int = PathParam(..., ge=0, le=1_000_000)
) -> dict[str, Any]:
    client = _services(request).client
    try:
        found = await asyncio.to_thread(client.fetch_answer, answer_id)
    except UpstreamFetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if found is None:
        raise HTTPException(status_code=404, detail="Answer not found.")
    return {"answer": found.answer, "question": found.question}
