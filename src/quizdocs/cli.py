"""Command line interface for quizdocs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from quizdocs.config import AppConfig
from quizdocs.errors import CorruptCorpus, MissingCorpus, UpstreamFetchError
from quizdocs.index.bundle import CorpusStore
from quizdocs.index.expand import ContextExpander
from quizdocs.index.search import LexicalSearchEngine
from quizdocs.quiz.client import QuestionSourceClient
from quizdocs.quiz.crawler import RemoteQuestionCrawler
from quizdocs.quiz.lookup import QuestionLookup
from quizdocs.web.app import app as web_app, build_services


console = Console()
app = typer.Typer(help="quizdocs - rulebook search and FS-Quiz question lookup")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _resolve_index(index: Optional[Path]) -> Path:
    config = AppConfig(index_path=index)
    return config.resolve_index_path(Path.cwd())


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    index: Path = typer.Option(None, "--index", help="Corpus bundle path"),
    year: Optional[str] = typer.Option(None, help="Only PDF chunks from this year"),
    limit: int = typer.Option(12, min=1, help="Number of results before expansion"),
    term: List[str] = typer.Option([], "--term", "-t", help="Extra search term (repeatable)"),
    kind: List[str] = typer.Option([], "--kind", help="Restrict to pdf or text chunks"),
    expand: bool = typer.Option(True, "--expand/--no-expand", help="Pull in text following headers"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Search the corpus bundle."""
    _setup_logging(verbose)
    store = CorpusStore(_resolve_index(index))
    engine = LexicalSearchEngine(store)

    try:
        results = engine.search(
            query,
            year=year,
            limit=limit,
            extra_terms=term,
            kind_allow_list=kind or None,
        )
        if expand:
            results = ContextExpander(store).expand(results)
    except MissingCorpus as exc:
        console.print(f"[yellow]{exc}[/yellow]")
        raise typer.Exit(code=1)
    except CorruptCorpus as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score", no_wrap=True)
    table.add_column("Document")
    table.add_column("Location", no_wrap=True)
    table.add_column("Excerpt")

    for result in results:
        table.add_row(
            f"{result.score:.3f}", result.file_name, result.chunk.location, result.excerpt[:180]
        )

    console.print(table)


@app.command()
def manifest(
    index: Path = typer.Option(None, "--index", help="Corpus bundle path"),
) -> None:
    """Show what the corpus bundle contains."""
    info = CorpusStore(_resolve_index(index)).manifest()
    if not info["index_ready"]:
        console.print(f"[yellow]{info['message']}[/yellow]")
        return
    console.print(f"Generated: [bold]{info['generated_at']}[/bold]")
    console.print(f"Files: {info['file_count']}, chunks: {info['chunk_count']}")
    console.print(f"Years: {', '.join(info['years']) or '-'}")


@app.command()
def lookup(
    query: str = typer.Argument(..., help="Question text to find"),
    budget: Optional[float] = typer.Option(None, help="Seconds to spend crawling"),
    limit: int = typer.Option(1, min=1, max=12, help="Number of matches to show"),
    api: str = typer.Option("", help="FS-Quiz API base URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Find the FS-Quiz question matching QUERY."""
    _setup_logging(verbose)
    config = AppConfig(question_api=api, lookup_budget=budget)
    client = QuestionSourceClient(config.question_api)
    crawler = RemoteQuestionCrawler(client, config.crawl, image_host=config.image_host)
    service = QuestionLookup(crawler, time_budget=config.lookup_budget)

    try:
        result = service.lookup(query, limit=limit)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except UpstreamFetchError as exc:
        console.print(f"[red]Lookup failed: {exc}[/red]")
        raise typer.Exit(code=2)
    finally:
        crawler.close()
        client.close()

    state = "complete" if result.complete else "partial"
    console.print(
        f"Indexed {result.indexed_count} questions ({result.newly_indexed} new, {state})."
    )
    if not result.matches:
        console.print("[yellow]No confident match.[/yellow]")
        return

    for match in result.matches:
        console.print(f"[bold]#{match.question.id}[/bold] score={match.score:.3f}")
        console.print(match.question.text)
        for url in match.question.image_urls:
            console.print(f"  {url}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    index: Path = typer.Option(None, "--index", help="Corpus bundle path"),
) -> None:
    """Start the web API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - optional extra
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    resolved = _resolve_index(index)
    if not resolved.exists():
        console.print("[yellow]Warning: corpus bundle not found, searches will fail.[/yellow]")

    web_app.state.services = build_services(AppConfig(index_path=resolved))
    console.print(f"Starting web API on http://{host}:{port} (index: {resolved})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
