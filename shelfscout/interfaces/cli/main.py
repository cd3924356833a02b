"""
CLI Main - Typer-based command-line interface.

Usage:
    shelfscout search "tolkien ring"
    shelfscout warm seeds.txt
    shelfscout init
    shelfscout serve
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from shelfscout.config import ShelfScoutError, get_settings

app = typer.Typer(
    name="shelfscout",
    help="ShelfScout - Hybrid book search",
    add_completion=False,
)
console = Console()


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Configure logging for every command."""
    level = logging.DEBUG if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of results (1-25)"),
    lang: str | None = typer.Option(None, "--lang", "-l", help="Preferred language code"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw response as JSON"),
) -> None:
    """Search books across the local index and Open Library."""
    asyncio.run(_search_async(query, limit, lang, as_json))


async def _search_async(query: str, limit: int, lang: str | None, as_json: bool) -> None:
    """Async search implementation."""
    from shelfscout.interfaces.api.deps import build_services

    services = build_services(get_settings())
    try:
        await services.store.initialize()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Searching...", total=None)
            response = await services.orchestrator.search(query, limit=limit, lang=lang)

    except ShelfScoutError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await services.close()

    if as_json:
        console.print_json(json.dumps(response.model_dump(), ensure_ascii=False))
        return

    console.print(f"\n[yellow]Query used:[/yellow] {response.query_used}")
    suggestions = response.suggestions
    if suggestions.title_hints or suggestions.author_hints:
        console.print(
            f"[dim]Titles: {', '.join(suggestions.title_hints) or '-'} | "
            f"Authors: {', '.join(suggestions.author_hints) or '-'}[/dim]"
        )

    table = Table(title=f"{len(response.results)} results")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Authors", style="green")
    table.add_column("Year", justify="right")
    table.add_column("Languages")
    table.add_column("Work", style="dim")

    for i, book in enumerate(response.results, 1):
        table.add_row(
            str(i),
            book.title or "?",
            ", ".join(book.authors[:2]),
            str(book.year or ""),
            ", ".join(book.languages[:3]),
            book.work_key,
        )

    console.print(table)


@app.command()
def warm(
    seeds: Path = typer.Argument(..., help="File with one seed query per line"),
    lang: str | None = typer.Option(None, "--lang", "-l", help="Catalog language filter"),
) -> None:
    """Refresh the index from Open Library for a list of seed queries."""
    if not seeds.exists():
        console.print(f"[red]Error:[/red] File not found: {seeds}")
        raise typer.Exit(1)

    queries = [
        line.strip()
        for line in seeds.read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.lstrip().startswith("#")
    ]
    if not queries:
        console.print("[yellow]No seed queries found[/yellow]")
        return

    asyncio.run(_warm_async(queries, lang))


async def _warm_async(queries: list[str], lang: str | None) -> None:
    """Run expand -> fetch -> enrich -> upsert for each seed query."""
    from shelfscout.domains.outcome import unwrap
    from shelfscout.domains.query import normalize_query
    from shelfscout.interfaces.api.deps import build_services

    services = build_services(get_settings())
    written = embedded = failed = 0

    try:
        await services.store.initialize()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        ) as progress:
            task = progress.add_task("Warming index...", total=len(queries))

            for query in queries:
                progress.update(task, description=f"Warming: {query[:40]}")
                normalized = normalize_query(query)
                if not normalized:
                    progress.advance(task)
                    continue

                intent = unwrap(await services.expander.expand(normalized))
                variants = services.fetcher.build_variants(intent, lang)
                outcome = await services.fetcher.fetch_all(variants)
                if outcome.degraded:
                    failed += 1
                records = await services.fetcher.enrich(unwrap(outcome))

                if records:
                    report = await services.upserter.upsert(records)
                    written += report.written
                    embedded += report.embedded

                progress.advance(task)

        total = await services.store.count()

    except ShelfScoutError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await services.close()

    table = Table(title="Warm Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Seed queries", str(len(queries)))
    table.add_row("Rows written", str(written))
    table.add_row("Embeddings created", str(embedded))
    table.add_row("Queries with catalog failures", str(failed))
    table.add_row("Books in index", str(total))
    console.print(table)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting ShelfScout API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "shelfscout.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
        log_level=settings.log_level.lower(),
    )


@app.command()
def init() -> None:
    """Create the book index schema."""
    asyncio.run(_init_async())


async def _init_async() -> None:
    """Async initialization."""
    from shelfscout.adapters.embeddings import create_embedder
    from shelfscout.interfaces.api.deps import build_store

    settings = get_settings()
    embedder = create_embedder(settings)
    store = build_store(settings, embedder)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Initializing {settings.store_backend} store...", total=None)
            await store.initialize()
            total = await store.count()
    except ShelfScoutError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await store.close()
        close = getattr(embedder, "close", None)
        if close is not None:
            await close()

    console.print("\n[green]Initialization complete![/green]")
    if settings.store_backend == "sqlite":
        console.print(f"[dim]Database: {settings.db_path}[/dim]")
    console.print(f"[dim]Books in index: {total}[/dim]")


@app.command()
def version() -> None:
    """Show version information."""
    from shelfscout import __version__

    console.print(f"ShelfScout v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
