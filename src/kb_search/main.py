import asyncio

from typer import Exit, Typer, Option, Argument
from typing import Annotated, List, Optional
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .catalog import ProblemCatalog, ReembedResult
from .config import SearchSettings, resolve_db_path
from .embeddings import EmbeddingClient, create_embedding_provider
from .errors import QueryValidationError, SearchUnavailableError
from .logging_setup import configure_logging
from .search import SearchOutcome, SemanticSearchEngine
from .storage import DuckDBStorage, ProblemRecord

app = Typer(help="Semantic search over a problem knowledge base.")

DbPathOption = Annotated[
    Optional[str],
    Option("--db-path", help="DuckDB file to use (defaults to KB_SEARCH_DB_PATH)."),
]
VerboseOption = Annotated[bool, Option("--verbose", "-v", help="Show info-level logs.")]


async def run_search(query: str, db_path: str | None = None) -> SearchOutcome:
    settings = SearchSettings.from_env()
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        provider = create_embedding_provider(settings)
        try:
            engine = SemanticSearchEngine.from_settings(provider, settings, store=storage)
            return await engine.search(query, storage.list_problems)
        finally:
            await provider.aclose()
    finally:
        storage.close()


async def run_reembed(db_path: str | None = None) -> ReembedResult:
    settings = SearchSettings.from_env()
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        provider = create_embedding_provider(settings)
        try:
            catalog = ProblemCatalog(
                storage,
                embedding_provider=provider,
                max_concurrency=settings.max_concurrency,
            )
            return await catalog.reembed_all()
        finally:
            await provider.aclose()
    finally:
        storage.close()


async def _create(catalog: ProblemCatalog, **fields) -> ProblemRecord:
    try:
        return await catalog.create(**fields)
    finally:
        if catalog.embedding_provider is not None:
            await catalog.embedding_provider.aclose()


@app.command()
def add(
    problem: Annotated[str, Option("--problem", "-p", help="Problem description.")],
    solution: Annotated[str, Option("--solution", "-s", help="How the problem was solved.")],
    machine_part: Annotated[Optional[str], Option("--machine-part", help="Affected machine part.")] = None,
    tag: Annotated[Optional[List[str]], Option("--tag", "-t", help="Tag; repeat for several.")] = None,
    db_path: DbPathOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Add a problem and embed it."""
    configure_logging("INFO" if verbose else "WARNING")
    console = Console()
    settings = SearchSettings.from_env()
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        try:
            provider: EmbeddingClient | None = create_embedding_provider(settings)
        except ValueError as exc:
            console.print(f"[yellow]Embedding disabled:[/] {exc}")
            provider = None
        catalog = ProblemCatalog(storage, embedding_provider=provider)
        try:
            record = asyncio.run(
                _create(
                    catalog,
                    problem=problem,
                    solution=solution,
                    machine_part=machine_part,
                    tags=tag or [],
                )
            )
        except ValueError as exc:
            console.print(f"[bold red]{exc}[/]")
            raise Exit(code=2)
    finally:
        storage.close()

    status = "embedded" if record.embedding is not None else "not embedded yet"
    console.print(f"Added problem [bold]{record.id}[/] ({status})")


@app.command()
def search(
    query: Annotated[str, Argument(help="Free-text description of the problem.")],
    db_path: DbPathOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Rank stored problems by similarity to QUERY."""
    configure_logging("INFO" if verbose else "WARNING")
    console = Console()
    try:
        outcome = asyncio.run(run_search(query, db_path))
    except QueryValidationError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise Exit(code=2)
    except SearchUnavailableError as exc:
        console.print(f"[bold red]{exc}[/] Try again later.")
        raise Exit(code=1)
    except ValueError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise Exit(code=1)

    if not outcome.results:
        console.print("No matching problems.")
    else:
        table = Table(title=f"Results for {query!r}")
        table.add_column("Similarity", justify="right")
        table.add_column("Problem")
        table.add_column("Solution")
        table.add_column("Tags")
        for result in outcome.results:
            table.add_row(
                f"{result.similarity:.3f}",
                result.record.problem,
                result.record.solution,
                ", ".join(result.record.tags),
            )
        console.print(table)
    if outcome.skipped:
        console.print(f"[yellow]{outcome.skipped} problem(s) could not be embedded and were skipped.[/]")


@app.command()
def reembed(
    db_path: DbPathOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Re-embed every problem with the configured model."""
    configure_logging("INFO" if verbose else "WARNING")
    console = Console()
    try:
        result = asyncio.run(run_reembed(db_path))
    except ValueError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise Exit(code=1)

    console.print(
        Panel(
            f"Problems: {result.total}\nEmbedded: {result.embedded}\nFailed: {result.failed}",
            title="Re-embedding complete",
            title_align="left",
            border_style="bold green" if not result.failed else "bold yellow",
        )
    )


@app.command()
def stats(db_path: DbPathOption = None) -> None:
    """Show corpus and embedding coverage counters."""
    console = Console()
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        counters = storage.stats()
    finally:
        storage.close()
    console.print(f"Problems: {counters['total']}")
    console.print(f"With embedding: {counters['with_embedding']}")
    console.print(f"Missing embedding: {counters['missing_embedding']}")
    console.print(f"Machine parts: {', '.join(counters['machine_parts']) or '-'}")
    console.print(f"Tags: {', '.join(counters['tags']) or '-'}")
