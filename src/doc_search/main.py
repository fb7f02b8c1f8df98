import sys
from pathlib import Path
from typing import Annotated, Optional

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .service import DocumentSearchService, open_service

app = Typer(help="Index documents and search them for relevant passages.")
console = Console()

MIN_CONTENT_LENGTH = 10

DbPathOption = Annotated[
    Optional[str],
    Option("--db-path", help="DuckDB file to use (default: DOC_SEARCH_DB_PATH)."),
]


def _stderr_sink(message: str) -> None:
    # Looked up per message so redirected streams (e.g. test runners) work.
    sys.stderr.write(message)


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(_stderr_sink, level="DEBUG" if verbose else "WARNING")


@app.callback()
def main(
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Show debug logging.")
    ] = False,
) -> None:
    _configure_logging(verbose)


def _open(db_path: str | None) -> DocumentSearchService:
    try:
        return open_service(db_path)
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise Exit(code=2)


@app.command()
def index(
    files: Annotated[
        list[Path], Argument(help="UTF-8 text or Markdown files to index.")
    ],
    db_path: DbPathOption = None,
) -> None:
    """Chunk, store and embed the given files."""
    service = _open(db_path)
    failures = 0
    try:
        for file_path in files:
            if not file_path.is_file():
                console.print(f"[bold red]No such file:[/] {file_path}")
                failures += 1
                continue
            try:
                content = file_path.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                console.print(f"[bold red]Not a UTF-8 text file:[/] {file_path}")
                failures += 1
                continue
            if len(content.strip()) < MIN_CONTENT_LENGTH:
                console.print(f"[bold red]Too little text to index:[/] {file_path}")
                failures += 1
                continue

            result = service.add_document(file_path.name, content)
            console.print(
                f"[bold green]Indexed[/] {file_path.name} "
                f"([cyan]{result.doc_id}[/]): {result.chunks_written} chunks, "
                f"{result.embeddings_written} embedded"
            )
    finally:
        service.close()
    if failures:
        raise Exit(code=1)


@app.command()
def search(
    query: Annotated[str, Argument(help="Natural-language query.")],
    limit: Annotated[int, Option("--limit", "-n", min=1)] = 10,
    per_document: Annotated[
        bool, Option("--per-document", help="Best passage per document only.")
    ] = False,
    db_path: DbPathOption = None,
) -> None:
    """Search indexed documents for relevant passages."""
    service = _open(db_path)
    try:
        response = service.execute(query, limit, per_document=per_document)
    finally:
        service.close()

    if not response.results:
        console.print("[yellow]No matches.[/]")
        return

    for rank, result in enumerate(response.results, start=1):
        console.print(
            Panel(
                result.excerpt,
                title=f"#{rank} {result.filename} · chunk {result.chunk_index}",
                subtitle=f"{result.mode} score {result.score:.3f}",
                title_align="left",
                border_style="bold green" if result.mode == "semantic" else "bold yellow",
            )
        )


@app.command()
def documents(db_path: DbPathOption = None) -> None:
    """List indexed documents."""
    service = _open(db_path)
    try:
        rows = service.list_documents()
    finally:
        service.close()

    table = Table(title="Documents")
    table.add_column("ID", style="cyan")
    table.add_column("Filename")
    table.add_column("Characters", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Embedded", justify="right")
    table.add_column("Created")
    for row in rows:
        table.add_row(
            row["id"],
            row["filename"],
            str(row["content_length"]),
            str(row["chunks_count"]),
            str(row["embedded_count"]),
            row["created_at"],
        )
    console.print(table)


@app.command()
def stats(db_path: DbPathOption = None) -> None:
    """Show index statistics."""
    service = _open(db_path)
    try:
        values = service.stats()
    finally:
        service.close()

    table = Table(title="Index statistics", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    for key, value in values.items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)


@app.command()
def delete(
    doc_id: Annotated[str, Argument(help="Identifier of the document to delete.")],
    db_path: DbPathOption = None,
) -> None:
    """Delete a document and its chunks."""
    service = _open(db_path)
    try:
        deleted = service.delete_document(doc_id)
    finally:
        service.close()
    if not deleted:
        console.print(f"[bold red]Document not found:[/] {doc_id}")
        raise Exit(code=1)
    console.print(f"[bold green]Deleted[/] {doc_id}")


@app.command()
def reindex(
    force: Annotated[
        bool, Option("--force", help="Re-embed chunks that already have vectors.")
    ] = False,
    db_path: DbPathOption = None,
) -> None:
    """Embed chunks that are missing vectors."""
    service = _open(db_path)
    try:
        if not service.embeddings_configured:
            console.print("[bold red]No embedding provider configured (GOOGLE_API_KEY).[/]")
            raise Exit(code=1)
        result = service.reindex(force=force)
    finally:
        service.close()
    console.print(
        f"Reindexed {result.candidates} chunks: "
        f"{result.embeddings_written} embedded, {result.embeddings_failed} failed"
    )


@app.command()
def serve(
    host: Annotated[str, Option("--host")] = "127.0.0.1",
    port: Annotated[int, Option("--port")] = 8000,
) -> None:
    """Run the HTTP API."""
    from .server import run_server

    run_server(host=host, port=port)
