"""Command line entry point: ``rag-index``."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rag_index_kit import __version__
from rag_index_kit.config import (
    RagServiceConfig,
    get_config_path,
    load_service_config,
    save_service_config,
)
from rag_index_kit.constants import (
    DEFAULT_QUERY_TOP_K,
    META_END_LINE,
    META_FILE_PATH,
    META_START_LINE,
    VALID_LOG_LEVELS,
    VECTOR_DB_IN_MEMORY,
)
from rag_index_kit.exceptions import RagIndexError
from rag_index_kit.indexing.service import RagIndexService
from rag_index_kit.logging_config import configure_logging

logger = logging.getLogger(__name__)

# Pinecone keys and embedding endpoints are commonly kept in .env
load_dotenv(Path.cwd() / ".env", verbose=False)

app = typer.Typer(
    name="rag-index",
    help="Index a workspace into a vector store and keep it in sync.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def print_error(message: str) -> None:
    console.print(f"[bold red]✗[/bold red] {escape(message)}")


def print_success(message: str) -> None:
    console.print(f"[bold green]✓[/bold green] {escape(message)}")


def print_info(message: str) -> None:
    console.print(f"[cyan]{escape(message)}[/cyan]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠ {escape(message)}[/yellow]")


def _load(ctx: typer.Context) -> tuple[Path, RagServiceConfig]:
    """Resolve the workspace root and load its config, configuring logging."""
    root: Path = ctx.obj["root"]
    try:
        config = load_service_config(root, strict=ctx.obj["strict"])
    except RagIndexError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    level = ctx.obj["log_level"] or config.get_effective_log_level()
    log_file = ctx.obj["log_file"]
    configure_logging(level, log_file=log_file, log_rotation=config.log_rotation)
    return root, config


async def _open_service(root: Path, config: RagServiceConfig) -> RagIndexService:
    service = RagIndexService(config, root)
    await service.initialize()
    return service


def _run(coro: Any) -> Any:
    """Run a coroutine, turning package errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except RagIndexError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


@app.callback()
def main(
    ctx: typer.Context,
    root: Path = typer.Option(
        Path("."),
        "--root",
        "-r",
        help="Workspace root to index",
        file_okay=False,
        resolve_path=True,
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help=f"Override log level ({', '.join(VALID_LOG_LEVELS)})",
    ),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Write logs to a rotating file instead of stderr"
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Also fail on invalid chunking, delay or logging settings"
    ),
) -> None:
    """Syntax-aware RAG indexing for a workspace."""
    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        print_error(
            f"Invalid log level '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )
        raise typer.Exit(code=1)
    ctx.obj = {
        "root": root,
        "log_level": log_level.upper() if log_level else None,
        "log_file": log_file,
        "strict": strict,
    }


@app.command("version")
def version() -> None:
    """Show the installed version."""
    console.print(f"rag-index-kit {__version__}")


@app.command("init")
def init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config file"),
) -> None:
    """Write a default config file to .rag-index/config.yaml."""
    root: Path = ctx.obj["root"]
    config_path = get_config_path(root)
    if config_path.exists() and not force:
        print_warning(f"Config already exists at {config_path} (use --force to overwrite)")
        raise typer.Exit(code=1)
    save_service_config(root, RagServiceConfig())
    print_success(f"Wrote {config_path}")


@app.command("watch")
def watch(ctx: typer.Context) -> None:
    """Index the workspace, then keep the index in sync until interrupted.

    Examples:
        rag-index watch
        rag-index --root ../project --log-level DEBUG watch
    """
    root, config = _load(ctx)
    if not config.auto_watch_enabled:
        print_warning("auto_watch_enabled is false in config; nothing to watch")
        raise typer.Exit(code=1)

    async def _watch() -> None:
        service = await _open_service(root, config)
        try:
            await service.start_watching()
            print_info(f"Watching {root} (Ctrl+C to stop)")
            await asyncio.Event().wait()
        finally:
            await service.close()

    try:
        _run(_watch())
    except KeyboardInterrupt:
        print_info("Stopped")


@app.command("sync")
def sync(ctx: typer.Context) -> None:
    """Re-index every file and remove stale entries."""
    root, config = _load(ctx)

    async def _sync() -> dict[str, int]:
        service = await _open_service(root, config)
        try:
            return await service.sync_workspace_index()
        finally:
            await service.close()

    result = _run(_sync())
    print_success(
        f"Synced {result['files']} files: {result['upserted']} chunks indexed, "
        f"{result['deleted']} stale entries removed"
    )


@app.command("index-file")
def index_file(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="File to index", exists=True, dir_okay=False),
) -> None:
    """Index a single file."""
    root, config = _load(ctx)

    async def _index() -> Any:
        service = await _open_service(root, config)
        try:
            return await service.index_file(path.resolve())
        finally:
            await service.close()

    result = _run(_index())
    if result.deleted:
        print_info(f"{result.relative_path}: no content, entries removed")
    elif result.failed_batches:
        print_warning(
            f"{result.relative_path}: {result.upserted}/{result.chunks} chunks indexed "
            f"({result.failed_batches} batches failed)"
        )
    else:
        print_success(f"{result.relative_path}: {result.upserted} chunks indexed")


@app.command("query")
def query(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Query text"),
    top_k: int = typer.Option(DEFAULT_QUERY_TOP_K, "--top-k", "-k", help="Number of results"),
    file_path: str | None = typer.Option(
        None, "--file", help="Only search chunks of this workspace-relative file"
    ),
    format_output: str = typer.Option(
        "text", "--format", "-f", help="Output format: 'json' or 'text'"
    ),
) -> None:
    """Search the index for chunks similar to TEXT."""
    root, config = _load(ctx)

    async def _query() -> list[Any]:
        service = await _open_service(root, config)
        try:
            if service.index_manager.provider == VECTOR_DB_IN_MEMORY:
                print_info("In-memory store: indexing workspace before querying")
                await service.sync_workspace_index()
            where = {META_FILE_PATH: file_path} if file_path else None
            return await service.query(text, top_k, where)
        finally:
            await service.close()

    results = _run(_query())
    if format_output == "json":
        payload = [
            {
                "id": r.item.id,
                "score": r.score,
                "file_path": r.item.file_path,
                "start_line": r.item.metadata.get(META_START_LINE),
                "end_line": r.item.metadata.get(META_END_LINE),
                "content": r.item.content,
            }
            for r in results
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not results:
        print_info("No results.")
        return

    for rank, r in enumerate(results, start=1):
        metadata = r.item.metadata
        location = f"{r.item.file_path or r.item.id}:{metadata.get(META_START_LINE, '?')}"
        console.print(
            f"[bold]{rank}.[/bold] [cyan]{escape(location)}[/cyan] [dim](score {r.score:.3f})[/dim]"
        )
        preview = r.item.content.strip().splitlines()[:6]
        for line in preview:
            console.print(f"    {line}", markup=False, highlight=False)


@app.command("status")
def status(ctx: typer.Context) -> None:
    """Show the vector store and configuration in use."""
    root, config = _load(ctx)

    async def _status() -> tuple[Any, dict[str, float]]:
        service = await _open_service(root, config)
        try:
            index_status = await service.get_index_status()
            file_states = await service.index_manager.get_all_file_states()
            return index_status, file_states
        finally:
            await service.close()

    index_status, file_states = _run(_status())

    table = Table(title="RAG Index")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Workspace", str(root))
    table.add_row("Vector DB", config.vector_db.provider)
    table.add_row("Collection", index_status.name)
    table.add_row("Items", str(index_status.count))
    table.add_row("Files", str(len(file_states)))
    table.add_row("Embedding", f"{config.embedding.provider} ({config.embedding.dimensions}d)")
    table.add_row("Max chunk size", str(config.chunking.max_chunk_size))
    console.print(table)
