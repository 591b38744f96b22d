#!/usr/bin/env python3
"""
Ingest configured document sources, then answer questions about them.

Runs one incremental ingestion pass over the local file system (and OneDrive
when a Graph token is configured), prints the pass statistics, and then
starts a question loop that keeps a bounded chat history. With ``--watch``
the local directories are monitored and re-ingested on change.

Configuration comes from ``INCREMENTAL_RAG_*`` environment variables or a
``.env`` file; path specs are read from ``<path_spec_dir>/LocalFileSystem.json``
and ``<path_spec_dir>/OneDriveFileSystem.json``.

Usage:
    python examples/ingest_and_ask.py [--watch] [--skip-ingest]
"""

import asyncio
import logging

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from incremental_rag.config import configure_logging, get_config
from incremental_rag.core.cancellation import CancellationToken
from incremental_rag.core.rag_engine import RAGEngine
from incremental_rag.models import BaseError, IngestionProgress, IngestionResult, OperationCancelledError
from incremental_rag.monitoring import MonitoringCoordinator
from incremental_rag.sources import LocalFileSystemSource, OneDriveSource

logger = logging.getLogger(__name__)

console = Console()


def create_result_table(result: IngestionResult) -> Table:
    """Create a rich table for ingestion statistics."""
    table = Table(title="📊 Ingestion Pass", show_header=True)
    table.add_column("Metric", style="cyan", width=20)
    table.add_column("Value", style="white", width=10)

    table.add_row("➕ New", str(result.new))
    table.add_row("✏️  Modified", str(result.modified))
    table.add_row("⏸️  Unchanged", str(result.unchanged))
    table.add_row("🗑️  Deleted", str(result.deleted))
    table.add_row("∅  Empty", str(result.empty))
    table.add_row("🧩 Chunks indexed", str(result.chunks_indexed))
    table.add_row("⚠️  Failed", str(result.failed))

    if result.sweeps_skipped:
        table.add_row("🔴 Sweeps skipped", ", ".join(result.sweeps_skipped))

    return table


async def run_ingestion(engine: RAGEngine, cancel: CancellationToken) -> IngestionResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Ingesting documents...", total=None)

        def report(update: IngestionProgress) -> None:
            progress.update(task, description=str(update)[:80])

        result = await engine.process_files(cancel=cancel, progress=report)

    console.print(create_result_table(result))
    for failure in result.failures:
        console.print(f"[red]✗[/red] {failure.reference}: {failure.error}")
    for failure in result.source_failures:
        console.print(f"[red]✗[/red] {failure.source_prefix} ({failure.stage}): {failure.error}")
    return result


async def ask_loop(engine: RAGEngine, cancel: CancellationToken) -> None:
    history = engine.new_chat_history()
    console.print(Panel("Ask a question about your documents. Empty line to quit.", style="bold blue"))

    while not cancel.is_cancelled:
        question = (await asyncio.to_thread(console.input, "[bold green]❓ [/bold green]")).strip()
        if not question:
            break

        try:
            answer = await engine.ask(question, history, cancel)
        except BaseError as e:
            console.print(f"[red]Question failed:[/red] {e}")
            continue

        console.print(Panel(answer, title="💡 Answer", border_style="cyan"))


async def main(watch: bool, skip_ingest: bool) -> None:
    config = get_config()
    configure_logging(config)

    local = LocalFileSystemSource(config)
    sources = [local]
    if config.onedrive_access_token:
        sources.append(OneDriveSource(config))

    engine = RAGEngine(config, sources=sources)
    cancel = CancellationToken()
    coordinator = None

    try:
        if not skip_ingest:
            await run_ingestion(engine, cancel)

        if watch:
            coordinator = MonitoringCoordinator(config, engine)
            await coordinator.start_monitoring(local.watch_directories(), initial_pass=False)
            console.print(f"👀 Watching {', '.join(coordinator.get_monitored_directories())}")

        await ask_loop(engine, cancel)

    except OperationCancelledError:
        console.print("[yellow]Cancelled[/yellow]")
    finally:
        cancel.cancel()
        if coordinator is not None:
            coordinator.stop_monitoring()
        await engine.shutdown()


@click.command()
@click.option("--watch", is_flag=True, help="Re-ingest local directories when files change")
@click.option("--skip-ingest", is_flag=True, help="Go straight to questions")
def cli(watch: bool, skip_ingest: bool):
    """Ingest documents and answer questions about them."""
    try:
        asyncio.run(main(watch, skip_ingest))
    except KeyboardInterrupt:
        console.print("\n👋 Bye")


if __name__ == "__main__":
    cli()
