#!/usr/bin/env python3
"""
Demonstration of the docserve live index.

Watches a markdown file or directory and prints every change message a
connected client would receive.

Usage:
    python examples/live_reload_demo.py PATH [--duration SECONDS] [--create-samples]
"""

import asyncio
import logging.config
from pathlib import Path

import click
from docserve.config import DocserveConfig
from docserve.core import Subscription
from docserve.models import FileAddedMessage, FileRemovedMessage, FileRenamedMessage, PongMessage, ReloadMessage
from docserve.monitoring import MonitoringCoordinator
from docserve.service import DocumentService
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

SAMPLE_FILES = {
    "README.md": "# Sample Project\n\nEdit, rename or delete files in this folder.\n",
    "docs/getting-started.md": "---\ntitle: Getting Started\n---\n\n# Getting Started\n\n| a | b |\n|---|---|\n| 1 | 2 |\n",
    "docs/api-reference.md": "# API Reference\n\n```mermaid\ngraph TD; A-->B\n```\n",
}


def create_sample_files(directory: Path) -> None:
    """Create a small tree of markdown files to play with."""
    for relative, content in SAMPLE_FILES.items():
        path = directory / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    console.print(f"✅ [bold green]Created {len(SAMPLE_FILES)} sample files in {directory}[/bold green]")


def describe(message) -> str:
    if isinstance(message, ReloadMessage):
        return "🔄 [cyan]Reload[/cyan]"
    elif isinstance(message, FileAddedMessage):
        return f"➕ [green]FileAdded[/green] {message.name}"
    elif isinstance(message, FileRenamedMessage):
        return f"✏️  [yellow]FileRenamed[/yellow] {message.old_name} → {message.new_name}"
    elif isinstance(message, FileRemovedMessage):
        return f"🗑️  [red]FileRemoved[/red] {message.name}"
    elif isinstance(message, PongMessage):
        return "Pong"
    return str(message)


def create_stats_table(stats: dict) -> Table:
    table = Table(title="📊 Monitoring Statistics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    watcher = stats["file_watcher_status"]
    routing = stats["routing_stats"]
    table.add_row("Raw events received", str(watcher["received_events"]))
    table.add_row("Raw events dropped", str(watcher["dropped_events"]))
    table.add_row("Events routed", str(routing["events_routed"]))
    table.add_row("Rescans run", str(routing["rescans_run"]))
    table.add_row("Messages published", str(stats["bus_stats"]["messages_published"]))
    return table


async def print_messages(subscription: Subscription) -> None:
    async for message in subscription:
        console.print(describe(message))


async def run_demo(target: Path, duration: int) -> None:
    config = DocserveConfig()
    logging.config.dictConfig(config.get_log_config())

    async with MonitoringCoordinator(config) as coordinator:
        shared = await coordinator.start(target)
        service = DocumentService(shared, config)
        documents = await service.list_documents()

        console.print(
            Panel.fit(
                f"📁 Watching: [cyan]{shared.root}[/cyan]\n"
                f"Mode: {'directory' if shared.directory_mode else 'single file'} | "
                f"Documents: {len(documents)} | Default: {documents[0]}\n"
                f"⏱️  Duration: [yellow]{duration}s[/yellow]",
                title="docserve live index",
                border_style="blue",
            )
        )

        with coordinator.bus.subscribe() as subscription:
            printer = asyncio.create_task(print_messages(subscription))
            try:
                await asyncio.sleep(duration)
            finally:
                printer.cancel()
                await asyncio.gather(printer, return_exceptions=True)

        console.print(create_stats_table(coordinator.get_monitoring_stats()))


@click.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--duration", "-t", type=int, default=60, help="Duration to run the demo in seconds")
@click.option("--create-samples", "-s", is_flag=True, help="Create sample markdown files under PATH first")
def main(path: Path, duration: int, create_samples: bool):
    """Watch PATH and print the change messages clients would receive."""
    if create_samples:
        create_sample_files(path)

    try:
        asyncio.run(run_demo(path, duration))
    except KeyboardInterrupt:
        console.print("\n⚡ [yellow]Demo interrupted by user[/yellow]")


if __name__ == "__main__":
    main()
