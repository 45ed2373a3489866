#!/usr/bin/env python3
"""
Command line front end for goalsearch.

Usage:
    gs search "query"             - Search all collections
    gs search "query" -s tasks    - Search one collection
    gs search "query" --open 1    - Open the first result
    gs history                    - Show recent searches
    gs recent                     - Show recently viewed items
    gs clear                      - Forget history and recent items
"""

import asyncio
import time
import webbrowser
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from loguru import logger

from ..core.config import Config
from ..core.controller import SearchController
from ..core.history import HistoryStore, JsonFileStore, RecentItemStore
from ..core.logging_setup import configure_logging
from ..core.models import RenderState, Scope
from ..core.render import relative_time
from ..core.sources import HttpDataSource

console = Console()

SCOPE_CHOICES = [s.value for s in Scope]


class BrowserNavigator:
    """Opens result URLs relative to the web app root."""

    def __init__(self, app_url: str):
        self.app_url = app_url.rstrip('/') + '/'

    def open(self, url: str, new_tab: bool = False) -> None:
        target = urljoin(self.app_url, url.lstrip('/'))
        if new_tab:
            webbrowser.open_new_tab(target)
        else:
            webbrowser.open(target)


class ConsoleNotifier:
    def error(self, message: str) -> None:
        console.print(f"[red]{message}[/red]")


def load_config(config_path: Optional[str]) -> Config:
    config = Config.load(Path(config_path) if config_path else None)
    configure_logging(config)
    return config


def app_root(api_url: str) -> str:
    """Web app root derived from the API base URL (strips /api/...)."""
    marker = api_url.find('/api/')
    return api_url[:marker] if marker != -1 else api_url


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True), help="Config file path")
@click.pass_context
def cli(ctx, config_path: Optional[str]):
    """goalsearch - search projects, goals, tasks and more."""
    ctx.obj = load_config(config_path)


@cli.command()
@click.argument("query")
@click.option("--scope", "-s", type=click.Choice(SCOPE_CHOICES), default="all", help="Collection to search")
@click.option("--open", "open_index", type=int, help="Open the N-th result (1-based)")
@click.option("--new-tab", is_flag=True, help="Open in a new browser tab")
@click.pass_obj
def search(config: Config, query: str, scope: str, open_index: Optional[int], new_tab: bool):
    """Search for QUERY."""
    asyncio.run(run_search(config, query, scope, open_index, new_tab))


async def run_search(
    config: Config,
    query: str,
    scope: str,
    open_index: Optional[int] = None,
    new_tab: bool = False
):
    store = JsonFileStore(config.history.store_path)
    async with HttpDataSource(
        config.api.base_url,
        timeout=config.api.timeout_seconds,
        headers=config.api.headers
    ) as source:
        controller = SearchController(
            source,
            store,
            navigator=BrowserNavigator(app_root(config.api.base_url)),
            notifier=ConsoleNotifier(),
            config=config
        )
        controller.open()
        controller.set_scope(scope)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console
        ) as progress:
            progress.add_task(description="Searching...", total=None)
            view = await controller.search_now(query)

        if view is None or view.state is RenderState.ERROR:
            return
        if view.state is RenderState.NO_RESULTS:
            console.print("[yellow]No results found[/yellow]")
            if view.payload.get('suggest_all_scopes'):
                console.print("Try searching all categories: [cyan]gs search --scope all[/cyan]")
            return

        display_results(view.payload)

        if open_index is not None:
            url = controller.activate(open_index - 1, new_tab=new_tab)
            if url is None:
                console.print(f"[red]No result #{open_index}[/red]")
            else:
                console.print(f"[green]✓[/green] Opened {url}")


def display_results(payload: dict):
    """Show grouped results as one table per group."""
    position = 1
    for group in payload.get("groups", []):
        table = Table(title=f"{group['icon']} {group['name']} ({group['count']})", title_justify="left")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Title", style="cyan", no_wrap=False)
        table.add_column("Score", justify="right")
        table.add_column("Status", style="magenta")
        table.add_column("Details", no_wrap=False)
        table.add_column("URL", style="dim")

        for item in group["items"]:
            table.add_row(
                str(position),
                item["title"],
                str(item["score"]),
                item.get("status") or "",
                " · ".join(item.get("metadata", [])),
                item["url"]
            )
            position += 1

        console.print(table)


@cli.command()
@click.option("--limit", "-l", default=10, help="Max entries")
@click.pass_obj
def history(config: Config, limit: int):
    """Show recent searches."""
    store = HistoryStore(
        JsonFileStore(config.history.store_path),
        config.history.history_key,
        config.history.max_history
    )
    entries = store.load()

    if not entries:
        console.print("[yellow]No search history[/yellow]")
        return

    now_ms = _now_ms()
    table = Table(title="Recent Searches")
    table.add_column("Query", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Title")
    table.add_column("When", justify="right", style="dim")
    for entry in entries[:limit]:
        table.add_row(entry.query, entry.type, entry.title, relative_time(entry.timestamp, now_ms))
    console.print(table)


@cli.command()
@click.option("--limit", "-l", default=10, help="Max entries")
@click.pass_obj
def recent(config: Config, limit: int):
    """Show recently viewed items."""
    store = RecentItemStore(
        JsonFileStore(config.history.store_path),
        config.history.recent_key,
        config.history.max_recent
    )
    items = store.load()

    if not items:
        console.print("[yellow]Nothing viewed yet[/yellow]")
        return

    now_ms = _now_ms()
    table = Table(title="Recently Viewed")
    table.add_column("Title", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("URL", style="dim")
    table.add_column("When", justify="right", style="dim")
    for item in items[:limit]:
        table.add_row(item.title, item.type, item.url, relative_time(item.timestamp, now_ms))
    console.print(table)


@cli.command()
@click.option("--history/--no-history", "clear_history", default=True, help="Clear search history")
@click.option("--recent/--no-recent", "clear_recent", default=True, help="Clear recently viewed items")
@click.pass_obj
def clear(config: Config, clear_history: bool, clear_recent: bool):
    """Forget search history and recently viewed items."""
    store = JsonFileStore(config.history.store_path)
    if clear_history:
        HistoryStore(store, config.history.history_key, config.history.max_history).clear()
        console.print("[green]✓[/green] Search history cleared")
    if clear_recent:
        RecentItemStore(store, config.history.recent_key, config.history.max_recent).clear()
        console.print("[green]✓[/green] Recent items cleared")
    logger.debug(f"Cleared store at {config.history.store_path}")


def _now_ms() -> float:
    return time.time() * 1000


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
