"""
Command-line interface for quotesync.
"""

import asyncio
import logging
import signal
from contextlib import suppress
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config
from .errors import QuoteSyncError
from .models import ALL_CATEGORIES
from .state import StateDatabase
from .store import QuoteStore
from .sync.notifications import Notification, NotificationKind
from .sync.remote import HttpRemoteSource
from .sync.scheduler import CycleReport, SyncScheduler
from .transfer import read_import_file, write_export_file

console = Console()

NOTIFICATION_STYLES = {
    NotificationKind.INFO: "cyan",
    NotificationKind.SUCCESS: "green",
    NotificationKind.WARNING: "yellow",
    NotificationKind.ERROR: "red",
}


def setup_logging(verbose: bool = False, log_file: Path | None = None):
    """Route log records to the terminal (and optionally a file)."""
    handlers: list[logging.Handler] = [
        RichHandler(console=Console(stderr=True), show_path=False),
    ]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def render_notification(notification: Notification):
    style = NOTIFICATION_STYLES[notification.kind]
    console.print(f"[{style}]{notification.message}[/{style}]")


def _open_store(ctx: click.Context) -> QuoteStore:
    if "store" not in ctx.obj:
        db = StateDatabase(ctx.obj["state_db"])
        ctx.obj["store"] = QuoteStore.open(db)
    return ctx.obj["store"]


def _quote_table(records, title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Quote")
    table.add_column("Category", style="cyan")
    for record in records:
        table.add_row(record.id, record.text, record.category)
    return table


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--state-db',
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help='Path to the local state database (default: $QUOTESYNC_STATE_DB)'
)
@click.option(
    '--verbose', '-v',
    is_flag=True,
    help='Verbose output'
)
@click.pass_context
def main(ctx: click.Context, state_db: Path | None, verbose: bool):
    """quotesync - keep a local quote collection in sync with a server"""
    ctx.ensure_object(dict)
    ctx.obj["state_db"] = state_db or config.get_state_db_path()
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@main.command()
@click.argument('text')
@click.argument('category')
@click.pass_context
def add(ctx: click.Context, text: str, category: str):
    """Add a quote"""
    try:
        store = _open_store(ctx)
        record = store.add(text, category)
    except QuoteSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    console.print(f"[green]Quote added successfully![/green] Total quotes: {len(store)}")
    console.print(f"ID: [dim]{record.id}[/dim]")


@main.command()
@click.argument('quote_id')
@click.pass_context
def remove(ctx: click.Context, quote_id: str):
    """Remove a quote by ID"""
    try:
        removed = _open_store(ctx).remove(quote_id)
    except QuoteSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    if removed:
        console.print(f"[green]Removed quote {quote_id}[/green]")
    else:
        console.print(f"[yellow]No quote with ID {quote_id}[/yellow]")


@main.command(name='list')
@click.option(
    '--category', '-c',
    default=None,
    help="Only show this category ('all' clears the saved filter)"
)
@click.pass_context
def list_quotes(ctx: click.Context, category: str | None):
    """List quotes, remembering the last category filter"""
    try:
        store = _open_store(ctx)
        if category is not None:
            store.set_filter(None if category.strip().lower() == ALL_CATEGORIES else category)
        selected = store.last_filter
        records = store.filter(selected)
    except QuoteSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    title = f"Quotes ({selected})" if selected else "Quotes"
    if not records:
        console.print("[yellow]No quotes available in this category. Add one![/yellow]")
        return
    console.print(_quote_table(records, title))


@main.command()
@click.option('--category', '-c', default=None, help='Pick from this category')
@click.pass_context
def random(ctx: click.Context, category: str | None):
    """Show a random quote"""
    try:
        store = _open_store(ctx)
        record = store.random_quote(category if category is not None else store.last_filter)
    except QuoteSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    if record is None:
        console.print("[yellow]No quotes available in this category. Add one![/yellow]")
        return
    console.print(f"[bold]“{record.text}”[/bold]")
    console.print(f"[cyan]{record.category}[/cyan]")


@main.command()
@click.pass_context
def categories(ctx: click.Context):
    """List categories with quote counts"""
    try:
        store = _open_store(ctx)
    except QuoteSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    table = Table(title="Categories")
    table.add_column("Category", style="cyan")
    table.add_column("Quotes", style="green")
    for name in store.categories():
        table.add_row(name, str(len(store.filter(name))))
    console.print(table)


@main.command(name='import')
@click.argument('file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_quotes(ctx: click.Context, file: Path):
    """Import quotes from a JSON file"""
    try:
        records = read_import_file(file)
        added = _open_store(ctx).import_records(records)
    except QuoteSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    console.print(f"[green]Imported {len(added)} quote(s) from {file}[/green]")


@main.command(name='export')
@click.argument('file', type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def export_quotes(ctx: click.Context, file: Path):
    """Export all quotes to a JSON file"""
    try:
        store = _open_store(ctx)
        write_export_file(list(store.all()), file)
    except (QuoteSyncError, OSError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    console.print(f"[green]Exported {len(store)} quote(s) to {file}[/green]")


@main.command()
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def clear(ctx: click.Context, yes: bool):
    """Delete every quote and reset sync state"""
    if not yes:
        click.confirm("Delete all quotes and sync state?", abort=True)
    try:
        _open_store(ctx).clear()
    except QuoteSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    console.print("[green]All quotes cleared[/green]")


async def _run_sync(
    store: QuoteStore, once: bool, interval: float, timeout: float
) -> CycleReport | None:
    remote = HttpRemoteSource(
        config.get_remote_url(),
        default_category=config.get_remote_category(),
        timeout=timeout,
    )
    scheduler = SyncScheduler(store, remote, interval=interval, sink=render_notification)
    try:
        if once:
            return await scheduler.trigger()

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not available on Windows; Ctrl-C falls back to KeyboardInterrupt
            with suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop.set)

        await scheduler.start()
        await stop.wait()
        return scheduler.history[-1] if scheduler.history else None
    finally:
        await scheduler.shutdown()
        await remote.aclose()


@main.command()
@click.option('--once', is_flag=True, help='Run a single sync cycle and exit')
@click.option(
    '--interval', '-i',
    type=float,
    default=None,
    help='Seconds between sync cycles (default: $QUOTESYNC_SYNC_INTERVAL or 30)'
)
@click.pass_context
def sync(ctx: click.Context, once: bool, interval: float | None):
    """Sync with the remote server

    Runs once immediately, then every --interval seconds until interrupted.

    Conflict resolution: server wins (if a quote differs locally and on the
    server, the server version is kept).
    """
    try:
        if interval is None:
            interval = config.get_sync_interval()
        elif interval <= 0:
            raise ValueError(f"--interval must be positive, got {interval:g}")
        timeout = config.get_remote_timeout()
        store = _open_store(ctx)
    except (QuoteSyncError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    setup_logging(ctx.obj["verbose"], log_file=config.get_log_dir() / "sync.log")

    console.print("[bold]quotesync[/bold]")
    console.print(f"Remote: [cyan]{config.get_remote_url()}[/cyan]")
    if not once:
        console.print(f"Syncing every {interval:g}s, press Ctrl-C to stop")

    try:
        report = asyncio.run(_run_sync(store, once, interval, timeout))
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        return

    if once and report is not None:
        table = Table(title="Sync Results")
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="green")
        table.add_row("New from server", str(report.added))
        table.add_row("Conflicts (server won)", str(report.conflicts))
        table.add_row("Pushed to server", str(report.pushed))
        table.add_row("Total quotes", str(len(store)))
        console.print(table)
        if not report.success:
            raise SystemExit(1)


@main.command()
@click.pass_context
def status(ctx: click.Context):
    """Show collection and sync status"""
    try:
        store = _open_store(ctx)
    except QuoteSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()

    stats = store.stats()
    state = store.sync_state

    table = Table(title="quotesync Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total quotes", str(stats["total_quotes"]))
    table.add_row("Total categories", str(stats["total_categories"]))
    table.add_row("Category filter", state.last_filter or "all")
    if state.last_synced_at is not None:
        synced = datetime.fromtimestamp(state.last_synced_at / 1000).isoformat(timespec="seconds")
    else:
        synced = "never"
    table.add_row("Last synced", synced)
    table.add_row("State DB", str(ctx.obj["state_db"]))
    console.print(table)


@main.command(name='config')
def show_config():
    """Show effective configuration"""
    try:
        config.print_config_summary()
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()


if __name__ == "__main__":
    main()
