"""
FinSync CLI: command-line interface.

Usage:
    finsync init-db
    finsync sync 0b8c2f1e-... --config finsync.yaml
    finsync report 0b8c2f1e-...
    finsync serve --port 8000
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from finsync import __version__
from finsync.exceptions import FinSyncError, InvalidItemIdError

if TYPE_CHECKING:
    from finsync.models.sync import SyncResult
    from finsync.service import FinSync

T = TypeVar("T")

app = typer.Typer(
    name="finsync",
    help="FinSync: bank accounts, transactions and investments from Pluggy",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)

_CONFIG_OPTION = typer.Option("finsync.yaml", "--config", "-c", help="Path to config file")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]FinSync[/bold] v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output to stderr"),
) -> None:
    """FinSync: sync, store and report on your connected banks."""
    _configure_logging(verbose)


def _load(config: str) -> FinSync:
    from finsync.service import FinSync

    config_path = config if Path(config).exists() else None
    return FinSync.from_config(config_path)


def _run(config: str, action: Callable[[FinSync], Awaitable[T]]) -> T:
    """Run ``action`` against a FinSync instance, closing it afterwards."""

    async def runner() -> T:
        finsync = _load(config)
        try:
            return await action(finsync)
        finally:
            await finsync.aclose()

    try:
        return asyncio.run(runner())
    except InvalidItemIdError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2) from e
    except FinSyncError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _money(value: float | None) -> str:
    return "-" if value is None else f"{value:,.2f}"


@app.command("init-db")
def init_db(config: str = _CONFIG_OPTION) -> None:
    """Create the database tables."""
    _run(config, lambda fs: fs.init_db())
    console.print("[green]✓[/green] Database schema is up to date")


@app.command()
def sync(
    item_id: str = typer.Argument(..., help="Pluggy item id"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Deadline in seconds"),
    config: str = _CONFIG_OPTION,
) -> None:
    """Sync accounts, transactions and investments of one item."""
    console.print(Panel.fit(f"[bold blue]FinSync[/bold blue] sync of {item_id}", subtitle=f"v{__version__}"))

    with console.status("[bold green]Syncing...[/bold green]"):
        result = _run(config, lambda fs: fs.sync_item(item_id, timeout=timeout))

    _display_sync_result(result)
    if not result.success:
        raise typer.Exit(1)


def _display_sync_result(result: SyncResult) -> None:
    table = Table(title="Sync Summary", show_lines=True)
    table.add_column("Records", style="bold")
    table.add_column("Processed", justify="right")
    table.add_column("Saved", justify="right")
    table.add_row("Accounts", str(result.accounts_processed), str(result.accounts_saved))
    table.add_row("Transactions", str(result.transactions_processed), str(result.transactions_saved))
    table.add_row("Investments", str(result.investments_processed), str(result.investments_saved))
    console.print(table)

    if not result.success:
        console.print("[red]✗ Sync failed: no account could be saved[/red]")
    elif result.is_partial:
        console.print(f"[yellow]! Partially synced, {len(result.errors)} errors[/yellow]")
    else:
        console.print("[green]✓[/green] Fully synced")

    for error in result.errors:
        console.print(f"  [dim]-[/dim] {error}")


@app.command()
def accounts(
    item_id: str = typer.Option(None, "--item-id", "-i", help="Only accounts of this item"),
    refresh: bool = typer.Option(False, "--refresh", help="Overlay live balances from Pluggy"),
    config: str = _CONFIG_OPTION,
) -> None:
    """List stored accounts."""
    rows = _run(config, lambda fs: fs.accounts(item_id, refresh=refresh))

    table = Table(title="Accounts")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="bold cyan")
    table.add_column("Subtype")
    table.add_column("Balance", justify="right")
    table.add_column("Credit limit", justify="right")
    table.add_column("Invoice", justify="right")
    for account in rows:
        table.add_row(
            account.id,
            account.name or "",
            account.subtype or "",
            _money(account.balance),
            _money(account.credit_limit),
            _money(account.current_invoice),
        )
    console.print(table)


@app.command()
def transactions(
    item_id: str = typer.Option(None, "--item-id", "-i", help="Only transactions of this item"),
    account_id: str = typer.Option(None, "--account-id", "-a", help="Only transactions of this account"),
    limit: int = typer.Option(50, "--limit", "-n", min=1, help="Maximum rows"),
    config: str = _CONFIG_OPTION,
) -> None:
    """List stored transactions, newest first."""
    rows = _run(config, lambda fs: fs.transactions(item_id, account_id, limit))

    table = Table(title="Transactions")
    table.add_column("Date")
    table.add_column("Description", style="bold")
    table.add_column("Category")
    table.add_column("Amount", justify="right")
    for txn in rows:
        color = "green" if txn.amount >= 0 else "red"
        table.add_row(
            txn.date.isoformat(),
            txn.description or "",
            txn.category or "",
            f"[{color}]{txn.amount:,.2f}[/{color}]",
        )
    console.print(table)


@app.command()
def banks(config: str = _CONFIG_OPTION) -> None:
    """List connected items with their institutions."""
    rows = _run(config, lambda fs: fs.banks())

    table = Table(title="Connected Banks")
    table.add_column("Item", style="dim")
    table.add_column("Bank", style="bold cyan")
    table.add_column("Status")
    table.add_column("Last updated")
    for bank in rows:
        table.add_row(
            bank.item_id,
            bank.bank_name,
            bank.status or "",
            bank.last_updated_at.isoformat() if bank.last_updated_at else "",
        )
    console.print(table)


@app.command()
def connectors(config: str = _CONFIG_OPTION) -> None:
    """Show which target institutions are connected."""
    rows = _run(config, lambda fs: fs.connectors())

    table = Table(title="Target Institutions")
    table.add_column("Institution", style="bold cyan")
    table.add_column("Connector")
    table.add_column("Connected")
    table.add_column("Status")
    table.add_column("Items")
    for entry in rows:
        table.add_row(
            entry.name,
            str(entry.connector_id) if entry.connector_id is not None else "-",
            "✅" if entry.is_connected else "-",
            entry.status or "",
            ", ".join(entry.item_ids),
        )
    console.print(table)


@app.command()
def investments(
    item_id: str = typer.Argument(..., help="Pluggy item id"),
    config: str = _CONFIG_OPTION,
) -> None:
    """List investments of an item."""
    rows = _run(config, lambda fs: fs.investments(item_id))

    table = Table(title="Investments")
    table.add_column("Name", style="bold cyan")
    table.add_column("Kind")
    table.add_column("Balance", justify="right")
    for inv in rows:
        table.add_row(inv.name or inv.id, inv.subtype or "", _money(inv.balance))
    console.print(table)


@app.command()
def report(
    item_id: str = typer.Argument(..., help="Pluggy item id"),
    config: str = _CONFIG_OPTION,
) -> None:
    """Spending by category for an item."""
    result = _run(config, lambda fs: fs.report(item_id))

    since = result.start_date.isoformat() if result.start_date else "n/a"
    table = Table(title=f"Spending by Category (since {since})", show_lines=True)
    table.add_column("Category", style="bold")
    table.add_column("Balance", justify="right")
    for entry in result.category_balances:
        color = "green" if entry.balance >= 0 else "red"
        table.add_row(entry.category, f"[{color}]{entry.balance:,.2f}[/{color}]")
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    config: str = _CONFIG_OPTION,
) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from finsync.api import create_app
    from finsync.config import FinSyncConfig

    config_path = config if Path(config).exists() else None
    try:
        settings = FinSyncConfig.load(config_path)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] invalid configuration: {e}")
        raise typer.Exit(1) from e

    console.print(f"[bold blue]FinSync[/bold blue] API on http://{host}:{port}")
    uvicorn.run(create_app(settings), host=host, port=port)


if __name__ == "__main__":
    app()
