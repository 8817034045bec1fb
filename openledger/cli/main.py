"""Main CLI entry point for OpenLedger."""

import typer
from rich.console import Console

from openledger import __version__
from openledger.storage.database.base import init_db
from openledger.utils.config import get_settings
from openledger.utils.logging import configure_logging

# Payment CLI lives in the payment package to keep the top-level commands lean.
from ..payment.cli import app as payment_app

app = typer.Typer(
    name="openledger",
    help="📒 Payment allocation & customer credit ledger",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]OpenLedger[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """
    OpenLedger - customer payments, invoice settlement and credits.
    """
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)


@app.command("init-db")
def init_database() -> None:
    """🗄️ Create the database schema."""
    settings = get_settings()
    init_db(settings.database_url, echo=settings.sql_echo)
    console.print("[green]✓ Database ready[/]")


app.add_typer(payment_app, name="payment", help="💰 Payments, credits & customer ledgers")


if __name__ == "__main__":
    app()
