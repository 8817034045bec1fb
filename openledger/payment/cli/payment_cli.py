"""Payment ledger CLI commands.

Record payments, apply credits, inspect customer ledgers and run the
data repair jobs for migrated ledgers.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.orm import sessionmaker

from ...exceptions import OpenLedgerError
from ...storage.database import base as db_base
from ...storage.unit_of_work import unit_of_work_factory
from ...utils.config import get_settings
from ...utils.datetime import today
from ...utils.logging import get_logger
from ..application.notifications import ConsoleNotifier
from ..application.services import (
    CreditLedgerService,
    LedgerService,
    MaintenanceService,
    PaymentAllocationService,
)
from ..domain.enums import PaymentMethod

app = typer.Typer(name="payment", help="💰 Payments, credits & customer ledgers")
console = Console()
logger = get_logger(__name__)

CLI_USER = "cli"


def get_session_factory() -> sessionmaker:
    """Session factory for the configured database, initialized on first use."""
    if db_base.SessionLocal is None:
        settings = get_settings()
        db_base.init_db(settings.database_url, echo=settings.sql_echo)
    return db_base.get_session_factory()


def _uow_factory():
    return unit_of_work_factory(get_session_factory())


def _fail(error: OpenLedgerError) -> None:
    logger.warning("cli_command_failed", error=str(error), error_type=type(error).__name__)
    console.print(f"[red]✗ {error.message}[/]")
    raise typer.Exit(1)


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


# ============================================================================
# COMMAND: record
# ============================================================================


@app.command()
def record(
    customer_id: int = typer.Argument(..., help="Paying customer ID"),
    amount: str = typer.Argument(..., help="Amount received (e.g. 1500.00)"),
    method: str = typer.Option("CASH", "--method", "-m", help="Payment method"),
    payment_date: Optional[datetime] = typer.Option(
        None, "--date", "-d", formats=["%Y-%m-%d"], help="Payment date (default: today)"
    ),
    reference: Optional[str] = typer.Option(None, "--reference", "-r", help="Reference number"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-text notes"),
    invoice: Optional[list[int]] = typer.Option(
        None, "--invoice", "-i", help="Restrict allocation to these invoice IDs"
    ),
    user: str = typer.Option(CLI_USER, "--user", "-u", help="Recording operator ID"),
):
    """💵 Record a payment and allocate it to open invoices.

    Examples:
        # Pay the oldest open invoices first
        openledger payment record 12 7000 --method BANK_TRANSFER

        # Settle only invoices 40 and 41, rest becomes credit
        openledger payment record 12 5000 -i 40 -i 41
    """
    service = PaymentAllocationService(_uow_factory())
    try:
        result = service.process_payment(
            customer_id=customer_id,
            amount=amount,
            payment_method=method,
            payment_date=payment_date.date() if payment_date else today(),
            recorded_by_user_id=user,
            reference_number=reference,
            notes=notes,
            invoice_ids=invoice or None,
        )
    except OpenLedgerError as e:
        _fail(e)

    console.print(f"[green]✓ Payment #{result.payment_id} recorded[/]")

    if result.invoices_updated:
        table = Table(title="📊 Allocation", show_header=True)
        table.add_column("Invoice", style="cyan", justify="right")
        table.add_column("Applied", justify="right", style="bold")
        table.add_column("New balance", justify="right")
        table.add_column("Status")
        for update in result.invoices_updated:
            table.add_row(
                str(update.invoice_id),
                _money(update.amount_applied),
                _money(update.new_balance),
                update.new_status.value,
            )
        console.print(table)

    console.print(f"Paid: [bold]{_money(result.total_paid)}[/]")
    console.print(f"Allocated: [green]{_money(result.total_allocated)}[/]")
    console.print(f"Credit: [yellow]{_money(result.total_credit)}[/]")
    if result.credit_created:
        console.print(
            f"[yellow]💳 Credit #{result.credit_created.credit_id} created "
            f"for {_money(result.credit_created.amount)}[/]"
        )


# ============================================================================
# COMMAND: apply-credit
# ============================================================================


@app.command("apply-credit")
def apply_credit(
    credit_id: int = typer.Argument(..., help="Credit ID"),
    invoice_id: int = typer.Argument(..., help="Invoice ID"),
    amount: str = typer.Argument(..., help="Amount to apply"),
    user: str = typer.Option(CLI_USER, "--user", "-u", help="Applying operator ID"),
):
    """💳 Apply part of a customer credit to an invoice."""
    service = CreditLedgerService(_uow_factory())
    try:
        result = service.apply_credit_to_invoice(
            credit_id=credit_id,
            invoice_id=invoice_id,
            amount=amount,
            applied_by_user_id=user,
        )
    except OpenLedgerError as e:
        _fail(e)

    console.print(
        f"[green]✓ Applied {_money(result.amount_applied)} from credit #{result.credit_id} "
        f"to invoice #{result.invoice_id}[/]"
    )
    console.print(
        f"Credit left: {_money(result.remaining_credit)} ({result.credit_status.value})"
    )
    console.print(
        f"Invoice balance: {_money(result.new_invoice_balance)} "
        f"({result.new_invoice_status.value})"
    )


# ============================================================================
# COMMAND: credits
# ============================================================================


@app.command()
def credits(
    customer_id: int = typer.Argument(..., help="Customer ID"),
    show_all: bool = typer.Option(False, "--all", "-a", help="Include applied/expired credits"),
):
    """🎟️ List a customer's credits."""
    service = CreditLedgerService(_uow_factory())
    try:
        result = service.get_customer_credits(customer_id, active_only=not show_all)
    except OpenLedgerError as e:
        _fail(e)

    if not result.credits:
        console.print("[yellow]No credits found[/]")
        return

    table = Table(title=f"🎟️ Credits of customer {customer_id}", show_header=True)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Reason")
    table.add_column("Amount", justify="right")
    table.add_column("Available", justify="right", style="bold")
    table.add_column("Status")
    for credit in result.credits:
        table.add_row(
            str(credit.id),
            credit.reason.value,
            _money(credit.amount),
            _money(credit.available_amount),
            credit.status.value,
        )
    console.print(table)
    console.print(f"Total available: [green]{_money(result.total_available_credit)}[/]")


# ============================================================================
# COMMAND: history
# ============================================================================


@app.command()
def history(
    customer_id: int = typer.Argument(..., help="Customer ID"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Payments per page"),
):
    """📜 Show a customer's payment history, newest first."""
    service = LedgerService(_uow_factory())
    try:
        result = service.get_customer_payments(
            customer_id, page=page, limit=limit or get_settings().default_page_size
        )
    except OpenLedgerError as e:
        _fail(e)

    if not result.payments:
        console.print("[yellow]No payments found[/]")
        return

    table = Table(
        title=f"📜 Payments (page {result.current_page}/{result.pages}, {result.total} total)",
        show_header=True,
    )
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Date")
    table.add_column("Method")
    table.add_column("Amount", justify="right", style="bold")
    table.add_column("Allocated", justify="right")
    table.add_column("Credit", justify="right")
    table.add_column("Reference")
    for payment in result.payments:
        table.add_row(
            str(payment.id),
            payment.payment_date.isoformat(),
            payment.payment_method.label,
            _money(payment.amount),
            _money(payment.allocated_amount),
            _money(payment.credit_amount),
            payment.reference_number or "-",
        )
    console.print(table)


# ============================================================================
# COMMAND: ledger
# ============================================================================


@app.command()
def ledger(customer_id: int = typer.Argument(..., help="Customer ID")):
    """📒 Show a customer's reconciled ledger."""
    service = LedgerService(_uow_factory())
    try:
        result = service.get_customer_ledger(customer_id)
    except OpenLedgerError as e:
        _fail(e)

    invoices = Table(title="🧾 Invoices", show_header=True)
    invoices.add_column("Number", style="cyan")
    invoices.add_column("Due")
    invoices.add_column("Total", justify="right")
    invoices.add_column("Balance", justify="right", style="bold")
    invoices.add_column("Status")
    for invoice in result.invoices:
        invoices.add_row(
            invoice.number,
            invoice.due_date.isoformat(),
            _money(invoice.total_amount),
            _money(invoice.balance),
            invoice.status.value,
        )
    console.print(invoices)

    summary = result.summary
    table = Table(title="📒 Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Amount", justify="right", style="bold")
    table.add_row("Opening balance", _money(summary.opening_balance))
    table.add_row("Invoiced", _money(summary.total_invoiced))
    table.add_row("Paid", _money(summary.total_paid))
    table.add_row("Credit", f"[yellow]{_money(summary.total_credit)}[/]")
    table.add_row("Balance due", f"[red]{_money(summary.total_balance)}[/]")
    console.print(table)


# ============================================================================
# COMMAND: summary
# ============================================================================


@app.command()
def summary():
    """📈 Show payment totals across all customers."""
    service = LedgerService(_uow_factory())
    result = service.get_payment_summary()

    table = Table(title="📈 Payment Summary", show_header=False)
    table.add_column("Metric", style="cyan", width=20)
    table.add_column("Amount", justify="right", style="bold")
    table.add_row("Received today", _money(result.total_today))
    table.add_row("Received this month", _money(result.total_this_month))
    table.add_row("Outstanding", _money(result.total_outstanding))
    table.add_row("Available credit", _money(result.total_credits))
    console.print(table)


# ============================================================================
# COMMAND: methods
# ============================================================================


@app.command()
def methods():
    """📋 List accepted payment methods."""
    for method in PaymentMethod:
        console.print(f"  • [cyan]{method.value}[/] {method.label}")


# ============================================================================
# REPAIR COMMANDS
# ============================================================================


def _maintenance_service() -> MaintenanceService:
    return MaintenanceService(_uow_factory(), notifier=ConsoleNotifier(console))


@app.command("init-balances")
def init_balances(
    user: str = typer.Option(CLI_USER, "--user", "-u", help="User to notify about progress"),
):
    """🔧 Recompute balances of migrated invoices stuck at zero."""
    try:
        report = _maintenance_service().initialize_invoice_balances(notify_user_id=user)
    except OpenLedgerError as e:
        _fail(e)

    console.print(
        f"[green]✓ Scanned {report.scanned} invoices: "
        f"{report.fixed} fixed, {report.skipped} unchanged[/]"
    )


@app.command("fix-allocations")
def fix_allocations(
    user: str = typer.Option(CLI_USER, "--user", "-u", help="User to notify about progress"),
):
    """🔧 Rebuild allocated/credit amounts of completed payments."""
    try:
        report = _maintenance_service().fix_payment_allocations(notify_user_id=user)
    except OpenLedgerError as e:
        _fail(e)

    console.print(
        f"[green]✓ Scanned {report.scanned} payments: "
        f"{report.fixed} fixed, {report.skipped} unchanged[/]"
    )
