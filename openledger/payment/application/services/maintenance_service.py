"""Data repair jobs for migrated ledgers.

Both jobs run in a single unit of work: either every repaired row is
committed or none is. Progress goes to an optional ``Notifier``.
"""

from collections.abc import Callable, Sequence
from decimal import Decimal
from typing import TypeVar

from ....storage.database.models import Invoice, InvoiceStatus, status_for_balance
from ....storage.unit_of_work import UnitOfWorkFactory
from ....utils.config import get_settings
from ....utils.logging import LogPerformance, get_logger
from ....utils.money import ZERO
from ...domain.enums import NotificationKind
from ...domain.models import CustomerPayment
from ...domain.value_objects import RepairReport
from ..notifications import Notifier

logger = get_logger(__name__)

T = TypeVar("T")


def recompute_invoice_balance(
    invoice: Invoice, paid: Decimal, credited: Decimal
) -> tuple[Decimal, InvoiceStatus]:
    """Balance and status an invoice should carry given its applications.

    ``balance = total_amount - paid - credited``, floored at zero. A legacy
    COMPLETED invoice with something outstanding reopens.
    """
    total = Decimal(invoice.total_amount)
    balance = max(total - paid - credited, ZERO)
    return balance, status_for_balance(balance, total)


class MaintenanceService:
    """One-off repair operations over invoices and payments."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        notifier: Notifier | None = None,
        notify_every: int | None = None,
    ):
        """Initialize the maintenance service.

        Args:
            uow_factory: Callable returning a fresh unit of work
            notifier: Sink for progress notifications (None = silent)
            notify_every: Progress notification interval (defaults to settings)
        """
        self.uow_factory = uow_factory
        self.notifier = notifier
        self.notify_every = notify_every or get_settings().notify_every

    def initialize_invoice_balances(self, notify_user_id: str | None = None) -> RepairReport:
        """Recompute balances of invoices stuck at zero (or below).

        For every non-DRAFT, non-CANCELLED invoice with ``balance <= 0`` or
        the legacy COMPLETED status:
        ``balance = total_amount - payment applications - credit applications``.
        Only rows whose balance or status actually changes are written.
        """

        def repair(uow, invoice: Invoice) -> bool:
            paid, credited = uow.invoices.applied_totals(invoice.id)
            balance, status = recompute_invoice_balance(invoice, paid, credited)
            if balance == Decimal(invoice.balance) and status == invoice.status:
                return False
            logger.info(
                "invoice_balance_repaired",
                invoice_id=invoice.id,
                number=invoice.number,
                old_balance=Decimal(invoice.balance),
                new_balance=balance,
                old_status=invoice.status.value,
                new_status=status.value,
            )
            invoice.balance = balance
            invoice.status = status
            return True

        return self._run(
            job="invoice_balance_init",
            title="Invoice Balance Initialization",
            load=lambda uow: uow.invoices.find_needing_balance_init(),
            repair=repair,
            notify_user_id=notify_user_id,
        )

    def fix_payment_allocations(self, notify_user_id: str | None = None) -> RepairReport:
        """Rebuild ``allocated_amount`` and ``credit_amount`` of COMPLETED payments.

        A payment with neither applications nor sourced credits is a legacy
        import and counts as fully allocated.
        """

        def repair(uow, payment: CustomerPayment) -> bool:
            count, allocated = uow.payments.application_stats(payment.id)
            credited = uow.credits.total_sourced_from(payment.id)
            if count == 0 and credited == ZERO:
                allocated = Decimal(payment.amount)

            if allocated == Decimal(payment.allocated_amount) and credited == Decimal(
                payment.credit_amount
            ):
                return False

            logger.info(
                "payment_allocation_repaired",
                payment_id=payment.id,
                allocated_amount=allocated,
                credit_amount=credited,
            )
            payment.allocated_amount = allocated
            payment.credit_amount = credited
            return True

        return self._run(
            job="payment_allocation_fix",
            title="Payment Allocation Fix",
            load=lambda uow: uow.payments.find_completed(),
            repair=repair,
            notify_user_id=notify_user_id,
        )

    def _run(
        self,
        *,
        job: str,
        title: str,
        load: Callable[..., Sequence[T]],
        repair: Callable[..., bool],
        notify_user_id: str | None,
    ) -> RepairReport:
        self._notify(notify_user_id, NotificationKind.PROGRESS, title, "Scanning records...", 0)

        fixed = skipped = 0
        try:
            with LogPerformance(job, logger), self.uow_factory() as uow:
                rows = load(uow)
                total = len(rows)
                self._notify(
                    notify_user_id,
                    NotificationKind.PROGRESS,
                    title,
                    f"Found {total} records to process",
                    10,
                )

                for processed, row in enumerate(rows, start=1):
                    if repair(uow, row):
                        fixed += 1
                    else:
                        skipped += 1

                    if processed % self.notify_every == 0:
                        self._notify(
                            notify_user_id,
                            NotificationKind.PROGRESS,
                            title,
                            f"Processed {processed}/{total} records",
                            10 + (processed * 80) // total,
                        )

                uow.commit()
        except Exception as e:
            self._notify(
                notify_user_id,
                NotificationKind.ERROR,
                title,
                f"Failed: {e}",
            )
            raise

        report = RepairReport(scanned=fixed + skipped, fixed=fixed, skipped=skipped)
        logger.info(f"{job}_finished", scanned=report.scanned, fixed=fixed, skipped=skipped)
        self._notify(
            notify_user_id,
            NotificationKind.SUCCESS,
            title,
            f"Fixed {fixed} records, {skipped} already correct",
            100,
        )
        return report

    def _notify(
        self,
        user_id: str | None,
        kind: NotificationKind,
        title: str,
        message: str,
        progress: int | None = None,
    ) -> None:
        if self.notifier is None or user_id is None:
            return
        self.notifier.notify(user_id, kind, title, message, progress)
