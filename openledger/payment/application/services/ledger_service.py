"""Ledger reconciliation and payment history (read side).

Nothing here writes: every call opens a unit of work, reads, and closes it
without committing.
"""

from datetime import date
from math import ceil

from ....exceptions import RecordNotFoundError, ValidationError
from ....storage.unit_of_work import SqlAlchemyUnitOfWork, UnitOfWorkFactory
from ....utils.config import get_settings
from ....utils.datetime import month_bounds, today as utc_today
from ....utils.logging import get_logger
from ....utils.money import ZERO
from ...domain.value_objects import (
    CreditView,
    CustomerLedger,
    InvoiceView,
    LedgerSummary,
    PaymentHistoryPage,
    PaymentSummary,
    PaymentView,
)
from ...infrastructure.repository import InvoiceFilter

logger = get_logger(__name__)


def _require_customer(uow: SqlAlchemyUnitOfWork, customer_id: int):
    customer = uow.customers.get(customer_id)
    if customer is None:
        raise RecordNotFoundError(
            f"Customer {customer_id} not found", entity_type="Customer", entity_id=customer_id
        )
    return customer


class LedgerService:
    """Read-side queries over a customer's account."""

    def __init__(self, uow_factory: UnitOfWorkFactory, max_page_size: int | None = None):
        """Initialize the ledger service.

        Args:
            uow_factory: Callable returning a fresh unit of work
            max_page_size: Upper bound for ``limit`` (defaults to settings)
        """
        self.uow_factory = uow_factory
        self.max_page_size = max_page_size or get_settings().max_page_size

    def get_customer_ledger(self, customer_id: int) -> CustomerLedger:
        """Return a customer's invoices, payments, credits and reconciled summary.

        The summary is computed at customer level from invoice totals and
        COMPLETED payment amounts, independently of the allocation rows, so
        it also holds for imported payments that were never allocated:

            actual = opening_balance + total_invoiced - total_paid
            total_balance = max(actual, 0)
            total_credit = max(-actual, 0)

        Raises:
            RecordNotFoundError: If the customer does not exist
        """
        with self.uow_factory() as uow:
            customer = _require_customer(uow, customer_id)
            opening_balance = customer.opening_balance

            invoices = tuple(
                InvoiceView.from_model(invoice)
                for invoice in uow.invoices.find(
                    InvoiceFilter(customer_id=customer_id, order="newest")
                )
            )
            payments = tuple(
                PaymentView.from_model(payment)
                for payment in uow.payments.list_for_customer(customer_id)
            )
            credits = tuple(
                CreditView.from_model(credit)
                for credit in uow.credits.list_for_customer(customer_id)
            )

            total_invoiced = uow.invoices.total_invoiced(customer_id)
            total_paid = uow.payments.total_completed_for_customer(customer_id)

        actual = opening_balance + total_invoiced - total_paid
        summary = LedgerSummary(
            opening_balance=opening_balance,
            total_invoiced=total_invoiced,
            total_paid=total_paid,
            total_credit=-actual if actual < ZERO else ZERO,
            total_balance=actual if actual > ZERO else ZERO,
        )
        logger.debug("ledger_reconciled", customer_id=customer_id, **summary.to_dict())
        return CustomerLedger(invoices=invoices, payments=payments, credits=credits, summary=summary)

    def get_customer_payments(
        self, customer_id: int, page: int = 1, limit: int = 20
    ) -> PaymentHistoryPage:
        """Return one page of a customer's payments, newest payment date first.

        Raises:
            ValidationError: If page < 1 or limit is outside 1..max_page_size
            RecordNotFoundError: If the customer does not exist
        """
        if page < 1:
            raise ValidationError("Page must be >= 1", field="page", value=page, constraint=">=1")
        if not 1 <= limit <= self.max_page_size:
            raise ValidationError(
                f"Limit must be between 1 and {self.max_page_size}",
                field="limit",
                value=limit,
                constraint=f"1..{self.max_page_size}",
            )

        with self.uow_factory() as uow:
            _require_customer(uow, customer_id)
            total = uow.payments.count_for_customer(customer_id)
            payments = tuple(
                PaymentView.from_model(payment)
                for payment in uow.payments.list_for_customer(
                    customer_id, offset=(page - 1) * limit, limit=limit
                )
            )

        return PaymentHistoryPage(
            payments=payments,
            total=total,
            pages=ceil(total / limit),
            current_page=page,
            limit=limit,
        )

    def get_payment_summary(self, today: date | None = None) -> PaymentSummary:
        """Totals across all customers for dashboards.

        Args:
            today: Reference day (defaults to the current UTC date)
        """
        day = today or utc_today()
        month_start, month_end = month_bounds(day)

        with self.uow_factory() as uow:
            return PaymentSummary(
                total_today=uow.payments.total_between(day, day),
                total_this_month=uow.payments.total_between(month_start, month_end),
                total_outstanding=uow.invoices.total_outstanding(),
                total_credits=uow.credits.total_available(),
            )
