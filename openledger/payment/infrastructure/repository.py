"""Repository implementations for the payment ledger.

Provides data access abstraction following the Repository pattern. Every
repository works on a session owned by a unit of work; repositories flush
but never commit.
"""

from collections.abc import Collection
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Literal

from sqlalchemy import BigInteger, Select, cast, func, or_, select
from sqlalchemy.orm import Session

from ...storage.database.models import Customer, Invoice, InvoiceStatus
from ...utils.money import CENT
from ..domain.enums import CreditStatus, PaymentStatus
from ..domain.models import Credit, CreditApplication, CustomerPayment, PaymentApplication

InvoiceOrder = Literal["allocation", "newest"]


def _sum_cents(column):
    """SUM of a money column in whole cents, rounded per row before adding."""
    return func.coalesce(func.sum(cast(func.round(column * 100), BigInteger)), 0)


def _as_money(cents) -> Decimal:
    """Integer-cent aggregate back to a two-place Decimal."""
    return Decimal(int(cents)) * CENT


@dataclass(frozen=True)
class InvoiceFilter:
    """Typed criteria for invoice queries.

    Attributes:
        customer_id: Restrict to one customer
        statuses: Allowed statuses (None = any)
        positive_balance_only: Only invoices with something outstanding
        invoice_ids: Restrict to this subset (None = no restriction)
        order: "allocation" (due date, issue date, id) or "newest"
    """

    customer_id: int | None = None
    statuses: Collection[InvoiceStatus] | None = None
    positive_balance_only: bool = False
    invoice_ids: Collection[int] | None = None
    order: InvoiceOrder = "allocation"

    @classmethod
    def open_for_customer(
        cls, customer_id: int, invoice_ids: Collection[int] | None = None
    ) -> "InvoiceFilter":
        """Invoices a payment from ``customer_id`` may settle."""
        return cls(
            customer_id=customer_id,
            statuses=(InvoiceStatus.OPEN, InvoiceStatus.PARTIAL),
            positive_balance_only=True,
            invoice_ids=invoice_ids,
        )

    def apply(self, stmt: Select) -> Select:
        """Add this filter's WHERE and ORDER BY clauses to ``stmt``."""
        if self.customer_id is not None:
            stmt = stmt.where(Invoice.customer_id == self.customer_id)
        if self.statuses is not None:
            stmt = stmt.where(Invoice.status.in_(list(self.statuses)))
        if self.positive_balance_only:
            stmt = stmt.where(Invoice.balance > 0)
        if self.invoice_ids is not None:
            stmt = stmt.where(Invoice.id.in_(list(self.invoice_ids)))

        if self.order == "newest":
            return stmt.order_by(Invoice.date.desc(), Invoice.id.desc())
        return stmt.order_by(Invoice.due_date.asc(), Invoice.date.asc(), Invoice.id.asc())


class CustomerRepository:
    """Repository for Customer entities."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, customer_id: int) -> Customer | None:
        """Find customer by ID."""
        return self.session.get(Customer, customer_id)

    def add(self, customer: Customer) -> Customer:
        """Stage a new customer and assign its ID."""
        self.session.add(customer)
        self.session.flush()
        return customer


class InvoiceRepository:
    """Repository for Invoice entities."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, invoice_id: int, *, for_update: bool = False) -> Invoice | None:
        """Find invoice by ID, optionally taking a row lock."""
        stmt = select(Invoice).where(Invoice.id == invoice_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def find(self, criteria: InvoiceFilter, *, for_update: bool = False) -> list[Invoice]:
        """Find invoices matching ``criteria``."""
        stmt = criteria.apply(select(Invoice))
        if for_update:
            stmt = stmt.with_for_update()
        return list(self.session.execute(stmt).scalars())

    def find_needing_balance_init(self) -> list[Invoice]:
        """Invoices whose balance or status may predate the ledger.

        Non-positive balances that may never have been initialized, plus
        every invoice still carrying the legacy COMPLETED status.
        """
        stmt = (
            select(Invoice)
            .where(
                or_(Invoice.balance <= 0, Invoice.status == InvoiceStatus.COMPLETED),
                Invoice.status.not_in([InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED]),
            )
            .order_by(Invoice.id)
            .with_for_update()
        )
        return list(self.session.execute(stmt).scalars())

    def total_invoiced(self, customer_id: int) -> Decimal:
        """Sum of invoice totals for a customer."""
        stmt = select(_sum_cents(Invoice.total_amount)).where(
            Invoice.customer_id == customer_id
        )
        return _as_money(self.session.execute(stmt).scalar_one())

    def total_outstanding(self) -> Decimal:
        """Sum of positive balances across all customers."""
        stmt = select(_sum_cents(Invoice.balance)).where(Invoice.balance > 0)
        return _as_money(self.session.execute(stmt).scalar_one())

    def applied_totals(self, invoice_id: int) -> tuple[Decimal, Decimal]:
        """Sums of payment applications and credit applications for one invoice."""
        paid = select(_sum_cents(PaymentApplication.amount_applied)).where(
            PaymentApplication.invoice_id == invoice_id
        )
        credited = select(_sum_cents(CreditApplication.amount_applied)).where(
            CreditApplication.invoice_id == invoice_id
        )
        return (
            _as_money(self.session.execute(paid).scalar_one()),
            _as_money(self.session.execute(credited).scalar_one()),
        )


class PaymentRepository:
    """Repository for CustomerPayment and PaymentApplication entities."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, payment_id: int) -> CustomerPayment | None:
        """Find payment by ID."""
        return self.session.get(CustomerPayment, payment_id)

    def add(self, payment: CustomerPayment) -> CustomerPayment:
        """Stage a new payment and assign its ID."""
        self.session.add(payment)
        self.session.flush()
        return payment

    def add_application(self, application: PaymentApplication) -> PaymentApplication:
        """Record a payment application (append-only)."""
        self.session.add(application)
        self.session.flush()
        return application

    def list_for_customer(
        self, customer_id: int, *, offset: int = 0, limit: int | None = None
    ) -> list[CustomerPayment]:
        """Payments of one customer, newest payment date first."""
        stmt = (
            select(CustomerPayment)
            .where(CustomerPayment.customer_id == customer_id)
            .order_by(CustomerPayment.payment_date.desc(), CustomerPayment.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def count_for_customer(self, customer_id: int) -> int:
        """Number of payments recorded for one customer."""
        stmt = select(func.count(CustomerPayment.id)).where(
            CustomerPayment.customer_id == customer_id
        )
        return int(self.session.execute(stmt).scalar_one())

    def total_completed_for_customer(self, customer_id: int) -> Decimal:
        """Sum of COMPLETED payment amounts for one customer, allocated or not."""
        stmt = select(_sum_cents(CustomerPayment.amount)).where(
            CustomerPayment.customer_id == customer_id,
            CustomerPayment.status == PaymentStatus.COMPLETED,
        )
        return _as_money(self.session.execute(stmt).scalar_one())

    def total_between(self, start: date, end: date) -> Decimal:
        """Sum of payment amounts dated within ``[start, end]``."""
        stmt = select(_sum_cents(CustomerPayment.amount)).where(
            CustomerPayment.payment_date >= start,
            CustomerPayment.payment_date <= end,
        )
        return _as_money(self.session.execute(stmt).scalar_one())

    def find_completed(self) -> list[CustomerPayment]:
        """All COMPLETED payments, oldest first, locked for repair."""
        stmt = (
            select(CustomerPayment)
            .where(CustomerPayment.status == PaymentStatus.COMPLETED)
            .order_by(CustomerPayment.id)
            .with_for_update()
        )
        return list(self.session.execute(stmt).scalars())

    def application_stats(self, payment_id: int) -> tuple[int, Decimal]:
        """Count and sum of applications recorded for one payment."""
        stmt = select(
            func.count(PaymentApplication.id),
            _sum_cents(PaymentApplication.amount_applied),
        ).where(PaymentApplication.payment_id == payment_id)
        count, total = self.session.execute(stmt).one()
        return int(count), _as_money(total)


class CreditRepository:
    """Repository for Credit and CreditApplication entities."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, credit_id: int, *, for_update: bool = False) -> Credit | None:
        """Find credit by ID, optionally taking a row lock."""
        stmt = select(Credit).where(Credit.id == credit_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def add(self, credit: Credit) -> Credit:
        """Stage a new credit and assign its ID."""
        self.session.add(credit)
        self.session.flush()
        return credit

    def add_application(self, application: CreditApplication) -> CreditApplication:
        """Record a credit application (append-only)."""
        self.session.add(application)
        self.session.flush()
        return application

    def list_for_customer(self, customer_id: int, *, active_only: bool = False) -> list[Credit]:
        """Credits of one customer, newest first.

        With ``active_only`` only ACTIVE credits with a positive available
        amount are returned.
        """
        stmt = select(Credit).where(Credit.customer_id == customer_id)
        if active_only:
            stmt = stmt.where(Credit.status == CreditStatus.ACTIVE, Credit.available_amount > 0)
        stmt = stmt.order_by(Credit.created_at.desc(), Credit.id.desc())
        return list(self.session.execute(stmt).scalars())

    def total_available(self, customer_id: int | None = None) -> Decimal:
        """Spendable credit of one customer, or of everyone when ``customer_id`` is None."""
        stmt = select(_sum_cents(Credit.available_amount)).where(
            Credit.status == CreditStatus.ACTIVE,
            Credit.available_amount > 0,
        )
        if customer_id is not None:
            stmt = stmt.where(Credit.customer_id == customer_id)
        return _as_money(self.session.execute(stmt).scalar_one())

    def total_sourced_from(self, payment_id: int) -> Decimal:
        """Sum of credits created from one payment."""
        stmt = select(_sum_cents(Credit.amount)).where(
            Credit.source_payment_id == payment_id
        )
        return _as_money(self.session.execute(stmt).scalar_one())

