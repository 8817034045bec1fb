"""Domain value objects returned by the payment services.

Value Objects in DDD:
- Immutable (frozen dataclasses)
- No identity (equality based on attributes)
- Describe results, not entities
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from ...storage.database.models import InvoiceStatus
from .enums import CreditReason, CreditStatus, PaymentMethod, PaymentStatus

if TYPE_CHECKING:
    from ...storage.database.models import Invoice
    from .models import Credit, CustomerPayment


@dataclass(frozen=True)
class InvoiceUpdate:
    """Effect of one allocation or credit application on an invoice."""

    invoice_id: int
    amount_applied: Decimal
    new_balance: Decimal
    new_status: InvoiceStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoice_id": self.invoice_id,
            "amount_applied": str(self.amount_applied),
            "new_balance": str(self.new_balance),
            "new_status": self.new_status.value,
        }


@dataclass(frozen=True)
class CreditReference:
    """Credit created from an overpayment."""

    credit_id: int
    amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"credit_id": self.credit_id, "amount": str(self.amount)}


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of processing one payment.

    ``total_allocated + total_credit == total_paid`` always holds.
    """

    payment_id: int
    total_paid: Decimal
    total_allocated: Decimal
    total_credit: Decimal
    invoices_updated: tuple[InvoiceUpdate, ...]
    credit_created: CreditReference | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "payment_id": self.payment_id,
            "total_paid": str(self.total_paid),
            "total_allocated": str(self.total_allocated),
            "total_credit": str(self.total_credit),
            "invoices_updated": [update.to_dict() for update in self.invoices_updated],
            "credit_created": self.credit_created.to_dict() if self.credit_created else None,
        }


@dataclass(frozen=True)
class CreditApplicationResult:
    """Outcome of applying a credit to an invoice."""

    credit_id: int
    invoice_id: int
    amount_applied: Decimal
    remaining_credit: Decimal
    credit_status: CreditStatus
    new_invoice_balance: Decimal
    new_invoice_status: InvoiceStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "credit_id": self.credit_id,
            "invoice_id": self.invoice_id,
            "amount_applied": str(self.amount_applied),
            "remaining_credit": str(self.remaining_credit),
            "credit_status": self.credit_status.value,
            "new_invoice_balance": str(self.new_invoice_balance),
            "new_invoice_status": self.new_invoice_status.value,
        }


@dataclass(frozen=True)
class InvoiceView:
    """Read-only snapshot of an invoice for ledger views."""

    id: int
    number: str
    date: date
    due_date: date
    total_amount: Decimal
    balance: Decimal
    status: InvoiceStatus

    @classmethod
    def from_model(cls, invoice: "Invoice") -> "InvoiceView":
        return cls(
            id=invoice.id,
            number=invoice.number,
            date=invoice.date,
            due_date=invoice.due_date,
            total_amount=invoice.total_amount,
            balance=invoice.balance,
            status=invoice.status,
        )


@dataclass(frozen=True)
class PaymentView:
    """Read-only snapshot of a customer payment."""

    id: int
    customer_id: int
    amount: Decimal
    allocated_amount: Decimal
    credit_amount: Decimal
    payment_method: PaymentMethod
    payment_date: date
    reference_number: str | None
    status: PaymentStatus

    @classmethod
    def from_model(cls, payment: "CustomerPayment") -> "PaymentView":
        return cls(
            id=payment.id,
            customer_id=payment.customer_id,
            amount=payment.amount,
            allocated_amount=payment.allocated_amount,
            credit_amount=payment.credit_amount,
            payment_method=payment.payment_method,
            payment_date=payment.payment_date,
            reference_number=payment.reference_number,
            status=payment.status,
        )


@dataclass(frozen=True)
class CreditView:
    """Read-only snapshot of a customer credit."""

    id: int
    customer_id: int
    amount: Decimal
    available_amount: Decimal
    reason: CreditReason
    status: CreditStatus
    source_payment_id: int | None
    description: str | None
    expiry_date: date | None

    @classmethod
    def from_model(cls, credit: "Credit") -> "CreditView":
        return cls(
            id=credit.id,
            customer_id=credit.customer_id,
            amount=credit.amount,
            available_amount=credit.available_amount,
            reason=credit.reason,
            status=credit.status,
            source_payment_id=credit.source_payment_id,
            description=credit.description,
            expiry_date=credit.expiry_date,
        )


@dataclass(frozen=True)
class CustomerCredits:
    """A customer's credits plus the total still spendable."""

    credits: tuple[CreditView, ...]
    total_available_credit: Decimal


@dataclass(frozen=True)
class LedgerSummary:
    """Reconciled position of one customer.

    ``total_balance = opening_balance + total_invoiced - total_paid - total_credit``
    """

    opening_balance: Decimal
    total_invoiced: Decimal
    total_paid: Decimal
    total_credit: Decimal
    total_balance: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "opening_balance": str(self.opening_balance),
            "total_invoiced": str(self.total_invoiced),
            "total_paid": str(self.total_paid),
            "total_credit": str(self.total_credit),
            "total_balance": str(self.total_balance),
        }


@dataclass(frozen=True)
class CustomerLedger:
    """Everything on a customer's account."""

    invoices: tuple[InvoiceView, ...]
    payments: tuple[PaymentView, ...]
    credits: tuple[CreditView, ...]
    summary: LedgerSummary


@dataclass(frozen=True)
class PaymentHistoryPage:
    """One page of a customer's payment history, newest first."""

    payments: tuple[PaymentView, ...]
    total: int
    pages: int
    current_page: int
    limit: int


@dataclass(frozen=True)
class PaymentSummary:
    """Dashboard totals across all customers."""

    total_today: Decimal
    total_this_month: Decimal
    total_outstanding: Decimal
    total_credits: Decimal


@dataclass(frozen=True)
class RepairReport:
    """Counters produced by a data repair job."""

    scanned: int
    fixed: int
    skipped: int
