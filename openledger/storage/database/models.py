"""SQLAlchemy models for customers and invoices."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, Enum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ...exceptions import InvalidAmountError, InvoiceStateError
from .base import Base, IntPKMixin

if TYPE_CHECKING:
    from ...payment.domain.models import (
        CreditApplication,
        CustomerPayment,
        Credit,
        PaymentApplication,
    )


class InvoiceStatus(str, PyEnum):
    """Invoice status.

    Lifecycle:
        OPEN → PARTIAL → PAID (allocations and credit applications)
        COMPLETED is the status carried by migrated invoices; it is
        normalized by the balance repair job.
    """

    DRAFT = "DRAFT"  # Not issued yet, never allocatable
    OPEN = "OPEN"  # Issued, nothing paid
    PARTIAL = "PARTIAL"  # Partially paid
    PAID = "PAID"  # Fully paid
    COMPLETED = "COMPLETED"  # Legacy imported status
    CANCELLED = "CANCELLED"  # Voided, never allocatable

    def __str__(self) -> str:
        return self.value

    @property
    def is_allocatable(self) -> bool:
        """Whether payments may be allocated to an invoice in this status."""
        return self in (InvoiceStatus.OPEN, InvoiceStatus.PARTIAL)


def status_for_balance(balance: Decimal, total_amount: Decimal) -> InvoiceStatus:
    """Derive the settlement status from the outstanding balance."""
    if balance == 0:
        return InvoiceStatus.PAID
    if balance < total_amount:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.OPEN


class Customer(IntPKMixin, Base):
    """Customer account."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(256))
    phone: Mapped[str | None] = mapped_column(String(30))

    # Balance carried over from a previous system
    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    invoices: Mapped[list[Invoice]] = relationship(back_populates="customer")
    payments: Mapped[list[CustomerPayment]] = relationship(back_populates="customer")
    credits: Mapped[list[Credit]] = relationship(back_populates="customer")

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name='{self.name}')>"


class Invoice(IntPKMixin, Base):
    """Customer invoice with a running outstanding balance.

    ``balance`` only ever decreases, through payment allocations and credit
    applications; ``version_id`` guards those updates against lost writes.
    """

    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
        CheckConstraint("balance <= total_amount", name="balance_within_total"),
        Index("ix_invoices_customer_due", "customer_id", "due_date", "date"),
    )

    number: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    customer: Mapped[Customer] = relationship(back_populates="invoices")

    # Dates
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    due_date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    # Amounts
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.OPEN, index=True
    )

    notes: Mapped[str | None] = mapped_column(Text)

    version_id: Mapped[int] = mapped_column(nullable=False)

    # Relationships
    payment_applications: Mapped[list[PaymentApplication]] = relationship(
        back_populates="invoice"
    )
    credit_applications: Mapped[list[CreditApplication]] = relationship(
        back_populates="invoice"
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, number='{self.number}', balance={self.balance}, "
            f"status='{self.status.value}')>"
        )

    @property
    def amount_paid(self) -> Decimal:
        """Amount already settled against this invoice."""
        return Decimal(self.total_amount) - Decimal(self.balance)

    def refresh_status(self) -> InvoiceStatus:
        """Recompute ``status`` from ``balance``."""
        self.status = status_for_balance(Decimal(self.balance), Decimal(self.total_amount))
        return self.status

    def reduce_balance(self, amount: Decimal) -> Decimal:
        """Settle ``amount`` against the outstanding balance.

        Returns:
            The new balance.

        Raises:
            InvalidAmountError: If amount is not positive.
            InvoiceStateError: If amount exceeds the outstanding balance.
        """
        if amount <= Decimal("0.00"):
            raise InvalidAmountError("Settled amount must be positive", value=amount)

        current = Decimal(self.balance)
        if amount > current:
            raise InvoiceStateError(
                f"Cannot settle {amount}: only {current} outstanding",
                invoice_id=self.id,
                current_state=self.status.value,
                attempted_action="reduce_balance",
            )

        self.balance = current - amount
        self.refresh_status()
        return self.balance


# Ensure payment domain models are registered for relationship resolution
from ...payment.domain import models as _payment_models  # noqa: F401,E402
