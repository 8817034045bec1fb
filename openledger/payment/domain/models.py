"""Domain models for customer payments and credits.

DDD Entities:
- Have identity (unique ID)
- Mutable lifecycle (payments and credits only; applications are append-only)
- Encapsulate business logic
- Mapped to database tables via SQLAlchemy
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ...exceptions import InactiveCreditError, InsufficientCreditError, InvalidAmountError
from ...storage.database.base import Base, IntPKMixin
from ...utils.datetime import utc_now
from .enums import CreditReason, CreditStatus, PaymentMethod, PaymentStatus

if TYPE_CHECKING:
    from ...storage.database.models import Customer, Invoice


class CustomerPayment(IntPKMixin, Base):
    """Money received from a customer.

    Attributes:
        amount: Amount received
        allocated_amount: Portion settled against invoices
        credit_amount: Portion converted into a customer credit
        payment_method: How the customer paid
        payment_date: Date the money was received
        reference_number: Cheque number, bank reference, etc.
        recorded_by_user_id: Operator who recorded the payment
        status: Payment lifecycle status

    ``allocated_amount + credit_amount == amount`` for every payment processed
    by the allocation engine.
    """

    __tablename__ = "customer_payments"
    __table_args__ = (CheckConstraint("amount > 0", name="amount_positive"),)

    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), nullable=False)
    payment_date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    reference_number: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)
    recorded_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), nullable=False, default=PaymentStatus.COMPLETED
    )

    # Relationships
    customer: Mapped[Customer] = relationship(back_populates="payments")
    applications: Mapped[list[PaymentApplication]] = relationship(
        back_populates="payment", order_by="PaymentApplication.id"
    )
    sourced_credits: Mapped[list[Credit]] = relationship(back_populates="source_payment")

    def __repr__(self) -> str:
        return (
            f"<CustomerPayment(id={self.id}, customer_id={self.customer_id}, "
            f"amount={self.amount}, method='{self.payment_method.value}')>"
        )


class PaymentApplication(IntPKMixin, Base):
    """Portion of a payment settled against one invoice. Append-only."""

    __tablename__ = "payment_applications"
    __table_args__ = (CheckConstraint("amount_applied > 0", name="amount_applied_positive"),)

    payment_id: Mapped[int] = mapped_column(
        ForeignKey("customer_payments.id"), nullable=False, index=True
    )
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    amount_applied: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    applied_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    notes: Mapped[str | None] = mapped_column(Text)

    payment: Mapped[CustomerPayment] = relationship(back_populates="applications")
    invoice: Mapped[Invoice] = relationship(back_populates="payment_applications")

    def __repr__(self) -> str:
        return (
            f"<PaymentApplication(id={self.id}, payment_id={self.payment_id}, "
            f"invoice_id={self.invoice_id}, amount_applied={self.amount_applied})>"
        )


class Credit(IntPKMixin, Base):
    """Customer credit that can be spent on later invoices.

    ``available_amount`` starts at ``amount`` and only decreases. A credit whose
    available amount reaches zero moves to APPLIED and is never spendable again.
    """

    __tablename__ = "credits"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint("available_amount >= 0", name="available_non_negative"),
        CheckConstraint("available_amount <= amount", name="available_within_amount"),
    )

    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    available_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    source_payment_id: Mapped[int | None] = mapped_column(ForeignKey("customer_payments.id"))
    reason: Mapped[CreditReason] = mapped_column(
        Enum(CreditReason), nullable=False, default=CreditReason.OVERPAYMENT
    )
    description: Mapped[str | None] = mapped_column(Text)
    created_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[CreditStatus] = mapped_column(
        Enum(CreditStatus), nullable=False, default=CreditStatus.ACTIVE, index=True
    )
    expiry_date: Mapped[dt.date | None] = mapped_column(Date)
    notes: Mapped[str | None] = mapped_column(Text)

    version_id: Mapped[int] = mapped_column(nullable=False)

    # Relationships
    customer: Mapped[Customer] = relationship(back_populates="credits")
    source_payment: Mapped[CustomerPayment | None] = relationship(
        back_populates="sourced_credits"
    )
    applications: Mapped[list[CreditApplication]] = relationship(
        back_populates="credit", order_by="CreditApplication.id"
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Credit(id={self.id}, customer_id={self.customer_id}, "
            f"available={self.available_amount}/{self.amount}, status='{self.status.value}')>"
        )

    def consume(self, amount: Decimal) -> Decimal:
        """Spend ``amount`` from the available balance.

        Returns:
            The remaining available amount.

        Raises:
            InvalidAmountError: If amount is not positive.
            InactiveCreditError: If the credit is not ACTIVE.
            InsufficientCreditError: If amount exceeds the available balance.
        """
        if amount <= Decimal("0.00"):
            raise InvalidAmountError("Credit amount must be positive", value=amount)

        if not self.status.is_spendable:
            raise InactiveCreditError(
                f"Credit {self.id} is {self.status.value}, not ACTIVE",
                credit_id=self.id,
            )

        available = Decimal(self.available_amount)
        if amount > available:
            raise InsufficientCreditError(
                f"Credit {self.id} has only {available} available, {amount} requested",
                credit_id=self.id,
                context={"available": str(available), "requested": str(amount)},
            )

        self.available_amount = available - amount
        if self.available_amount == 0:
            self.status = CreditStatus.APPLIED
        return self.available_amount


class CreditApplication(IntPKMixin, Base):
    """Portion of a credit spent on one invoice. Append-only."""

    __tablename__ = "credit_applications"
    __table_args__ = (CheckConstraint("amount_applied > 0", name="amount_applied_positive"),)

    credit_id: Mapped[int] = mapped_column(ForeignKey("credits.id"), nullable=False, index=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    amount_applied: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    applied_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    applied_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    notes: Mapped[str | None] = mapped_column(Text)

    credit: Mapped[Credit] = relationship(back_populates="applications")
    invoice: Mapped[Invoice] = relationship(back_populates="credit_applications")

    def __repr__(self) -> str:
        return (
            f"<CreditApplication(id={self.id}, credit_id={self.credit_id}, "
            f"invoice_id={self.invoice_id}, amount_applied={self.amount_applied})>"
        )
