"""Allocation policy: how a payment is spread across open invoices.

Pure functions over invoice-shaped objects, no storage access. The service
layer loads and locks the invoices, asks for a plan and then applies it.

Policy:
    1. Invoices are settled oldest due date first, then oldest issue date,
       then lowest id.
    2. Each invoice receives ``min(remaining, balance)``.
    3. Whatever is left after the last invoice becomes the remainder
       (turned into a credit by the caller).
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

from ...exceptions import InvalidAmountError
from ...utils.money import ZERO


class AllocatableInvoice(Protocol):
    """Shape of an invoice the planner can work with."""

    id: int
    date: date
    due_date: date
    balance: Decimal


@dataclass(frozen=True)
class PlannedAllocation:
    """Amount to settle on one invoice."""

    invoice_id: int
    amount: Decimal
    new_balance: Decimal


@dataclass(frozen=True)
class AllocationPlan:
    """Full plan for one payment."""

    amount: Decimal
    allocations: tuple[PlannedAllocation, ...]
    total_allocated: Decimal
    remainder: Decimal

    @property
    def has_remainder(self) -> bool:
        return self.remainder > ZERO


def allocation_order(invoice: AllocatableInvoice) -> tuple[date, date, int]:
    """Sort key for settlement order."""
    return (invoice.due_date, invoice.date, invoice.id)


def plan_allocation(amount: Decimal, invoices: Iterable[AllocatableInvoice]) -> AllocationPlan:
    """Plan how ``amount`` settles ``invoices``.

    Invoices with no outstanding balance are skipped. The input order does
    not matter, the plan always follows ``allocation_order``.

    Args:
        amount: Payment amount, must be positive
        invoices: Candidate open invoices of a single customer

    Returns:
        AllocationPlan whose ``total_allocated + remainder == amount``

    Raises:
        InvalidAmountError: If amount is not positive
    """
    if amount <= ZERO:
        raise InvalidAmountError("Payment amount must be greater than 0", value=amount)

    remaining = amount
    allocations: list[PlannedAllocation] = []

    for invoice in sorted(invoices, key=allocation_order):
        if remaining <= ZERO:
            break

        balance = Decimal(invoice.balance)
        if balance <= ZERO:
            continue

        applied = min(remaining, balance)
        allocations.append(
            PlannedAllocation(
                invoice_id=invoice.id,
                amount=applied,
                new_balance=balance - applied,
            )
        )
        remaining -= applied

    return AllocationPlan(
        amount=amount,
        allocations=tuple(allocations),
        total_allocated=amount - remaining,
        remainder=remaining,
    )
