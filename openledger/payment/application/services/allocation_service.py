"""Allocation engine: record a customer payment and settle open invoices.

Workflow (one unit of work):
    1. Validate amount and payment method
    2. Lock the customer's open invoices (optionally a chosen subset)
    3. Plan the allocation, oldest due date first
    4. Record the payment, its applications and the new invoice balances
    5. Turn any remainder into an OVERPAYMENT credit
    6. Commit, then write the audit log line
"""

from collections.abc import Collection
from datetime import date

from ....exceptions import RecordNotFoundError, ValidationError
from ....storage.unit_of_work import UnitOfWorkFactory
from ....utils.logging import get_logger, log_credit_created, log_payment_processed
from ....utils.money import MoneyLike, require_positive
from ...domain.allocation import plan_allocation
from ...domain.enums import CreditReason, PaymentMethod, PaymentStatus
from ...domain.models import CustomerPayment, PaymentApplication
from ...domain.value_objects import AllocationResult, CreditReference, InvoiceUpdate
from ...infrastructure.repository import InvoiceFilter
from .credit_service import CreditLedgerService

logger = get_logger(__name__)


def parse_payment_method(value: PaymentMethod | str) -> PaymentMethod:
    """Coerce user input to a PaymentMethod.

    Raises:
        ValidationError: If the value names no known method
    """
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(str(value).strip().upper())
    except ValueError as e:
        raise ValidationError(
            f"Unknown payment method: {value}",
            field="payment_method",
            value=value,
            constraint="|".join(m.value for m in PaymentMethod),
            original_error=e,
        ) from e


class PaymentAllocationService:
    """Service that turns incoming payments into invoice settlements and credits."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        credit_service: CreditLedgerService | None = None,
    ):
        """Initialize the allocation engine.

        Args:
            uow_factory: Callable returning a fresh unit of work
            credit_service: Credit ledger used for overpayments
                (defaults to one sharing ``uow_factory``)
        """
        self.uow_factory = uow_factory
        self.credit_service = credit_service or CreditLedgerService(uow_factory)

    def process_payment(
        self,
        customer_id: int,
        amount: MoneyLike,
        payment_method: PaymentMethod | str,
        payment_date: date,
        recorded_by_user_id: str,
        reference_number: str | None = None,
        notes: str | None = None,
        invoice_ids: Collection[int] | None = None,
    ) -> AllocationResult:
        """Record a payment and allocate it across open invoices.

        Args:
            customer_id: Paying customer
            amount: Amount received (positive, at most two decimals)
            payment_method: PaymentMethod or its name
            payment_date: Date the money was received
            recorded_by_user_id: Operator recording the payment
            reference_number: Cheque number, bank reference, etc.
            notes: Free text stored on the payment
            invoice_ids: Restrict allocation to these invoices. ``None``
                means every open invoice of the customer; an empty
                collection turns the whole amount into credit.

        Returns:
            AllocationResult with per-invoice updates and the credit, if any

        Raises:
            InvalidAmountError: If amount is not positive
            ValidationError: If payment_method is unknown
            RecordNotFoundError: If the customer does not exist
            TransactionError: If the unit of work cannot commit
        """
        value = require_positive(amount)
        method = parse_payment_method(payment_method)

        with self.uow_factory() as uow:
            if uow.customers.get(customer_id) is None:
                raise RecordNotFoundError(
                    f"Customer {customer_id} not found",
                    entity_type="Customer",
                    entity_id=customer_id,
                )

            if invoice_ids is not None and len(invoice_ids) == 0:
                invoices = []
            else:
                invoices = uow.invoices.find(
                    InvoiceFilter.open_for_customer(customer_id, invoice_ids),
                    for_update=True,
                )

            plan = plan_allocation(value, invoices)
            logger.debug(
                "allocation_planned",
                customer_id=customer_id,
                candidates=len(invoices),
                allocations=len(plan.allocations),
                remainder=plan.remainder,
            )

            payment = uow.payments.add(
                CustomerPayment(
                    customer_id=customer_id,
                    amount=value,
                    allocated_amount=plan.total_allocated,
                    credit_amount=plan.remainder,
                    payment_method=method,
                    payment_date=payment_date,
                    reference_number=reference_number,
                    notes=notes,
                    recorded_by_user_id=recorded_by_user_id,
                    status=PaymentStatus.COMPLETED,
                )
            )

            by_id = {invoice.id: invoice for invoice in invoices}
            updates: list[InvoiceUpdate] = []
            for allocation in plan.allocations:
                invoice = by_id[allocation.invoice_id]
                new_balance = invoice.reduce_balance(allocation.amount)
                uow.payments.add_application(
                    PaymentApplication(
                        payment_id=payment.id,
                        invoice_id=invoice.id,
                        amount_applied=allocation.amount,
                    )
                )
                updates.append(
                    InvoiceUpdate(
                        invoice_id=invoice.id,
                        amount_applied=allocation.amount,
                        new_balance=new_balance,
                        new_status=invoice.status,
                    )
                )

            credit_ref = None
            if plan.has_remainder:
                credit = self.credit_service.create_credit_in(
                    uow,
                    customer_id=customer_id,
                    amount=plan.remainder,
                    created_by_user_id=recorded_by_user_id,
                    source_payment_id=payment.id,
                    reason=CreditReason.OVERPAYMENT,
                    description=f"Overpayment from payment #{payment.id}",
                )
                credit_ref = CreditReference(credit_id=credit.id, amount=plan.remainder)

            result = AllocationResult(
                payment_id=payment.id,
                total_paid=value,
                total_allocated=plan.total_allocated,
                total_credit=plan.remainder,
                invoices_updated=tuple(updates),
                credit_created=credit_ref,
            )
            uow.commit()

        log_payment_processed(
            logger,
            payment_id=result.payment_id,
            customer_id=customer_id,
            amount=value,
            allocated=result.total_allocated,
            credited=result.total_credit,
            recorded_by=recorded_by_user_id,
        )
        if credit_ref is not None:
            log_credit_created(
                logger,
                credit_id=credit_ref.credit_id,
                customer_id=customer_id,
                amount=credit_ref.amount,
                reason=CreditReason.OVERPAYMENT.value,
                source_payment_id=result.payment_id,
            )
        return result
