"""Credit ledger: create customer credits and spend them on invoices."""

from datetime import date
from decimal import Decimal

from ....exceptions import (
    AlreadySettledError,
    CrossCustomerMismatchError,
    InactiveCreditError,
    InsufficientCreditError,
    RecordNotFoundError,
)
from ....storage.unit_of_work import SqlAlchemyUnitOfWork, UnitOfWorkFactory
from ....utils.logging import get_logger, log_credit_applied, log_credit_created
from ....utils.money import MoneyLike, ZERO, money_sum, require_positive
from ...domain.enums import CreditReason, CreditStatus
from ...domain.models import Credit, CreditApplication
from ...domain.value_objects import CreditApplicationResult, CreditView, CustomerCredits

logger = get_logger(__name__)


class CreditLedgerService:
    """Service for issuing, listing and applying customer credits.

    Every mutating call runs in its own unit of work and either commits
    completely or leaves nothing behind.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory):
        """Initialize the credit ledger.

        Args:
            uow_factory: Callable returning a fresh unit of work
        """
        self.uow_factory = uow_factory

    def create_credit(
        self,
        customer_id: int,
        amount: MoneyLike,
        created_by_user_id: str,
        source_payment_id: int | None = None,
        reason: CreditReason = CreditReason.OVERPAYMENT,
        description: str | None = None,
        expiry_date: date | None = None,
    ) -> CreditView:
        """Issue a new ACTIVE credit to a customer.

        Returns:
            Snapshot of the committed credit

        Raises:
            InvalidAmountError: If amount is not positive
            RecordNotFoundError: If the customer does not exist
        """
        value = require_positive(amount)

        with self.uow_factory() as uow:
            if uow.customers.get(customer_id) is None:
                raise RecordNotFoundError(
                    f"Customer {customer_id} not found",
                    entity_type="Customer",
                    entity_id=customer_id,
                )

            credit = self.create_credit_in(
                uow,
                customer_id=customer_id,
                amount=value,
                created_by_user_id=created_by_user_id,
                source_payment_id=source_payment_id,
                reason=reason,
                description=description,
                expiry_date=expiry_date,
            )
            view = CreditView.from_model(credit)
            uow.commit()

        log_credit_created(
            logger,
            credit_id=view.id,
            customer_id=customer_id,
            amount=value,
            reason=reason.value,
            source_payment_id=source_payment_id,
        )
        return view

    def create_credit_in(
        self,
        uow: SqlAlchemyUnitOfWork,
        *,
        customer_id: int,
        amount: Decimal,
        created_by_user_id: str,
        source_payment_id: int | None = None,
        reason: CreditReason = CreditReason.OVERPAYMENT,
        description: str | None = None,
        expiry_date: date | None = None,
    ) -> Credit:
        """Stage a credit inside an already open unit of work (no commit)."""
        credit = Credit(
            customer_id=customer_id,
            amount=amount,
            available_amount=amount,
            source_payment_id=source_payment_id,
            reason=reason,
            description=description,
            created_by_user_id=created_by_user_id,
            status=CreditStatus.ACTIVE,
            expiry_date=expiry_date,
        )
        return uow.credits.add(credit)

    def apply_credit_to_invoice(
        self,
        credit_id: int,
        invoice_id: int,
        amount: MoneyLike,
        applied_by_user_id: str,
        notes: str | None = None,
    ) -> CreditApplicationResult:
        """Spend part (or all) of a credit on one invoice.

        At most the invoice's outstanding balance is applied; a larger
        ``amount`` only has to be covered by the credit.

        Checks run in this order and the first failure wins; nothing is
        written when any of them fails.

        Raises:
            InvalidAmountError: If amount is not positive
            RecordNotFoundError: If the credit or the invoice does not exist
            InactiveCreditError: If the credit is not ACTIVE
            InsufficientCreditError: If amount exceeds the credit's available amount
            CrossCustomerMismatchError: If credit and invoice belong to different customers
            AlreadySettledError: If the invoice has no outstanding balance
            TransactionError: If the unit of work cannot commit
        """
        value = require_positive(amount)

        with self.uow_factory() as uow:
            credit = uow.credits.get(credit_id, for_update=True)
            if credit is None:
                raise RecordNotFoundError(
                    f"Credit {credit_id} not found", entity_type="Credit", entity_id=credit_id
                )

            if credit.status is not CreditStatus.ACTIVE:
                raise InactiveCreditError(
                    f"Credit {credit_id} is {credit.status.value}, not ACTIVE",
                    credit_id=credit_id,
                )

            if Decimal(credit.available_amount) < value:
                raise InsufficientCreditError(
                    f"Credit {credit_id} has only {credit.available_amount} available, "
                    f"{value} requested",
                    credit_id=credit_id,
                    context={
                        "available": str(credit.available_amount),
                        "requested": str(value),
                    },
                )

            invoice = uow.invoices.get(invoice_id, for_update=True)
            if invoice is None:
                raise RecordNotFoundError(
                    f"Invoice {invoice_id} not found", entity_type="Invoice", entity_id=invoice_id
                )

            if invoice.customer_id != credit.customer_id:
                raise CrossCustomerMismatchError(
                    f"Credit {credit_id} and invoice {invoice_id} belong to different customers",
                    context={
                        "credit_customer_id": credit.customer_id,
                        "invoice_customer_id": invoice.customer_id,
                    },
                )

            if Decimal(invoice.balance) <= ZERO:
                raise AlreadySettledError(
                    f"Invoice {invoice_id} is already settled",
                    invoice_id=invoice_id,
                    current_state=invoice.status.value,
                    attempted_action="apply_credit",
                )

            applied = min(Decimal(invoice.balance), value)
            remaining_credit = credit.consume(applied)
            new_balance = invoice.reduce_balance(applied)

            uow.credits.add_application(
                CreditApplication(
                    credit_id=credit.id,
                    invoice_id=invoice.id,
                    amount_applied=applied,
                    applied_by_user_id=applied_by_user_id,
                    notes=notes,
                )
            )

            result = CreditApplicationResult(
                credit_id=credit.id,
                invoice_id=invoice.id,
                amount_applied=applied,
                remaining_credit=remaining_credit,
                credit_status=credit.status,
                new_invoice_balance=new_balance,
                new_invoice_status=invoice.status,
            )
            uow.commit()

        log_credit_applied(
            logger,
            credit_id=credit_id,
            invoice_id=invoice_id,
            amount=result.amount_applied,
            applied_by=applied_by_user_id,
        )
        return result

    def get_customer_credits(self, customer_id: int, active_only: bool = True) -> CustomerCredits:
        """List a customer's credits, newest first.

        ``total_available_credit`` always counts ACTIVE credits only, even
        when ``active_only`` is False.

        Raises:
            RecordNotFoundError: If the customer does not exist
        """
        with self.uow_factory() as uow:
            if uow.customers.get(customer_id) is None:
                raise RecordNotFoundError(
                    f"Customer {customer_id} not found",
                    entity_type="Customer",
                    entity_id=customer_id,
                )

            credits = tuple(
                CreditView.from_model(credit)
                for credit in uow.credits.list_for_customer(customer_id, active_only=active_only)
            )

        total_available = money_sum(
            c.available_amount
            for c in credits
            if c.status is CreditStatus.ACTIVE and c.available_amount > ZERO
        )

        return CustomerCredits(credits=credits, total_available_credit=total_available)
