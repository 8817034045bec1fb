"""Tests for CreditLedgerService against a real SQLite database."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from openledger.exceptions import (
    AlreadySettledError,
    CrossCustomerMismatchError,
    InactiveCreditError,
    InsufficientCreditError,
    InvalidAmountError,
    RecordNotFoundError,
)
from openledger.payment.domain.enums import CreditReason, CreditStatus, PaymentMethod
from openledger.payment.domain.models import Credit, CreditApplication
from openledger.storage.database.models import Invoice, InvoiceStatus

pytestmark = pytest.mark.integration


def application_count(db_session) -> int:
    return db_session.execute(select(func.count()).select_from(CreditApplication)).scalar_one()


class TestCreateCredit:
    """Tests for create_credit()."""

    def test_creates_active_credit(self, credit_service, sample_customer, db_session):
        view = credit_service.create_credit(
            customer_id=sample_customer.id,
            amount="250.00",
            created_by_user_id="user-1",
            reason=CreditReason.GOODWILL,
            description="Late delivery",
            expiry_date=date(2025, 12, 31),
        )

        assert view.status is CreditStatus.ACTIVE
        assert view.available_amount == Decimal("250.00")

        credit = db_session.get(Credit, view.id)
        assert credit.amount == Decimal("250.00")
        assert credit.reason is CreditReason.GOODWILL
        assert credit.expiry_date == date(2025, 12, 31)
        assert credit.source_payment_id is None

    def test_rejects_non_positive_amount(self, credit_service, sample_customer):
        with pytest.raises(InvalidAmountError):
            credit_service.create_credit(
                customer_id=sample_customer.id, amount=0, created_by_user_id="user-1"
            )

    def test_unknown_customer(self, credit_service):
        with pytest.raises(RecordNotFoundError):
            credit_service.create_credit(
                customer_id=404, amount="10.00", created_by_user_id="user-1"
            )


class TestApplyCreditToInvoice:
    """Tests for apply_credit_to_invoice()."""

    def test_partial_application(self, credit_service, make_credit, make_invoice, db_session):
        credit = make_credit("500.00")
        invoice = make_invoice("300.00")

        result = credit_service.apply_credit_to_invoice(
            credit.id, invoice.id, Decimal("200.00"), "user-2"
        )

        assert result.amount_applied == Decimal("200.00")
        assert result.remaining_credit == Decimal("300.00")
        assert result.credit_status is CreditStatus.ACTIVE
        assert result.new_invoice_balance == Decimal("100.00")
        assert result.new_invoice_status is InvoiceStatus.PARTIAL

        db_session.expire_all()
        application = db_session.execute(select(CreditApplication)).scalar_one()
        assert application.amount_applied == Decimal("200.00")
        assert application.applied_by_user_id == "user-2"

    def test_full_application_marks_credit_applied_and_invoice_paid(
        self, credit_service, make_credit, make_invoice, db_session
    ):
        credit = make_credit("300.00")
        invoice = make_invoice("300.00")

        result = credit_service.apply_credit_to_invoice(credit.id, invoice.id, "300", "user-2")

        assert result.credit_status is CreditStatus.APPLIED
        assert result.new_invoice_status is InvoiceStatus.PAID

        db_session.expire_all()
        assert db_session.get(Credit, credit.id).status is CreditStatus.APPLIED
        assert db_session.get(Invoice, invoice.id).balance == Decimal("0.00")

    def test_overpayment_credit_round_trip(
        self, allocation_service, credit_service, make_invoice, sample_customer, db_session
    ):
        """Overpay one invoice, then spend the whole credit on a second one."""
        first = make_invoice("1000.00", due_date=date(2025, 1, 10))
        payment = allocation_service.process_payment(
            customer_id=sample_customer.id,
            amount=Decimal("1250.00"),
            payment_method=PaymentMethod.CASH,
            payment_date=date(2025, 1, 5),
            recorded_by_user_id="user-1",
        )
        assert payment.total_allocated == Decimal("1000.00")
        assert payment.total_credit == Decimal("250.00")

        second = make_invoice("400.00", due_date=date(2025, 2, 10))
        result = credit_service.apply_credit_to_invoice(
            payment.credit_created.credit_id, second.id, Decimal("250.00"), "user-1"
        )

        assert result.credit_status is CreditStatus.APPLIED
        assert result.new_invoice_balance == Decimal("150.00")

        db_session.expire_all()
        assert db_session.get(Invoice, first.id).status is InvoiceStatus.PAID
        assert db_session.get(Invoice, second.id).balance == Decimal("150.00")

    def test_request_above_invoice_balance_applies_only_the_balance(
        self, credit_service, make_credit, make_invoice, db_session
    ):
        credit = make_credit("500.00")
        invoice = make_invoice("300.00", balance="100.00", status=InvoiceStatus.PARTIAL)

        result = credit_service.apply_credit_to_invoice(
            credit.id, invoice.id, Decimal("250.00"), "user-1"
        )

        assert result.amount_applied == Decimal("100.00")
        assert result.remaining_credit == Decimal("400.00")
        assert result.credit_status is CreditStatus.ACTIVE
        assert result.new_invoice_balance == Decimal("0.00")
        assert result.new_invoice_status is InvoiceStatus.PAID

        db_session.expire_all()
        assert db_session.get(Credit, credit.id).available_amount == Decimal("400.00")
        assert db_session.get(Invoice, invoice.id).status is InvoiceStatus.PAID
        application = db_session.execute(select(CreditApplication)).scalar_one()
        assert application.amount_applied == Decimal("100.00")

    def test_request_above_invoice_balance_still_needs_enough_credit(
        self, credit_service, make_credit, make_invoice
    ):
        credit = make_credit("200.00")
        invoice = make_invoice("100.00")

        with pytest.raises(InsufficientCreditError):
            credit_service.apply_credit_to_invoice(credit.id, invoice.id, "250.00", "user-1")

    def test_insufficient_credit_changes_nothing(
        self, credit_service, make_credit, make_invoice, db_session
    ):
        credit = make_credit("100.00")
        invoice = make_invoice("500.00")

        with pytest.raises(InsufficientCreditError):
            credit_service.apply_credit_to_invoice(credit.id, invoice.id, "100.01", "user-1")

        db_session.expire_all()
        assert db_session.get(Credit, credit.id).available_amount == Decimal("100.00")
        assert db_session.get(Invoice, invoice.id).balance == Decimal("500.00")
        assert application_count(db_session) == 0

    def test_cross_customer_changes_nothing(
        self, credit_service, make_credit, make_invoice, other_customer, db_session
    ):
        credit = make_credit("100.00")
        foreign_invoice = make_invoice("100.00", customer=other_customer)

        with pytest.raises(CrossCustomerMismatchError):
            credit_service.apply_credit_to_invoice(
                credit.id, foreign_invoice.id, "50.00", "user-1"
            )

        db_session.expire_all()
        assert db_session.get(Credit, credit.id).available_amount == Decimal("100.00")
        assert db_session.get(Invoice, foreign_invoice.id).balance == Decimal("100.00")
        assert application_count(db_session) == 0

    @pytest.mark.parametrize("status", [CreditStatus.APPLIED, CreditStatus.EXPIRED])
    def test_inactive_credit(self, credit_service, make_credit, make_invoice, status):
        available = "0.00" if status is CreditStatus.APPLIED else None
        credit = make_credit("100.00", available=available, status=status)
        invoice = make_invoice("100.00")

        with pytest.raises(InactiveCreditError):
            credit_service.apply_credit_to_invoice(credit.id, invoice.id, "10.00", "user-1")

    def test_already_settled_invoice(self, credit_service, make_credit, make_invoice):
        credit = make_credit("100.00")
        invoice = make_invoice("100.00", balance="0.00", status=InvoiceStatus.PAID)

        with pytest.raises(AlreadySettledError):
            credit_service.apply_credit_to_invoice(credit.id, invoice.id, "10.00", "user-1")

    def test_missing_credit_and_invoice(self, credit_service, make_credit, make_invoice):
        invoice = make_invoice("100.00")
        credit = make_credit("100.00")

        with pytest.raises(RecordNotFoundError) as exc_info:
            credit_service.apply_credit_to_invoice(999, invoice.id, "10.00", "user-1")
        assert exc_info.value.entity_type == "Credit"

        with pytest.raises(RecordNotFoundError) as exc_info:
            credit_service.apply_credit_to_invoice(credit.id, 999, "10.00", "user-1")
        assert exc_info.value.entity_type == "Invoice"

    def test_amount_is_checked_before_anything_else(self, credit_service):
        with pytest.raises(InvalidAmountError):
            credit_service.apply_credit_to_invoice(999, 999, "-1", "user-1")

    def test_credit_checks_precede_invoice_checks(
        self, credit_service, make_credit, other_customer, make_invoice
    ):
        """Insufficient credit wins over a cross-customer invoice."""
        credit = make_credit("10.00")
        foreign_invoice = make_invoice("100.00", customer=other_customer)

        with pytest.raises(InsufficientCreditError):
            credit_service.apply_credit_to_invoice(credit.id, foreign_invoice.id, "50.00", "u")


class TestGetCustomerCredits:
    """Tests for get_customer_credits()."""

    def test_active_only_by_default(self, credit_service, make_credit, sample_customer):
        active = make_credit("100.00", available="60.00")
        make_credit("50.00", available="0.00", status=CreditStatus.APPLIED)
        make_credit("30.00", status=CreditStatus.EXPIRED)

        result = credit_service.get_customer_credits(sample_customer.id)

        assert [c.id for c in result.credits] == [active.id]
        assert result.total_available_credit == Decimal("60.00")

    def test_all_credits_total_counts_active_only(
        self, credit_service, make_credit, sample_customer
    ):
        make_credit("100.00", available="60.00")
        make_credit("50.00", available="0.00", status=CreditStatus.APPLIED)
        make_credit("30.00", status=CreditStatus.EXPIRED)

        result = credit_service.get_customer_credits(sample_customer.id, active_only=False)

        assert len(result.credits) == 3
        assert result.total_available_credit == Decimal("60.00")

    def test_newest_first(self, credit_service, make_credit, sample_customer):
        older = make_credit("10.00")
        newer = make_credit("20.00")

        result = credit_service.get_customer_credits(sample_customer.id)

        assert [c.id for c in result.credits] == [newer.id, older.id]

    def test_unknown_customer(self, credit_service):
        with pytest.raises(RecordNotFoundError):
            credit_service.get_customer_credits(12345)
