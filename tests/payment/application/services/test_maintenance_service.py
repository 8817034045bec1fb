"""Tests for MaintenanceService repair jobs."""

from datetime import date
from decimal import Decimal

import pytest

from openledger.exceptions import TransactionError
from openledger.payment.application.services import MaintenanceService
from openledger.payment.domain.enums import (
    CreditReason,
    CreditStatus,
    NotificationKind,
    PaymentMethod,
    PaymentStatus,
)
from openledger.payment.domain.models import (
    Credit,
    CustomerPayment,
    PaymentApplication,
)
from openledger.storage.database.models import Invoice, InvoiceStatus

pytestmark = pytest.mark.integration


@pytest.fixture
def notifier(mocker):
    return mocker.Mock()


@pytest.fixture
def maintenance_service(uow_factory, notifier):
    return MaintenanceService(uow_factory, notifier=notifier, notify_every=10)


def add_payment(db_session, customer, amount, *, allocated="0.00", credit="0.00"):
    payment = CustomerPayment(
        customer_id=customer.id,
        amount=Decimal(amount),
        allocated_amount=Decimal(allocated),
        credit_amount=Decimal(credit),
        payment_method=PaymentMethod.BANK_TRANSFER,
        payment_date=date(2024, 12, 1),
        recorded_by_user_id="import",
        status=PaymentStatus.COMPLETED,
    )
    db_session.add(payment)
    db_session.commit()
    return payment


class TestInitializeInvoiceBalances:
    """Tests for initialize_invoice_balances()."""

    def test_migrated_invoice_gets_full_balance(
        self, maintenance_service, make_invoice, db_session
    ):
        invoice = make_invoice("900.00", balance="0.00", status=InvoiceStatus.COMPLETED)

        report = maintenance_service.initialize_invoice_balances()

        assert report.fixed == 1
        db_session.expire_all()
        repaired = db_session.get(Invoice, invoice.id)
        assert repaired.balance == Decimal("900.00")
        assert repaired.status is InvoiceStatus.OPEN

    def test_subtracts_prior_applications(
        self, maintenance_service, make_invoice, sample_customer, db_session
    ):
        invoice = make_invoice("900.00", balance="0.00", status=InvoiceStatus.COMPLETED)
        payment = add_payment(db_session, sample_customer, "400.00", allocated="400.00")
        db_session.add(
            PaymentApplication(
                payment_id=payment.id, invoice_id=invoice.id, amount_applied=Decimal("400.00")
            )
        )
        db_session.commit()

        maintenance_service.initialize_invoice_balances()

        db_session.expire_all()
        repaired = db_session.get(Invoice, invoice.id)
        assert repaired.balance == Decimal("500.00")
        assert repaired.status is InvoiceStatus.PARTIAL

    def test_leaves_correct_and_excluded_invoices_alone(
        self, maintenance_service, make_invoice, sample_customer, db_session
    ):
        paid = make_invoice("100.00", balance="0.00", status=InvoiceStatus.PAID)
        payment = add_payment(db_session, sample_customer, "100.00", allocated="100.00")
        db_session.add(
            PaymentApplication(
                payment_id=payment.id, invoice_id=paid.id, amount_applied=Decimal("100.00")
            )
        )
        db_session.commit()
        draft = make_invoice("200.00", balance="0.00", status=InvoiceStatus.DRAFT)
        make_invoice("300.00")

        report = maintenance_service.initialize_invoice_balances()

        assert report.scanned == 1
        assert report.skipped == 1
        assert report.fixed == 0
        db_session.expire_all()
        assert db_session.get(Invoice, draft.id).balance == Decimal("0.00")

    def test_completed_invoice_with_outstanding_balance_reopens(
        self, maintenance_service, allocation_service, make_invoice, sample_customer, db_session
    ):
        invoice = make_invoice("300.00", status=InvoiceStatus.COMPLETED)

        report = maintenance_service.initialize_invoice_balances()

        assert report.scanned == 1
        assert report.fixed == 1
        db_session.expire_all()
        repaired = db_session.get(Invoice, invoice.id)
        assert repaired.balance == Decimal("300.00")
        assert repaired.status is InvoiceStatus.OPEN

        result = allocation_service.process_payment(
            customer_id=sample_customer.id,
            amount=Decimal("300.00"),
            payment_method=PaymentMethod.CASH,
            payment_date=date(2025, 2, 1),
            recorded_by_user_id="user-1",
        )
        assert [u.invoice_id for u in result.invoices_updated] == [invoice.id]

    def test_partially_paid_completed_invoice_becomes_partial(
        self, maintenance_service, make_invoice, sample_customer, db_session
    ):
        invoice = make_invoice("300.00", balance="100.00", status=InvoiceStatus.COMPLETED)
        payment = add_payment(db_session, sample_customer, "200.00", allocated="200.00")
        db_session.add(
            PaymentApplication(
                payment_id=payment.id, invoice_id=invoice.id, amount_applied=Decimal("200.00")
            )
        )
        db_session.commit()

        maintenance_service.initialize_invoice_balances()

        db_session.expire_all()
        repaired = db_session.get(Invoice, invoice.id)
        assert repaired.balance == Decimal("100.00")
        assert repaired.status is InvoiceStatus.PARTIAL

    def test_running_twice_fixes_nothing_the_second_time(
        self, maintenance_service, make_invoice
    ):
        make_invoice("50.00", balance="0.00", status=InvoiceStatus.COMPLETED)

        maintenance_service.initialize_invoice_balances()
        report = maintenance_service.initialize_invoice_balances()

        assert report.fixed == 0

    def test_notifies_progress_and_success(self, maintenance_service, make_invoice, notifier):
        for _ in range(12):
            make_invoice("10.00", balance="0.00", status=InvoiceStatus.COMPLETED)

        maintenance_service.initialize_invoice_balances(notify_user_id="admin")

        kinds = [c.args[1] for c in notifier.notify.call_args_list]
        assert kinds == [
            NotificationKind.PROGRESS,  # start
            NotificationKind.PROGRESS,  # records found
            NotificationKind.PROGRESS,  # 10 processed
            NotificationKind.SUCCESS,
        ]
        assert all(c.args[0] == "admin" for c in notifier.notify.call_args_list)
        assert notifier.notify.call_args_list[-1].args[4] == 100

    def test_silent_without_user(self, maintenance_service, make_invoice, notifier):
        make_invoice("10.00", balance="0.00", status=InvoiceStatus.COMPLETED)

        maintenance_service.initialize_invoice_balances()

        notifier.notify.assert_not_called()

    def test_failure_notifies_error_and_rolls_back(
        self, uow_factory, make_invoice, notifier, db_session, mocker
    ):
        invoice = make_invoice("10.00", balance="0.00", status=InvoiceStatus.COMPLETED)
        service = MaintenanceService(uow_factory, notifier=notifier)
        mocker.patch(
            "openledger.storage.unit_of_work.SqlAlchemyUnitOfWork.commit",
            side_effect=TransactionError("commit failed"),
        )

        with pytest.raises(TransactionError):
            service.initialize_invoice_balances(notify_user_id="admin")

        assert notifier.notify.call_args_list[-1].args[1] is NotificationKind.ERROR
        db_session.expire_all()
        assert db_session.get(Invoice, invoice.id).balance == Decimal("0.00")


class TestFixPaymentAllocations:
    """Tests for fix_payment_allocations()."""

    def test_rebuilds_amounts_from_applications_and_credits(
        self, maintenance_service, make_invoice, sample_customer, db_session
    ):
        invoice = make_invoice("300.00", balance="0.00", status=InvoiceStatus.PAID)
        payment = add_payment(db_session, sample_customer, "350.00")
        db_session.add(
            PaymentApplication(
                payment_id=payment.id, invoice_id=invoice.id, amount_applied=Decimal("300.00")
            )
        )
        db_session.add(
            Credit(
                customer_id=sample_customer.id,
                amount=Decimal("50.00"),
                available_amount=Decimal("50.00"),
                source_payment_id=payment.id,
                reason=CreditReason.OVERPAYMENT,
                created_by_user_id="import",
                status=CreditStatus.ACTIVE,
            )
        )
        db_session.commit()

        report = maintenance_service.fix_payment_allocations()

        assert report.fixed == 1
        db_session.expire_all()
        repaired = db_session.get(CustomerPayment, payment.id)
        assert repaired.allocated_amount == Decimal("300.00")
        assert repaired.credit_amount == Decimal("50.00")

    def test_legacy_payment_counts_as_fully_allocated(
        self, maintenance_service, sample_customer, db_session
    ):
        payment = add_payment(db_session, sample_customer, "700.00")

        maintenance_service.fix_payment_allocations()

        db_session.expire_all()
        repaired = db_session.get(CustomerPayment, payment.id)
        assert repaired.allocated_amount == Decimal("700.00")
        assert repaired.credit_amount == Decimal("0.00")

    def test_consistent_payments_are_skipped(
        self, maintenance_service, allocation_service, make_invoice, sample_customer
    ):
        make_invoice("100.00")
        allocation_service.process_payment(
            customer_id=sample_customer.id,
            amount=Decimal("130.00"),
            payment_method=PaymentMethod.CASH,
            payment_date=date(2025, 1, 5),
            recorded_by_user_id="user-1",
        )

        report = maintenance_service.fix_payment_allocations()

        assert report.scanned == 1
        assert report.skipped == 1
        assert report.fixed == 0
