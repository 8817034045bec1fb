"""
Pytest configuration and global fixtures.

This module provides shared fixtures used across all tests.
"""

from collections.abc import Callable, Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from openledger.payment.application.services import (
    CreditLedgerService,
    LedgerService,
    PaymentAllocationService,
)
from openledger.payment.domain.enums import CreditReason, CreditStatus
from openledger.payment.domain.models import Credit
from openledger.storage.database.base import Base
from openledger.storage.database.models import Customer, Invoice, InvoiceStatus
from openledger.storage.unit_of_work import UnitOfWorkFactory, unit_of_work_factory
from openledger.utils.config import Settings

TEST_USER = "user-test-1"


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Create a file-backed SQLite database engine for testing.

    A file (not ``:memory:``) lets the services open their own connections
    while the test session inspects the same data.
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()  # Properly close all database connections


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    """Session factory bound to the test engine."""
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def uow_factory(session_factory) -> UnitOfWorkFactory:
    """Unit-of-work factory the services are constructed with."""
    return unit_of_work_factory(session_factory)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """
    Create a database session for seeding and inspecting data.

    Call ``db_session.expire_all()`` before asserting on rows a service changed.
    """
    session = session_factory()

    yield session

    session.rollback()
    session.close()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(
        database_url="sqlite:///:memory:",
        log_level="WARNING",
        default_page_size=20,
        max_page_size=100,
        notify_every=10,
    )


@pytest.fixture
def sample_customer(db_session: Session) -> Customer:
    """Create a sample customer with no opening balance."""
    customer = Customer(
        name="Acme Trading Ltd",
        email="accounts@acme.example",
        phone="+234 800 000 0000",
        opening_balance=Decimal("0.00"),
    )

    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)

    return customer


@pytest.fixture
def other_customer(db_session: Session) -> Customer:
    """A second customer for cross-customer scenarios."""
    customer = Customer(name="Globex Stores", opening_balance=Decimal("0.00"))

    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)

    return customer


@pytest.fixture
def make_invoice(db_session: Session, sample_customer: Customer) -> Callable[..., Invoice]:
    """Factory creating committed invoices.

    Usage:
        invoice = make_invoice("10000.00", due_date=date(2025, 1, 10))
    """
    counter = {"n": 0}

    def _make(
        total: str | Decimal,
        *,
        due_date: date = date(2025, 1, 31),
        issue_date: date = date(2025, 1, 1),
        balance: str | Decimal | None = None,
        status: InvoiceStatus = InvoiceStatus.OPEN,
        customer: Customer | None = None,
    ) -> Invoice:
        counter["n"] += 1
        total_amount = Decimal(total)
        invoice = Invoice(
            number=f"INV-{counter['n']:04d}",
            customer_id=(customer or sample_customer).id,
            date=issue_date,
            due_date=due_date,
            total_amount=total_amount,
            balance=Decimal(balance) if balance is not None else total_amount,
            status=status,
        )
        db_session.add(invoice)
        db_session.commit()
        db_session.refresh(invoice)
        return invoice

    return _make


@pytest.fixture
def make_credit(db_session: Session, sample_customer: Customer) -> Callable[..., Credit]:
    """Factory creating committed credits."""

    def _make(
        amount: str | Decimal,
        *,
        available: str | Decimal | None = None,
        status: CreditStatus = CreditStatus.ACTIVE,
        customer: Customer | None = None,
        reason: CreditReason = CreditReason.ADJUSTMENT,
    ) -> Credit:
        value = Decimal(amount)
        credit = Credit(
            customer_id=(customer or sample_customer).id,
            amount=value,
            available_amount=Decimal(available) if available is not None else value,
            reason=reason,
            created_by_user_id=TEST_USER,
            status=status,
        )
        db_session.add(credit)
        db_session.commit()
        db_session.refresh(credit)
        return credit

    return _make


@pytest.fixture
def credit_service(uow_factory) -> CreditLedgerService:
    return CreditLedgerService(uow_factory)


@pytest.fixture
def allocation_service(uow_factory, credit_service) -> PaymentAllocationService:
    return PaymentAllocationService(uow_factory, credit_service=credit_service)


@pytest.fixture
def ledger_service(uow_factory, test_settings) -> LedgerService:
    return LedgerService(uow_factory, max_page_size=test_settings.max_page_size)
