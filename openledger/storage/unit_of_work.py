"""Unit of work: one database transaction per business operation.

Usage:
    with SqlAlchemyUnitOfWork(session_factory) as uow:
        invoice = uow.invoices.get(42, for_update=True)
        ...
        uow.commit()

Leaving the block without calling ``commit()`` discards every staged change.
An exception inside the block rolls back; SQLAlchemy errors are re-raised as
``TransactionError`` (``ConcurrentModificationError`` for stale versions).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..exceptions import (
    ConcurrentModificationError,
    OpenLedgerError,
    TransactionError,
    wrap_exception,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)


def _translate(error: SQLAlchemyError) -> OpenLedgerError:
    if isinstance(error, StaleDataError):
        return ConcurrentModificationError(
            "Record was modified by another transaction",
            original_error=error,
        )
    return wrap_exception(error, "Database transaction failed", exception_class=TransactionError)


class SqlAlchemyUnitOfWork:
    """Transaction boundary exposing the payment repositories."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.session: Session | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        from ..payment.infrastructure.repository import (
            CreditRepository,
            CustomerRepository,
            InvoiceRepository,
            PaymentRepository,
        )

        self.session = self.session_factory()
        self.customers = CustomerRepository(self.session)
        self.invoices = InvoiceRepository(self.session)
        self.payments = PaymentRepository(self.session)
        self.credits = CreditRepository(self.session)
        logger.debug("uow_started", session_id=id(self.session))
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        session = self._require_session()
        try:
            if exc_type is not None:
                logger.warning(
                    "uow_rollback",
                    error=str(exc_val),
                    error_type=exc_type.__name__,
                    session_id=id(session),
                )
                session.rollback()
                if isinstance(exc_val, SQLAlchemyError):
                    raise _translate(exc_val) from exc_val
        finally:
            logger.debug("uow_closed", session_id=id(session))
            session.close()
            self.session = None

    def commit(self) -> None:
        """Commit every staged change atomically.

        Raises:
            ConcurrentModificationError: If a versioned row changed meanwhile.
            TransactionError: If the database rejected the transaction.
        """
        session = self._require_session()
        try:
            session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "uow_commit_failed",
                error=str(e),
                error_type=type(e).__name__,
                session_id=id(session),
            )
            session.rollback()
            raise _translate(e) from e
        logger.debug("uow_committed", session_id=id(session))

    def rollback(self) -> None:
        """Discard every staged change."""
        self._require_session().rollback()

    def _require_session(self) -> Session:
        if self.session is None:
            raise RuntimeError("Unit of work used outside of a with block")
        return self.session


UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]


def unit_of_work_factory(session_factory: sessionmaker) -> UnitOfWorkFactory:
    """Bind a session factory, returning a callable that opens fresh units of work."""

    def _factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory)

    return _factory
