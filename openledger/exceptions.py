"""Standardized exception hierarchy for OpenLedger.

Every error raised by the payment engine derives from ``OpenLedgerError`` and
carries structured context for logging. Callers (route handlers, the CLI)
translate these into user-facing messages; the engine itself never retries.

Usage:
    from openledger.exceptions import InsufficientCreditError

    try:
        credit_service.apply_credit_to_invoice(...)
    except InsufficientCreditError as e:
        logger.warning("credit_rejected", error=str(e), context=e.context)
"""

from __future__ import annotations

from typing import Any


class OpenLedgerError(Exception):
    """Base exception for all OpenLedger errors.

    Attributes:
        message: Human-readable error message
        context: Additional context for debugging (dict)
        original_error: Original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize exception with rich context.

        Args:
            message: Human-readable error description
            context: Additional structured data for debugging
            original_error: Original exception if this wraps another error
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Format exception with context for logging."""
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base = f"{base} ({ctx_str})"
        if self.original_error:
            base = f"{base} [caused by: {type(self.original_error).__name__}]"
        return base

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


# =============================================================================
# Validation & Input Errors
# =============================================================================


class ValidationError(OpenLedgerError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize validation error.

        Args:
            message: Error description
            field: Name of the invalid field
            value: The invalid value (truncated in context)
            constraint: Validation constraint that was violated
            **kwargs: Additional context
        """
        context = kwargs.get("context") or {}
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]
        if constraint:
            context["constraint"] = constraint
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class InvalidAmountError(ValidationError):
    """Raised when a monetary amount is not a positive fixed-point value.

    Always raised before any write is attempted.
    """


class ConfigurationError(OpenLedgerError):
    """Raised when application configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context") or {}
        if setting:
            context["setting"] = setting
        if expected:
            context["expected"] = expected
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Database & Persistence Errors
# =============================================================================


class DatabaseError(OpenLedgerError):
    """Base class for database-related errors."""


class RecordNotFoundError(DatabaseError):
    """Raised when a referenced customer, invoice, credit or payment is missing.

    Args:
        entity_type: Type of entity (e.g., "Invoice", "Credit")
        entity_id: ID of the missing entity
    """

    def __init__(
        self,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: int | str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context") or {}
        if entity_type:
            context["entity_type"] = entity_type
        if entity_id is not None:
            context["entity_id"] = str(entity_id)
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.entity_type = entity_type
        self.entity_id = entity_id


class TransactionError(DatabaseError):
    """Raised when a unit of work cannot flush or commit.

    The unit of work has already been rolled back when this is raised, so no
    partial state is left behind.
    """


class ConcurrentModificationError(TransactionError):
    """Raised when a row was changed by another transaction since it was read."""


# =============================================================================
# Business Logic Errors
# =============================================================================


class BusinessLogicError(OpenLedgerError):
    """Base class for business rule violations."""


class InvoiceStateError(BusinessLogicError):
    """Raised when an invoice operation violates its balance/status rules."""

    def __init__(
        self,
        message: str,
        *,
        invoice_id: int | None = None,
        current_state: str | None = None,
        attempted_action: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context") or {}
        if invoice_id is not None:
            context["invoice_id"] = invoice_id
        if current_state:
            context["current_state"] = current_state
        if attempted_action:
            context["attempted_action"] = attempted_action
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class AlreadySettledError(InvoiceStateError):
    """Raised when the target invoice already has a zero balance."""


class CreditError(BusinessLogicError):
    """Base class for credit ledger rule violations."""

    def __init__(
        self,
        message: str,
        *,
        credit_id: int | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context") or {}
        if credit_id is not None:
            context["credit_id"] = credit_id
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class InactiveCreditError(CreditError):
    """Raised when an operation targets a credit that is not ACTIVE."""


class InsufficientCreditError(CreditError):
    """Raised when the requested amount exceeds the credit's available amount."""


class CrossCustomerMismatchError(BusinessLogicError):
    """Raised when a credit and an invoice belong to different customers."""


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    error: Exception,
    message: str,
    *,
    exception_class: type[OpenLedgerError] = OpenLedgerError,
    **context: Any,
) -> OpenLedgerError:
    """Wrap an external exception in the OpenLedger exception hierarchy.

    Example:
        try:
            session.commit()
        except SQLAlchemyError as e:
            raise wrap_exception(e, "Commit failed", exception_class=TransactionError) from e
    """
    return exception_class(
        message,
        context=context,
        original_error=error,
    )


__all__ = [
    # Base
    "OpenLedgerError",
    # Validation
    "ValidationError",
    "InvalidAmountError",
    "ConfigurationError",
    # Database
    "DatabaseError",
    "RecordNotFoundError",
    "TransactionError",
    "ConcurrentModificationError",
    # Business Logic
    "BusinessLogicError",
    "InvoiceStateError",
    "AlreadySettledError",
    "CreditError",
    "InactiveCreditError",
    "InsufficientCreditError",
    "CrossCustomerMismatchError",
    # Utilities
    "wrap_exception",
]
