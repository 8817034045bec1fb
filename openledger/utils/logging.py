"""
Structured logging configuration using structlog.

- JSON logging for production
- Correlation IDs for request tracking
- Sensitive data filtering
- Audit helpers for money-moving operations
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from decimal import Decimal
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor

# Context variable for tracking correlation IDs across async boundaries
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Set correlation ID for the current context.

    Args:
        correlation_id: Custom correlation ID. If None, generates a new UUID.

    Returns:
        The correlation ID that was set.
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    _correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return _correlation_id_var.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID from context."""
    _correlation_id_var.set(None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add correlation ID to all log entries."""
    correlation_id = get_correlation_id()
    if "correlation_id" not in event_dict:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def filter_sensitive_data(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Filter sensitive data from logs (passwords, database URLs, etc.)."""
    sensitive_keys = {
        "password",
        "api_key",
        "secret",
        "token",
        "database_url",
    }

    for key in sensitive_keys:
        if key in event_dict:
            event_dict[key] = "***REDACTED***"

    return event_dict


def stringify_decimals(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Render Decimal values as plain strings so JSON output keeps exact amounts."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application context to every log entry."""
    from openledger import __version__

    event_dict["app"] = "openledger"
    event_dict["version"] = __version__
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "console" for colored dev output, "json" for log
            aggregation, "keyvalue" for plain key=value lines
    """
    shared_processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_correlation_id,
        add_app_context,
        filter_sensitive_data,
        stringify_decimals,
    ]

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    elif log_format == "keyvalue":
        processors = shared_processors + [
            structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]),
        ]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
        force=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("payment_processed", payment_id=123, amount=Decimal("1000.00"))
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


class LogPerformance:
    """
    Context manager for logging performance metrics.

    Usage:
        with LogPerformance("invoice_balance_repair", logger):
            ...
    """

    def __init__(self, operation: str, logger: structlog.stdlib.BoundLogger):
        self.operation = operation
        self.logger = logger
        self.start_time: float = 0

    def __enter__(self) -> "LogPerformance":
        import time

        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.operation}_started")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        import time

        duration = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.info(
                f"{self.operation}_completed",
                duration_ms=round(duration * 1000, 2),
                operation=self.operation,
            )
        else:
            self.logger.error(
                f"{self.operation}_failed",
                duration_ms=round(duration * 1000, 2),
                operation=self.operation,
                error=str(exc_val),
                error_type=exc_type.__name__ if exc_type else None,
            )


# Audit logging helpers
def log_payment_processed(
    logger: structlog.stdlib.BoundLogger,
    payment_id: int,
    customer_id: int,
    amount: Decimal,
    allocated: Decimal,
    credited: Decimal,
    recorded_by: str,
) -> None:
    """Log payment processing for audit trail."""
    logger.info(
        "payment_processed",
        action="create",
        resource="customer_payment",
        payment_id=payment_id,
        customer_id=customer_id,
        amount=amount,
        allocated_amount=allocated,
        credit_amount=credited,
        user_id=recorded_by,
    )


def log_credit_created(
    logger: structlog.stdlib.BoundLogger,
    credit_id: int,
    customer_id: int,
    amount: Decimal,
    reason: str,
    source_payment_id: int | None,
) -> None:
    """Log credit creation for audit trail."""
    logger.info(
        "credit_created",
        action="create",
        resource="credit",
        credit_id=credit_id,
        customer_id=customer_id,
        amount=amount,
        reason=reason,
        source_payment_id=source_payment_id,
    )


def log_credit_applied(
    logger: structlog.stdlib.BoundLogger,
    credit_id: int,
    invoice_id: int,
    amount: Decimal,
    applied_by: str,
) -> None:
    """Log credit application for audit trail."""
    logger.info(
        "credit_applied",
        action="apply",
        resource="credit",
        credit_id=credit_id,
        invoice_id=invoice_id,
        amount=amount,
        user_id=applied_by,
    )


# Initialize logging on module import
configure_logging()
