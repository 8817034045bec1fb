"""Application layer for payments.

Contains business logic orchestration services following Service Layer pattern.
"""

__all__ = [
    # Services
    "PaymentAllocationService",
    "CreditLedgerService",
    "LedgerService",
    "MaintenanceService",
    # Notifications
    "Notifier",
    "LoggingNotifier",
    "ConsoleNotifier",
]

from .notifications import ConsoleNotifier, LoggingNotifier, Notifier
from .services import (
    CreditLedgerService,
    LedgerService,
    MaintenanceService,
    PaymentAllocationService,
)
