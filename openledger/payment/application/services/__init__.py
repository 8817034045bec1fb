"""Application services for the payment ledger."""

from .allocation_service import PaymentAllocationService, parse_payment_method
from .credit_service import CreditLedgerService
from .ledger_service import LedgerService
from .maintenance_service import MaintenanceService

__all__ = [
    "CreditLedgerService",
    "LedgerService",
    "MaintenanceService",
    "PaymentAllocationService",
    "parse_payment_method",
]
