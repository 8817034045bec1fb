"""Domain enums for payments and credits."""

from enum import Enum


class PaymentStatus(str, Enum):
    """Customer payment status.

    Lifecycle:
        COMPLETED (recorded and allocated)
        PENDING (recorded, not yet cleared)
        COMPLETED → REVERSED (bounced or refunded)
    """

    COMPLETED = "COMPLETED"  # Recorded and allocated
    PENDING = "PENDING"  # Awaiting clearance
    REVERSED = "REVERSED"  # Bounced or refunded

    def __str__(self) -> str:
        return self.value


class PaymentMethod(str, Enum):
    """How the customer paid."""

    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    CARD = "CARD"
    MOBILE_MONEY = "MOBILE_MONEY"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Human-readable name."""
        return self.value.replace("_", " ").title()


class CreditStatus(str, Enum):
    """Customer credit status.

    Lifecycle:
        ACTIVE → APPLIED (available amount consumed)
        ACTIVE → EXPIRED (past expiry date)
    """

    ACTIVE = "ACTIVE"  # Has spendable balance
    APPLIED = "APPLIED"  # Fully consumed
    EXPIRED = "EXPIRED"  # No longer spendable

    def __str__(self) -> str:
        return self.value

    @property
    def is_spendable(self) -> bool:
        """Whether the credit can still be applied to invoices."""
        return self is CreditStatus.ACTIVE


class CreditReason(str, Enum):
    """Why a credit was issued."""

    OVERPAYMENT = "OVERPAYMENT"  # Payment exceeded open balances
    REFUND = "REFUND"  # Returned goods or cancelled service
    ADJUSTMENT = "ADJUSTMENT"  # Manual correction
    GOODWILL = "GOODWILL"  # Commercial gesture

    def __str__(self) -> str:
        return self.value


class NotificationKind(str, Enum):
    """Notification severity sent by long-running jobs."""

    PROGRESS = "PROGRESS"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"

    def __str__(self) -> str:
        return self.value
