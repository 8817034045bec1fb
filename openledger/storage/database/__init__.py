"""Database models and session management."""

from .base import Base, build_session_factory, get_session_factory, init_db
from .models import Customer, Invoice, InvoiceStatus, status_for_balance

__all__ = [
    "Base",
    "Customer",
    "Invoice",
    "InvoiceStatus",
    "build_session_factory",
    "get_session_factory",
    "init_db",
    "status_for_balance",
]
