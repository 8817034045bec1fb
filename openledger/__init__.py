"""OpenLedger - payment allocation and customer credit ledger engine."""

__version__ = "0.1.0"
