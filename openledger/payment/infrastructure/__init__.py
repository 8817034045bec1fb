"""Infrastructure layer for payments: repositories over SQLAlchemy sessions."""
