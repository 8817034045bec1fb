"""Persistence layer: ORM models, session factory and unit of work."""
