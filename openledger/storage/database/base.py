"""Database base configuration and session factory."""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, MetaData, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from ...exceptions import ConfigurationError
from ...utils.datetime import utc_now

# Naming convention for constraints (helps with Alembic migrations)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)


class Base(DeclarativeBase):
    """Base class for all database models."""

    metadata = metadata

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class IntPKMixin:
    """Integer surrogate key plus creation/update timestamps."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )


# Database engine and session factory (configured at runtime by init_db)
engine: Engine | None = None
SessionLocal: sessionmaker | None = None


def build_session_factory(database_url: str, *, echo: bool = False) -> sessionmaker:
    """Create an engine plus schema and return a session factory bound to it."""
    if not database_url:
        raise ConfigurationError(
            "Database URL is not configured", setting="database_url", expected="SQLAlchemy URL"
        )

    from . import models  # noqa: F401  (registers the mappers)

    new_engine = create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
    )
    Base.metadata.create_all(bind=new_engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=new_engine)


def init_db(database_url: str = "sqlite:///./openledger.db", *, echo: bool = False) -> sessionmaker:
    """Initialize the process-wide engine and session factory."""
    global engine, SessionLocal

    SessionLocal = build_session_factory(database_url, echo=echo)
    engine = SessionLocal.kw["bind"]
    return SessionLocal


def get_session_factory() -> sessionmaker:
    """Return the configured session factory."""
    if SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return SessionLocal
