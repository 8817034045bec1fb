"""Tests for engine and session factory setup."""

import pytest
from sqlalchemy import inspect

from openledger.exceptions import ConfigurationError
from openledger.storage.database import base

pytestmark = pytest.mark.unit


class TestSessionFactory:
    def test_build_creates_schema(self, tmp_path):
        factory = base.build_session_factory(f"sqlite:///{tmp_path / 'fresh.db'}")

        tables = set(inspect(factory.kw["bind"]).get_table_names())

        assert {
            "customers",
            "invoices",
            "customer_payments",
            "payment_applications",
            "credits",
            "credit_applications",
        } <= tables
        factory.kw["bind"].dispose()

    def test_missing_url_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            base.build_session_factory("")

    def test_get_session_factory_requires_init(self, monkeypatch):
        monkeypatch.setattr(base, "SessionLocal", None)

        with pytest.raises(RuntimeError):
            base.get_session_factory()

    def test_init_db_sets_globals(self, monkeypatch, tmp_path):
        monkeypatch.setattr(base, "SessionLocal", None)
        monkeypatch.setattr(base, "engine", None)

        factory = base.init_db(f"sqlite:///{tmp_path / 'global.db'}")

        assert base.get_session_factory() is factory
        assert base.engine is factory.kw["bind"]
        base.engine.dispose()
