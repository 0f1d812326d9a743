from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from crm_admin.core import startup_checks


def _engine():
    return create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def test_sqlite_is_forbidden_in_production(monkeypatch):
    monkeypatch.setattr(startup_checks, "IS_PROD", True)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./crm_admin.db")

    with pytest.raises(RuntimeError):
        startup_checks.validate_database_environment()


def test_postgres_is_allowed_in_production(monkeypatch):
    monkeypatch.setattr(startup_checks, "IS_PROD", True)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "postgresql://db/crm")

    startup_checks.validate_database_environment()


def test_missing_alembic_config_fails(monkeypatch, tmp_path):
    monkeypatch.setattr(startup_checks, "ENV_NORMALIZED", "production")

    with pytest.raises(RuntimeError):
        startup_checks.ensure_migrations_applied(engine=_engine(), alembic_config_path=tmp_path / "missing.ini")


def test_pending_migrations_fail_startup(monkeypatch):
    monkeypatch.setattr(startup_checks, "ENV_NORMALIZED", "production")
    monkeypatch.setattr(startup_checks, "IS_PROD", True)
    engine = _engine()
    with engine.begin() as connection:
        connection.exec_driver_sql("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
        connection.exec_driver_sql("INSERT INTO alembic_version (version_num) VALUES ('stale')")

    alembic_ini = Path(__file__).resolve().parents[1] / "alembic.ini"
    with pytest.raises(RuntimeError, match="Pending migrations"):
        startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=alembic_ini)


def test_head_revision_passes(monkeypatch):
    monkeypatch.setattr(startup_checks, "ENV_NORMALIZED", "production")
    engine = _engine()
    with engine.begin() as connection:
        connection.exec_driver_sql("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
        connection.exec_driver_sql(
            "INSERT INTO alembic_version (version_num) VALUES ('0001_staff_provisioning_schema')"
        )

    alembic_ini = Path(__file__).resolve().parents[1] / "alembic.ini"
    startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=alembic_ini)
