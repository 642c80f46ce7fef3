"""Unit tests — schema_tenancy.migrations.engine

Runs the real Alembic command API against an in-memory SQLite connection:
schemas play no part here, only the revision bookkeeping the orchestrator
relies on (pending, applied, upgrade, relative downgrade, version paths).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest
import sqlalchemy as sa

from schema_tenancy.isolation.adapters import ConnectionAdapter
from schema_tenancy.migrations.engine import AlembicMigrationEngine, MigrationEngine
from tests.helpers import write_alembic_project

pytestmark = pytest.mark.unit


class _SyncConnectionAdapter(ConnectionAdapter):
    """Adapter handing a plain synchronous connection to ``run_sync``."""

    def __init__(self, connection: sa.Connection) -> None:
        self._connection = connection

    @property
    def raw(self) -> sa.Connection:
        return self._connection

    async def execute(self, sql: str) -> None:
        self._connection.exec_driver_sql(sql)

    async def fetch_rows(self, sql: str) -> list[Any]:
        return list(self._connection.exec_driver_sql(sql).all())

    async def run_sync(self, fn):
        return fn(self._connection)


@pytest.fixture
def alembic_ini(tmp_path) -> Path:
    return write_alembic_project(tmp_path)


@pytest.fixture
def sqlite_connection():
    engine = sa.create_engine("sqlite://")
    with engine.connect() as connection:
        yield connection
    engine.dispose()


@pytest.fixture
def engine(alembic_ini, sqlite_connection) -> AlembicMigrationEngine:
    adapter = _SyncConnectionAdapter(sqlite_connection)
    return AlembicMigrationEngine(alembic_ini, connection_provider=lambda: adapter)


def _tables(connection: sa.Connection) -> set[str]:
    return set(sa.inspect(connection).get_table_names())


class TestAlembicMigrationEngine:
    def test_satisfies_protocol(self, engine):
        assert isinstance(engine, MigrationEngine)

    async def test_fresh_database_has_everything_pending(self, engine):
        assert await engine.pending_migrations() == ["0001", "0002"]
        assert await engine.applied_versions() == []

    async def test_migrate_applies_all(self, engine, sqlite_connection):
        await engine.migrate()
        assert await engine.pending_migrations() == []
        assert sorted(await engine.applied_versions()) == ["0001", "0002"]
        assert {"widgets", "gadgets"} <= _tables(sqlite_connection)

    async def test_rollback_relative_steps(self, engine, sqlite_connection):
        await engine.migrate()
        await engine.rollback(await engine.migrations_paths(), 1)
        assert await engine.applied_versions() == ["0001"]
        assert await engine.pending_migrations() == ["0002"]
        assert "gadgets" not in _tables(sqlite_connection)

    async def test_migrations_paths_default_to_versions_dir(self, engine, alembic_ini):
        paths = await engine.migrations_paths()
        assert [os.path.normpath(p) for p in paths] == [
            os.path.normpath(alembic_ini.parent / "migrations" / "versions")
        ]

    def test_missing_ini_logs_warning(self, tmp_path, caplog):
        AlembicMigrationEngine(tmp_path / "nope.ini")
        assert any("alembic.ini not found" in m for m in caplog.messages)
