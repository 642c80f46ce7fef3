"""Shared pytest fixtures for the schema-tenancy test suite.

Hierarchy
---------
FakePostgresConnection  in-process stand-in for one PostgreSQL session
FakeMigrationEngine     per-schema migration bookkeeping keyed by search_path
pg                      fresh FakePostgresConnection per test
switcher                SchemaSwitcher wired to ``pg``
context                 TenantContext over ``switcher``
migration_engine        FakeMigrationEngine reading ``pg``'s search_path
migrator                TenantMigrator over ``context`` + ``migration_engine``
tenant_factory          callable that builds Tenant objects with sensible defaults
mem_store               fresh InMemoryTenantStore per test
fake_scope              patches the manager's engine checkout to bind ``pg``
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

import pytest

from schema_tenancy.core.context import TenantContext
from schema_tenancy.core.types import Tenant, TenantStatus
from schema_tenancy.isolation.connection import connection_scope
from schema_tenancy.isolation.schema import SchemaSwitcher
from schema_tenancy.migrations.manager import TenantMigrator
from schema_tenancy.migrations.reporter import MigrationReporter
from schema_tenancy.storage.memory import InMemoryTenantStore
from tests.fakes import FakeEngine, FakeMigrationEngine, FakePostgresConnection

############
# Fixtures #
############


@pytest.fixture(autouse=True)
def clear_context():
    """Ensure every test starts and ends with an empty tenant context."""
    TenantContext.clear()
    yield
    TenantContext.clear()


@pytest.fixture
def pg() -> FakePostgresConnection:
    return FakePostgresConnection()


@pytest.fixture
def switcher(pg: FakePostgresConnection) -> SchemaSwitcher:
    return SchemaSwitcher(lambda: pg)


@pytest.fixture
def context(switcher: SchemaSwitcher) -> TenantContext:
    return TenantContext(switcher)


@pytest.fixture
def migration_engine(pg: FakePostgresConnection) -> FakeMigrationEngine:
    return FakeMigrationEngine(pg, revisions=["0001_init", "0002_orders"])


@pytest.fixture
def migrator(
    context: TenantContext, migration_engine: FakeMigrationEngine, mem_store: InMemoryTenantStore
) -> TenantMigrator:
    return TenantMigrator(context, migration_engine, store=mem_store, reporter=MigrationReporter())


##################
# Tenant factory #
##################


@pytest.fixture
def tenant_factory():
    """Return a factory that produces unique Tenant objects."""
    counter = [0]
    base = datetime(2024, 1, 1, tzinfo=UTC)

    def _make(
        *,
        subdomain: str | None = None,
        name: str | None = None,
        status: TenantStatus = TenantStatus.ACTIVE,
        schema_name: str | None = None,
        tenant_id: str | None = None,
    ) -> Tenant:
        counter[0] += 1
        n = counter[0]
        ts = base + timedelta(seconds=n)
        return Tenant(
            id=tenant_id or f"t-{n:04d}",
            subdomain=subdomain or f"tenant{n}",
            name=name or f"Test Tenant {n}",
            status=status,
            schema_name=schema_name,
            created_at=ts,
            updated_at=ts,
        )

    return _make


@pytest.fixture
def mem_store() -> InMemoryTenantStore:
    return InMemoryTenantStore()


####################
# Engine checkout  #
####################


@pytest.fixture
def fake_scope(monkeypatch, pg):
    """Make ``TenancyManager.connection()`` check ``pg`` out of a one-session engine.

    The real :func:`connection_scope` still runs, so binding, release and
    the session reset are exercised.  Returns the list of engines a checkout
    was requested from.
    """
    checkouts: list[object] = []

    @asynccontextmanager
    async def _scope(engine, default_schema="public"):
        checkouts.append(engine)
        async with connection_scope(FakeEngine(pg), default_schema) as adapter:
            yield adapter

    monkeypatch.setattr("schema_tenancy.manager.connection_scope", _scope)
    return checkouts
