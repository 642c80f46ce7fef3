"""Per-tenant migration orchestration (Alembic-backed)."""

from schema_tenancy.migrations.engine import AlembicMigrationEngine, MigrationEngine
from schema_tenancy.migrations.manager import TenantMigrator
from schema_tenancy.migrations.reporter import MigrationReporter, NullReporter

__all__ = [
    "AlembicMigrationEngine",
    "MigrationEngine",
    "MigrationReporter",
    "NullReporter",
    "TenantMigrator",
]
