"""Per-tenant migration orchestration across PostgreSQL schemas.

:class:`TenantMigrator` enumerates tenant schemas, activates each one through
:meth:`TenantContext.with_tenant <schema_tenancy.core.context.TenantContext.with_tenant>`
and drives a :class:`~schema_tenancy.migrations.engine.MigrationEngine`
inside it.  Each tenant runs through the same small state machine::

    START -> schema missing   -> SKIPPED            (raises when strict)
    START -> schema exists    -> ACTIVATE -> CHECK_PENDING
    CHECK_PENDING -> none     -> SUCCESS "No pending migrations"
    CHECK_PENDING -> N        -> MIGRATE  -> SUCCESS "N migrations applied"
    MIGRATE       -> raises   -> ERROR              (raises when strict)
    any state     -> RESTORE previous schema (always)

Bulk operations run tenants sequentially in lexicographic schema order.  A
failure is recorded in that tenant's result and the run moves on, unless
the caller asked for strict mode, in which case the first failure aborts
the run after the previous schema has been restored.

Architecture
------------
::

    TenantMigrator
    ├── tenant_schemas()                     # catalog minus system schemas
    ├── migrate_all(ignore_errors=False)     # every tenant schema
    ├── migrate_tenant(schema)               # one schema
    ├── setup_tenant(schema)                 # create if missing, then migrate
    ├── setup_all_tenants()                  # every tenant in the store
    ├── create_tenant_with_schema(attrs)     # store.create + setup_tenant
    ├── migration_status()                   # read-only scan
    └── rollback_tenant(schema, steps=1)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from schema_tenancy.core.exceptions import (
    ConfigurationError,
    MigrationError,
    SchemaNotFoundError,
    TenancyError,
)
from schema_tenancy.core.types import (
    MigrationReport,
    MigrationResult,
    MigrationStatus,
    RawSchemaName,
    SchemaState,
    SchemaStatus,
    schema_name_for,
)
from schema_tenancy.migrations.reporter import MigrationReporter, NullReporter
from schema_tenancy.utils.validation import require_schema_name

if TYPE_CHECKING:
    from collections.abc import Mapping

    from schema_tenancy.core.context import TenantContext
    from schema_tenancy.isolation.schema import SchemaSwitcher
    from schema_tenancy.migrations.engine import MigrationEngine
    from schema_tenancy.storage.tenant_store import TenantStore

logger = logging.getLogger(__name__)

#: Catalog schemas that never hold tenant data.
SYSTEM_SCHEMAS: frozenset[str] = frozenset({"information_schema", "pg_catalog", "public"})

#: Prefixes of per-session temporary and TOAST schemas.
SYSTEM_SCHEMA_PREFIXES: tuple[str, ...] = ("pg_temp", "pg_toast")


def _reason(exc: BaseException) -> str:
    if isinstance(exc, MigrationError):
        return exc.reason
    if isinstance(exc, TenancyError):
        return exc.message
    return str(exc)


class TenantMigrator:
    """Apply, inspect and roll back migrations per tenant schema.

    Args:
        context: Tenant context used to activate each schema.  Its switcher
            provides catalog access.
        engine: Migration runner acting on the active schema.
        store: Tenant registry, required by :meth:`setup_all_tenants` and
            :meth:`create_tenant_with_schema`.
        reporter: Progress reporter used for ``verbose=True`` calls.
        auto_create_schemas: Whether :meth:`setup_tenant` creates a missing
            schema by default.

    Example::

        migrator = TenantMigrator(context, AlembicMigrationEngine("alembic.ini"))

        async with connection_scope(engine):
            report = await migrator.migrate_all(ignore_errors=True)
        for result in report.failed:
            print(result.schema_name, result.message)
    """

    def __init__(
        self,
        context: TenantContext,
        engine: MigrationEngine,
        store: TenantStore | None = None,
        reporter: MigrationReporter | None = None,
        *,
        auto_create_schemas: bool = True,
    ) -> None:
        self.context = context
        self.engine = engine
        self.store = store
        self.reporter = reporter or MigrationReporter()
        self.auto_create_schemas = auto_create_schemas
        self._null_reporter = NullReporter()

    @property
    def switcher(self) -> SchemaSwitcher:
        return self.context.switcher

    def _reporter(self, verbose: bool) -> MigrationReporter:
        return self.reporter if verbose else self._null_reporter

    def _require_store(self, operation: str) -> TenantStore:
        if self.store is None:
            raise ConfigurationError(
                parameter="tenant_store",
                reason=f"{operation} requires a tenant store",
            )
        return self.store

    ##################
    # Schema listing #
    ##################

    def is_tenant_schema(self, schema_name: str) -> bool:
        """Return ``False`` for system, temporary, TOAST and default schemas."""
        if schema_name in SYSTEM_SCHEMAS or schema_name == self.context.default_schema:
            return False
        return not schema_name.startswith(SYSTEM_SCHEMA_PREFIXES)

    async def tenant_schemas(self, verbose: bool = False) -> list[str]:
        """Return tenant schema names, sorted, recomputed from the catalog."""
        schemas = sorted(
            name for name in await self.switcher.list_schemas() if self.is_tenant_schema(name)
        )
        self._reporter(verbose).tenant_schemas(schemas)
        return schemas

    #############
    # Migration #
    #############

    async def migrate_all(
        self,
        ignore_errors: bool = False,
        verbose: bool = True,
    ) -> MigrationReport:
        """Migrate every tenant schema, one after another.

        Args:
            ignore_errors: Record failures and continue.  When ``False`` the
                first failure propagates.
            verbose: Emit progress through the reporter.

        Returns:
            A :class:`~schema_tenancy.core.types.MigrationReport` with one
            result per schema, in processing order.
        """
        reporter = self._reporter(verbose)
        schemas = await self.tenant_schemas()
        reporter.migrations_started(len(schemas))

        results = [
            await self.migrate_tenant(
                schema_name,
                raise_on_error=not ignore_errors,
                verbose=verbose,
            )
            for schema_name in schemas
        ]
        report = MigrationReport(results=tuple(results))
        reporter.migration_summary(report)
        logger.info(
            "migrate_all complete: %d/%d schemas succeeded",
            len(report.succeeded),
            len(report.results),
        )
        return report

    async def migrate_tenant(
        self,
        schema_name: str,
        raise_on_error: bool = True,
        verbose: bool = True,
    ) -> MigrationResult:
        """Apply pending migrations to *schema_name*.

        A missing schema is never activated.  Otherwise the previously active
        schema is restored whatever the outcome.

        Raises:
            SchemaNotFoundError: Missing schema with ``raise_on_error``.
            MigrationError: Engine failure with ``raise_on_error``.
            TenancyError: Switch or connection failure with ``raise_on_error``.
        """
        require_schema_name(schema_name, operation="migrate_tenant")
        reporter = self._reporter(verbose)

        try:
            exists = await self.switcher.schema_exists(schema_name)
            if exists:
                reporter.migrating(schema_name)
                async with self.context.with_tenant(RawSchemaName(schema_name)):
                    result = await self._apply_pending(schema_name)
        except TenancyError as exc:
            reason = _reason(exc)
            reporter.migration_failed(schema_name, reason)
            if raise_on_error:
                raise
            logger.exception("Migration failed for schema %r", schema_name)
            return MigrationResult(
                schema_name=schema_name,
                status=MigrationStatus.ERROR,
                message=f"Migration failed: {reason}",
                error=exc,
            )

        if not exists:
            reporter.schema_missing(schema_name)
            if raise_on_error:
                raise SchemaNotFoundError(schema_name)
            return MigrationResult(
                schema_name=schema_name,
                status=MigrationStatus.SKIPPED,
                message=f"Schema '{schema_name}' does not exist",
            )

        reporter.migration_finished(result)
        return result

    async def _apply_pending(self, schema_name: str) -> MigrationResult:
        try:
            pending = list(await self.engine.pending_migrations())
            if pending:
                await self.engine.migrate()
        except TenancyError:
            raise
        except Exception as exc:
            raise MigrationError(schema_name, "migrate", str(exc)) from exc

        if not pending:
            message = "No pending migrations"
        else:
            message = f"{len(pending)} migrations applied"
            logger.info("Applied %d migrations to schema %r", len(pending), schema_name)
        return MigrationResult(
            schema_name=schema_name,
            status=MigrationStatus.SUCCESS,
            message=message,
        )

    #########
    # Setup #
    #########

    async def setup_tenant(
        self,
        schema_name: str,
        create_missing: bool | None = None,
        verbose: bool = True,
    ) -> MigrationResult:
        """Create *schema_name* if needed, then migrate it.

        Args:
            schema_name: Tenant schema.
            create_missing: Create the schema when absent.  Defaults to the
                migrator's ``auto_create_schemas``.
            verbose: Emit progress through the reporter.

        Raises:
            SchemaNotFoundError: Schema absent and creation disabled.
            TenancyError: Creation or migration failed.
        """
        require_schema_name(schema_name, operation="setup_tenant")
        reporter = self._reporter(verbose)
        create = self.auto_create_schemas if create_missing is None else create_missing
        reporter.setup_started(schema_name)

        try:
            if await self.switcher.schema_exists(schema_name):
                reporter.schema_present(schema_name)
            elif create:
                await self.switcher.create_schema(schema_name)
                reporter.schema_created(schema_name)
            else:
                raise SchemaNotFoundError(
                    schema_name, details={"hint": "enable auto_create_schemas"}
                )
            result = await self.migrate_tenant(schema_name, raise_on_error=True, verbose=verbose)
        except TenancyError as exc:
            reporter.setup_failed(schema_name, _reason(exc))
            raise

        reporter.setup_completed(schema_name)
        return result

    async def setup_all_tenants(self, verbose: bool = True) -> MigrationReport:
        """Run :meth:`setup_tenant` for every tenant in the store.

        Raises:
            ConfigurationError: When no tenant store is configured, or a
                tenant has no usable schema name.
        """
        store = self._require_store("setup_all_tenants")
        reporter = self._reporter(verbose)
        reporter.setup_all_started(await store.count())

        results: list[MigrationResult] = []
        async for tenant in store.iter_all():
            results.append(await self.setup_tenant(schema_name_for(tenant), verbose=verbose))

        report = MigrationReport(results=tuple(results))
        reporter.setup_summary(report)
        return report

    async def create_tenant_with_schema(
        self,
        attributes: Mapping[str, Any],
        verbose: bool = True,
    ) -> Any:
        """Create a tenant in the store, then set up its schema.

        Returns:
            The created tenant.
        """
        store = self._require_store("create_tenant_with_schema")
        tenant = await store.create_from_attributes(attributes)
        schema_name = schema_name_for(tenant)
        self._reporter(verbose).tenant_created(schema_name)
        await self.setup_tenant(schema_name, verbose=verbose)
        return tenant

    ##########
    # Status #
    ##########

    async def migration_status(self, verbose: bool = True) -> list[SchemaStatus]:
        """Report pending and applied counts for every tenant schema.

        Nothing is migrated.  A failing schema is reported with state
        ``error`` and the scan continues.
        """
        statuses = [
            await self._schema_status(schema_name)
            for schema_name in await self.tenant_schemas()
        ]
        self._reporter(verbose).status_report(statuses)
        return statuses

    async def _schema_status(self, schema_name: str) -> SchemaStatus:
        try:
            async with self.context.with_tenant(RawSchemaName(schema_name)):
                pending = list(await self.engine.pending_migrations())
                applied = list(await self.engine.applied_versions())
        except Exception as exc:
            logger.warning("Could not read migration status of schema %r: %s", schema_name, exc)
            return SchemaStatus(
                schema_name=schema_name,
                state=SchemaState.ERROR,
                error=_reason(exc),
            )
        return SchemaStatus(
            schema_name=schema_name,
            state=SchemaState.PENDING if pending else SchemaState.UP_TO_DATE,
            pending_count=len(pending),
            applied_count=len(applied),
        )

    ############
    # Rollback #
    ############

    async def rollback_tenant(
        self,
        schema_name: str,
        steps: int = 1,
        verbose: bool = True,
    ) -> None:
        """Revert the last *steps* migrations of *schema_name*.

        The previously active schema is restored before any failure
        propagates.

        Raises:
            ValueError: When *steps* is smaller than 1.
            SchemaNotFoundError: When the schema does not exist.
            MigrationError: When the engine fails.
        """
        require_schema_name(schema_name, operation="rollback_tenant")
        if steps < 1:
            msg = f"steps must be at least 1, got {steps}"
            raise ValueError(msg)
        if not await self.switcher.schema_exists(schema_name):
            raise SchemaNotFoundError(schema_name)

        reporter = self._reporter(verbose)
        reporter.rollback_started(schema_name, steps)
        try:
            async with self.context.with_tenant(RawSchemaName(schema_name)):
                try:
                    paths = await self.engine.migrations_paths()
                    await self.engine.rollback(paths, steps)
                except TenancyError:
                    raise
                except Exception as exc:
                    raise MigrationError(schema_name, "rollback", str(exc)) from exc
        except TenancyError as exc:
            reporter.rollback_failed(schema_name, _reason(exc))
            raise

        reporter.rollback_completed(schema_name)
        logger.warning("Rolled back %d step(s) for schema %r", steps, schema_name)


__all__ = ["SYSTEM_SCHEMAS", "SYSTEM_SCHEMA_PREFIXES", "TenantMigrator"]
