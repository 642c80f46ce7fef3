"""Human-readable progress and summary reporting for tenant migrations.

Reports go through :mod:`logging` (logger ``schema_tenancy.migrations.reporter``)
so applications decide where they end up.  :class:`NullReporter` is used
when an orchestrator operation runs with ``verbose=False``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from schema_tenancy.core.types import MigrationStatus, SchemaState

if TYPE_CHECKING:
    from collections.abc import Iterable

    from schema_tenancy.core.types import MigrationReport, MigrationResult, SchemaStatus

logger = logging.getLogger(__name__)


class MigrationReporter:
    """Emit migration progress lines and summaries.

    Args:
        log: Logger to write to.  Defaults to this module's logger.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def _emit(self, level: int, msg: str, *args: Any) -> None:
        self._log.log(level, msg, *args)

    ###########
    # Migrate #
    ###########

    def migrations_started(self, count: int) -> None:
        self._emit(logging.INFO, "Starting migrations for %d tenant schemas", count)

    def migrating(self, schema_name: str) -> None:
        self._emit(logging.INFO, "Migrating schema %s", schema_name)

    def migration_finished(self, result: MigrationResult) -> None:
        self._emit(logging.INFO, "  %s: %s", result.schema_name, result.message)

    def schema_missing(self, schema_name: str) -> None:
        self._emit(logging.WARNING, "  Schema %r does not exist", schema_name)

    def migration_failed(self, schema_name: str, reason: str) -> None:
        self._emit(logging.ERROR, "  %s: migration failed: %s", schema_name, reason)

    def migration_summary(self, report: MigrationReport) -> None:
        summary = report.summary
        self._emit(
            logging.INFO,
            "Migration summary: %d successful, %d failed, %d skipped",
            summary[MigrationStatus.SUCCESS],
            summary[MigrationStatus.ERROR],
            summary[MigrationStatus.SKIPPED],
        )

    #########
    # Setup #
    #########

    def setup_started(self, schema_name: str) -> None:
        self._emit(logging.INFO, "Setting up tenant %s", schema_name)

    def schema_present(self, schema_name: str) -> None:
        self._emit(logging.INFO, "  Schema %s already exists", schema_name)

    def schema_created(self, schema_name: str) -> None:
        self._emit(logging.INFO, "  Schema %s created", schema_name)

    def setup_completed(self, schema_name: str) -> None:
        self._emit(logging.INFO, "  Tenant %s setup completed", schema_name)

    def setup_failed(self, schema_name: str, reason: str) -> None:
        self._emit(logging.ERROR, "  Setup of %s failed: %s", schema_name, reason)

    def setup_all_started(self, count: int) -> None:
        self._emit(logging.INFO, "Setting up %d tenants", count)

    def setup_summary(self, report: MigrationReport) -> None:
        summary = report.summary
        self._emit(
            logging.INFO,
            "Setup summary: %d successful, %d failed",
            summary[MigrationStatus.SUCCESS],
            summary[MigrationStatus.ERROR],
        )

    def tenant_created(self, schema_name: str) -> None:
        self._emit(logging.INFO, "Creating new tenant %s", schema_name)

    ############
    # Rollback #
    ############

    def rollback_started(self, schema_name: str, steps: int) -> None:
        self._emit(logging.WARNING, "Rolling back %d step(s) for %s", steps, schema_name)

    def rollback_completed(self, schema_name: str) -> None:
        self._emit(logging.INFO, "  Rollback of %s completed", schema_name)

    def rollback_failed(self, schema_name: str, reason: str) -> None:
        self._emit(logging.ERROR, "  Rollback of %s failed: %s", schema_name, reason)

    ##########
    # Status #
    ##########

    def status_report(self, statuses: Iterable[SchemaStatus]) -> None:
        self._emit(logging.INFO, "Migration status report:")
        for status in statuses:
            if status.state == SchemaState.UP_TO_DATE:
                self._emit(
                    logging.INFO,
                    "  %s: up to date (%d applied)",
                    status.schema_name,
                    status.applied_count,
                )
            elif status.state == SchemaState.PENDING:
                self._emit(
                    logging.INFO,
                    "  %s: %d pending, %d applied",
                    status.schema_name,
                    status.pending_count,
                    status.applied_count,
                )
            else:
                self._emit(logging.ERROR, "  %s: error - %s", status.schema_name, status.error)

    def tenant_schemas(self, schemas: Iterable[str]) -> None:
        names = list(schemas)
        self._emit(logging.INFO, "Found %d tenant schemas", len(names))
        for name in names:
            self._emit(logging.INFO, "  - %s", name)


class NullReporter(MigrationReporter):
    """Reporter that discards everything."""

    def _emit(self, level: int, msg: str, *args: Any) -> None:
        return None


__all__ = ["MigrationReporter", "NullReporter"]
