"""Migration engine contract and its Alembic implementation.

The orchestrator never parses migration files or version tables itself; it
talks to a :class:`MigrationEngine`.  :class:`AlembicMigrationEngine` runs
Alembic on the connection bound to the current execution context, *after*
the orchestrator has activated the tenant schema, so both the migrations
and the ``alembic_version`` table resolve inside that schema.

Alembic integration
-------------------
The live connection is handed to ``env.py`` through
``Config.attributes["connection"]``.  A minimal online branch looks like::

    # alembic/env.py
    def run_migrations_online():
        connection = config.attributes.get("connection")
        if connection is None:
            ...  # regular engine-based path for the default schema
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()

Because the tenant's ``search_path`` is already set on that connection,
``env.py`` must not pass ``version_table_schema`` or qualify tables with a
schema.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from alembic import command
from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from schema_tenancy.isolation.connection import get_bound_connection

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy import Connection

    from schema_tenancy.isolation.adapters import ConnectionAdapter

logger = logging.getLogger(__name__)


@runtime_checkable
class MigrationEngine(Protocol):
    """Capability the orchestrator needs from a migration runner.

    Every method acts on the schema currently active on the execution
    context's connection.
    """

    async def pending_migrations(self) -> Sequence[str]:
        """Return identifiers of migrations not yet applied, in apply order."""
        ...

    async def applied_versions(self) -> Sequence[str]:
        """Return identifiers of migrations already applied."""
        ...

    async def migrate(self) -> None:
        """Apply every pending migration."""
        ...

    async def rollback(self, paths: Sequence[str], steps: int) -> None:
        """Revert the last *steps* migrations found under *paths*."""
        ...

    async def migrations_paths(self) -> list[str]:
        """Return the directories migration scripts are loaded from."""
        ...


class AlembicMigrationEngine:
    """Run Alembic against the connection bound to the current context.

    Args:
        config_path: Path to ``alembic.ini``.
        connection_provider: Returns the connection to migrate on.  Defaults
            to the connection bound to the calling task or thread.

    Example::

        engine = AlembicMigrationEngine("alembic.ini")
        async with connection_scope(db_engine):
            async with context.with_tenant("acme"):
                print(await engine.pending_migrations())
                await engine.migrate()
    """

    def __init__(
        self,
        config_path: str | Path = "alembic.ini",
        connection_provider: Callable[[], ConnectionAdapter] = get_bound_connection,
    ) -> None:
        self._config_path = Path(config_path)
        self._connection_provider = connection_provider

        if not self._config_path.exists():
            logger.warning(
                "alembic.ini not found at %s; migration calls will fail.",
                self._config_path.resolve(),
            )

    ####################
    # Internal helpers #
    ####################

    def _config(self, connection: Connection | None = None) -> AlembicConfig:
        # A fresh Config per call: cfg.attributes is mutated below.
        cfg = AlembicConfig(str(self._config_path))
        if connection is not None:
            cfg.attributes["connection"] = connection
        return cfg

    def _script(self) -> ScriptDirectory:
        return ScriptDirectory.from_config(self._config())

    def _applied_sync(self, connection: Connection) -> list[str]:
        script = self._script()
        heads = MigrationContext.configure(connection).get_current_heads()
        applied: list[str] = []
        seen: set[str] = set()
        for head in heads:
            for revision in script.walk_revisions(base="base", head=head):
                if revision.revision not in seen:
                    seen.add(revision.revision)
                    applied.append(revision.revision)
        return applied

    def _pending_sync(self, connection: Connection) -> list[str]:
        applied = set(self._applied_sync(connection))
        # walk_revisions() yields newest first; pending is reported in apply order.
        pending = [
            revision.revision
            for revision in self._script().walk_revisions()
            if revision.revision not in applied
        ]
        pending.reverse()
        return pending

    def _migrate_sync(self, connection: Connection) -> None:
        command.upgrade(self._config(connection), "heads")

    def _rollback_sync(self, connection: Connection, paths: Sequence[str], steps: int) -> None:
        cfg = self._config(connection)
        if paths:
            cfg.set_main_option("version_locations", _join_locations(cfg, paths))
        command.downgrade(cfg, f"-{steps}")

    ##################
    # Engine surface #
    ##################

    async def pending_migrations(self) -> list[str]:
        return await self._connection_provider().run_sync(self._pending_sync)

    async def applied_versions(self) -> list[str]:
        return await self._connection_provider().run_sync(self._applied_sync)

    async def migrate(self) -> None:
        await self._connection_provider().run_sync(self._migrate_sync)

    async def rollback(self, paths: Sequence[str], steps: int) -> None:
        await self._connection_provider().run_sync(
            lambda connection: self._rollback_sync(connection, paths, steps)
        )

    async def migrations_paths(self) -> list[str]:
        script = self._script()
        if script.version_locations:
            return list(script.version_locations)
        return [os.path.join(script.dir, "versions")]


def _join_locations(cfg: AlembicConfig, paths: Sequence[str]) -> str:
    """Join *paths* with the separator ``alembic.ini`` declares."""
    separator = cfg.get_main_option("path_separator") or cfg.get_main_option(
        "version_path_separator"
    )
    separators = {"os": os.pathsep, "space": " ", "newline": "\n", ":": ":", ";": ";"}
    return separators.get(separator or "space", " ").join(paths)


__all__ = ["AlembicMigrationEngine", "MigrationEngine"]
