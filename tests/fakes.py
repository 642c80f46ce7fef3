"""In-process fakes for a PostgreSQL session and a migration engine."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from schema_tenancy.isolation.adapters import ConnectionAdapter

if TYPE_CHECKING:
    from collections.abc import Sequence

############################
# Fake PostgreSQL session  #
############################

_IDENT = r'"((?:[^"]|"")*)"'
_SET_RE = re.compile(rf"^SET search_path TO {_IDENT};$")
_CREATE_RE = re.compile(rf"^CREATE SCHEMA IF NOT EXISTS {_IDENT};$")
_DROP_RE = re.compile(rf"^DROP SCHEMA IF EXISTS {_IDENT} (CASCADE|RESTRICT);$")
_EXISTS_RE = re.compile(
    r"^SELECT EXISTS\(SELECT 1 FROM information_schema\.schemata "
    r"WHERE schema_name = '((?:[^']|'')*)'\) AS schema_exists$"
)


class FakeDriverError(Exception):
    """Driver-level error carrying a PostgreSQL SQLSTATE like asyncpg's."""

    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


class FakePostgresConnection(ConnectionAdapter):
    """A single PostgreSQL session simulated in memory.

    Understands exactly the statements the schema switcher renders and
    parses quoted identifiers the way PostgreSQL does, so an injection
    attempt shows up as a schema *name* instead of a second statement.
    """

    def __init__(self, schemas: Sequence[str] = ()) -> None:
        self.schemas: set[str] = {"information_schema", "pg_catalog", "public", *schemas}
        self.search_path = "public"
        self.objects: dict[str, set[str]] = {}
        self.statements: list[str] = []
        self.exists_repr: Any = None
        self.invalidated = False
        self.closed = 0
        self.options: dict[str, Any] = {}
        self._failures: list[tuple[str, Exception]] = []

    @property
    def raw(self) -> FakePostgresConnection:
        return self

    async def invalidate(self) -> None:
        self.invalidated = True

    async def execution_options(self, **options: Any) -> FakePostgresConnection:
        self.options.update(options)
        return self

    async def close(self) -> None:
        self.closed += 1

    def fail_on(self, fragment: str, exc: Exception | None = None) -> None:
        """Make every statement containing *fragment* raise *exc*."""
        self._failures.append((fragment, exc or FakeDriverError("connection reset", "08006")))

    def add_table(self, schema_name: str, table: str) -> None:
        self.objects.setdefault(schema_name, set()).add(table)

    def _check_failures(self, sql: str) -> None:
        for fragment, exc in self._failures:
            if fragment in sql:
                raise exc

    async def execute(self, sql: str) -> None:
        self.statements.append(sql)
        self._check_failures(sql)
        if match := _SET_RE.match(sql):
            self.search_path = match.group(1).replace('""', '"')
        elif match := _CREATE_RE.match(sql):
            self.schemas.add(match.group(1).replace('""', '"'))
        elif match := _DROP_RE.match(sql):
            name = match.group(1).replace('""', '"')
            if name not in self.schemas:
                return
            if match.group(2) == "RESTRICT" and self.objects.get(name):
                msg = f"cannot drop schema {name} because other objects depend on it"
                raise FakeDriverError(msg, "2BP01")
            self.schemas.discard(name)
            self.objects.pop(name, None)
        else:
            raise FakeDriverError(f"syntax error in {sql!r}", "42601")

    async def fetch_rows(self, sql: str) -> list[Sequence[Any]]:
        self.statements.append(sql)
        self._check_failures(sql)
        if match := _EXISTS_RE.match(sql):
            exists = match.group(1).replace("''", "'") in self.schemas
            if self.exists_repr is not None:
                return [(self.exists_repr[exists],)]
            return [(exists,)]
        if sql == "SELECT current_schema()":
            return [(self.search_path,)]
        if sql == "SELECT schema_name FROM information_schema.schemata ORDER BY schema_name":
            return [(name,) for name in sorted(self.schemas)]
        raise FakeDriverError(f"syntax error in {sql!r}", "42601")

    @property
    def search_path_history(self) -> list[str]:
        return [
            match.group(1).replace('""', '"')
            for sql in self.statements
            if (match := _SET_RE.match(sql))
        ]


class FakeEngine:
    """Engine whose pool holds exactly one session, handed out on every checkout."""

    def __init__(self, connection: FakePostgresConnection) -> None:
        self.connection = connection
        self.checkouts = 0

    async def connect(self) -> FakePostgresConnection:
        self.checkouts += 1
        return self.connection


##########################
# Fake migration engine  #
##########################


class FakeMigrationEngine:
    """Migration engine whose state is keyed by the session's search_path.

    Every call records ``(operation, active_schema)`` so tests can assert
    which schema was active when the engine ran.
    """

    def __init__(self, connection: FakePostgresConnection, revisions: Sequence[str] = ()) -> None:
        self.connection = connection
        self.revisions = list(revisions)
        self.applied: dict[str, list[str]] = {}
        # schema -> error raised by migrate() / rollback()
        self.failing: dict[str, Exception] = {}
        # schema -> error raised while reading versions
        self.unreadable: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []

    @property
    def active_schema(self) -> str:
        return self.connection.search_path

    def _enter(self, operation: str, failures: dict[str, Exception]) -> str:
        schema = self.active_schema
        self.calls.append((operation, schema))
        if schema in failures:
            raise failures[schema]
        return schema

    async def pending_migrations(self) -> list[str]:
        schema = self._enter("pending", self.unreadable)
        applied = self.applied.get(schema, [])
        return [rev for rev in self.revisions if rev not in applied]

    async def applied_versions(self) -> list[str]:
        schema = self._enter("applied", self.unreadable)
        return list(self.applied.get(schema, []))

    async def migrate(self) -> None:
        schema = self._enter("migrate", self.failing)
        self.applied[schema] = list(self.revisions)

    async def rollback(self, paths: Sequence[str], steps: int) -> None:
        schema = self._enter("rollback", self.failing)
        applied = self.applied.get(schema, [])
        self.applied[schema] = applied[: max(len(applied) - steps, 0)]

    async def migrations_paths(self) -> list[str]:
        return ["migrations/versions"]


