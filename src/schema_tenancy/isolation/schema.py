"""Schema switch executor: the only code path that issues schema SQL.

Every statement that mutates or inspects the session's schema state is
rendered here from a quoted identifier or literal, then handed to the
connection adapter bound to the current execution context.

Statements
----------
- ``SET search_path TO "<schema>";``
- ``CREATE SCHEMA IF NOT EXISTS "<schema>";``
- ``DROP SCHEMA IF EXISTS "<schema>" CASCADE;`` (or ``RESTRICT``)
- ``SELECT EXISTS(SELECT 1 FROM information_schema.schemata WHERE schema_name = '<schema>') AS schema_exists``
- ``SELECT current_schema()``
- ``SELECT schema_name FROM information_schema.schemata ORDER BY schema_name``

``SET search_path`` is session state, not transactional state: it survives
commits and must be restored explicitly by the caller (see
:class:`~schema_tenancy.core.context.TenantContext`).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from schema_tenancy.core.exceptions import (
    DatabaseConnectionError,
    DependencyViolationError,
    TenancyError,
)
from schema_tenancy.isolation.connection import get_bound_connection
from schema_tenancy.utils.validation import (
    is_blank,
    quote_identifier,
    quote_literal,
    require_schema_name,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from schema_tenancy.isolation.adapters import ConnectionAdapter

logger = logging.getLogger(__name__)

# PostgreSQL "dependent_objects_still_exist".
_DEPENDENT_OBJECTS_SQLSTATE = "2BP01"

_TRUTHY = frozenset({"t", "true"})


# ---------------------------------------------------------------------------
# SQL builders
# ---------------------------------------------------------------------------


def set_search_path_sql(schema_name: str) -> str:
    return f"SET search_path TO {quote_identifier(schema_name)};"


def create_schema_sql(schema_name: str) -> str:
    return f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(schema_name)};"


def drop_schema_sql(schema_name: str, *, cascade: bool = True) -> str:
    behaviour = "CASCADE" if cascade else "RESTRICT"
    return f"DROP SCHEMA IF EXISTS {quote_identifier(schema_name)} {behaviour};"


def schema_exists_sql(schema_name: str) -> str:
    return (
        "SELECT EXISTS(SELECT 1 FROM information_schema.schemata "
        f"WHERE schema_name = {quote_literal(schema_name)}) AS schema_exists"
    )


CURRENT_SCHEMA_SQL = "SELECT current_schema()"
LIST_SCHEMAS_SQL = "SELECT schema_name FROM information_schema.schemata ORDER BY schema_name"


# ---------------------------------------------------------------------------
# Driver error inspection
# ---------------------------------------------------------------------------


def _sqlstate(exc: BaseException) -> str | None:
    """Return the SQLSTATE carried by *exc* or any exception it wraps.

    asyncpg exposes ``sqlstate``, psycopg exposes ``pgcode``/``sqlstate`` and
    SQLAlchemy wraps the driver error in ``orig``.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attr in ("sqlstate", "pgcode"):
            code = getattr(current, attr, None)
            if isinstance(code, str) and code:
                return code
        orig = getattr(current, "orig", None)
        current = orig if isinstance(orig, BaseException) else current.__cause__
    return None


def _normalize_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class SchemaSwitcher:
    """Issue schema statements on the connection of the current context.

    Args:
        connection_provider: Zero-argument callable returning the
            :class:`~schema_tenancy.isolation.adapters.ConnectionAdapter` to
            use.  Defaults to the connection bound to the calling task or
            thread.
        default_schema: Schema activated by :meth:`reset_schema`.

    Example::

        switcher = SchemaSwitcher()
        async with connection_scope(engine):
            await switcher.create_schema("acme")
            await switcher.switch_schema("acme")
            assert await switcher.current_schema() == "acme"
    """

    def __init__(
        self,
        connection_provider: Callable[[], ConnectionAdapter] = get_bound_connection,
        default_schema: str = "public",
    ) -> None:
        self._connection_provider = connection_provider
        self.default_schema = require_schema_name(default_schema, operation="configure")

    async def _execute(self, sql: str, *, operation: str, schema_name: str | None = None) -> None:
        connection = self._connection_provider()
        try:
            await connection.execute(sql)
        except TenancyError:
            raise
        except Exception as exc:
            if schema_name is not None and _sqlstate(exc) == _DEPENDENT_OBJECTS_SQLSTATE:
                raise DependencyViolationError(
                    schema_name, details={"error": str(exc)}
                ) from exc
            raise DatabaseConnectionError(str(exc), operation=operation) from exc

    async def _fetch_value(self, sql: str, *, operation: str) -> object:
        connection = self._connection_provider()
        try:
            return await connection.fetch_value(sql)
        except TenancyError:
            raise
        except Exception as exc:
            raise DatabaseConnectionError(str(exc), operation=operation) from exc

    async def switch_schema(self, schema_name: str) -> None:
        """Set the session search path to exactly *schema_name*.

        Raises:
            InvalidSchemaNameError: When *schema_name* is blank.
            DatabaseConnectionError: When the statement fails.
        """
        require_schema_name(schema_name, operation="switch_schema")
        await self._execute(set_search_path_sql(schema_name), operation="switch_schema")
        logger.debug("search_path -> %r", schema_name)

    async def reset_schema(self) -> None:
        """Set the session search path back to the default schema."""
        await self._execute(set_search_path_sql(self.default_schema), operation="reset_schema")
        logger.debug("search_path reset -> %r", self.default_schema)

    async def create_schema(self, schema_name: str) -> None:
        """Create *schema_name* unless it already exists."""
        require_schema_name(schema_name, operation="create_schema")
        await self._execute(create_schema_sql(schema_name), operation="create_schema")
        logger.info("Created schema %r", schema_name)

    async def drop_schema(self, schema_name: str, cascade: bool = True) -> None:
        """Drop *schema_name* if it exists.

        With ``cascade=False`` the drop is refused by PostgreSQL while any
        object still lives in the schema.

        Raises:
            DependencyViolationError: Non-cascading drop of a non-empty schema.
        """
        require_schema_name(schema_name, operation="drop_schema")
        await self._execute(
            drop_schema_sql(schema_name, cascade=cascade),
            operation="drop_schema",
            schema_name=schema_name,
        )
        logger.warning("Dropped schema %r (cascade=%s)", schema_name, cascade)

    async def schema_exists(self, schema_name: str | None) -> bool:
        """Return whether *schema_name* exists; ``False`` for blank names."""
        if is_blank(schema_name):
            return False
        value = await self._fetch_value(
            schema_exists_sql(schema_name),  # type: ignore[arg-type]
            operation="schema_exists",
        )
        return _normalize_bool(value)

    async def current_schema(self) -> str:
        """Return the active schema as reported by the database session."""
        return str(await self._fetch_value(CURRENT_SCHEMA_SQL, operation="current_schema"))

    async def list_schemas(self) -> list[str]:
        """Return every schema name in the catalog, unfiltered."""
        connection = self._connection_provider()
        try:
            names = await connection.fetch_column(LIST_SCHEMAS_SQL)
        except TenancyError:
            raise
        except Exception as exc:
            raise DatabaseConnectionError(str(exc), operation="list_schemas") from exc
        return [str(name) for name in names]


__all__ = [
    "CURRENT_SCHEMA_SQL",
    "LIST_SCHEMAS_SQL",
    "SchemaSwitcher",
    "create_schema_sql",
    "drop_schema_sql",
    "schema_exists_sql",
    "set_search_path_sql",
]
