"""Driver adapters: one uniform interface over different connection shapes.

The schema switcher only ever needs four things from a connection: run a
statement, fetch rows, fetch a single value, and fetch a single column.  Two
driver shapes are supported:

- ``SQLAlchemyConnectionAdapter`` wraps a SQLAlchemy ``AsyncConnection``:
  statements go through ``exec_driver_sql`` and results come back as row
  sequences from ``Result.all()``.
- ``AsyncpgConnectionAdapter`` wraps a raw ``asyncpg`` connection:
  statements go through ``execute``, queries through ``fetch``, and rows are
  index-addressable ``Record`` objects.

The adapter is chosen once by :func:`make_adapter` when a connection is bound
to an execution context; nothing downstream branches on the driver again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncConnection

from schema_tenancy.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import asyncpg
    from sqlalchemy import Connection

T = TypeVar("T")


class ConnectionAdapter(ABC):
    """Uniform async access to one database session.

    Statements arrive fully rendered: every identifier and literal has
    already been quoted by :mod:`schema_tenancy.utils.validation`, so
    adapters must pass the SQL through untouched (no bind-parameter parsing).
    """

    @property
    @abstractmethod
    def raw(self) -> Any:
        """The wrapped driver connection."""

    @abstractmethod
    async def execute(self, sql: str) -> None:
        """Run a statement and discard any result."""

    @abstractmethod
    async def fetch_rows(self, sql: str) -> list[Sequence[Any]]:
        """Run a query and return its rows as index-addressable sequences."""

    async def fetch_value(self, sql: str) -> Any:
        """Return the first column of the first row, or ``None`` for no rows."""
        rows = await self.fetch_rows(sql)
        if not rows:
            return None
        return rows[0][0]

    async def fetch_column(self, sql: str) -> list[Any]:
        """Return the first column of every row."""
        return [row[0] for row in await self.fetch_rows(sql)]

    async def run_sync(self, fn: Callable[[Connection], T]) -> T:
        """Run *fn* with a synchronous SQLAlchemy connection on this session.

        Raises:
            ConfigurationError: When the driver has no SQLAlchemy connection
                to hand out.
        """
        raise ConfigurationError(
            parameter="connection",
            reason=(
                f"{type(self).__name__} cannot run synchronous SQLAlchemy code; "
                "bind a SQLAlchemy AsyncConnection instead"
            ),
        )


class SQLAlchemyConnectionAdapter(ConnectionAdapter):
    """Adapter for a SQLAlchemy :class:`~sqlalchemy.ext.asyncio.AsyncConnection`.

    Uses ``exec_driver_sql`` rather than ``text()`` so a schema name that
    happens to contain ``:word`` is never mistaken for a bind parameter.
    """

    def __init__(self, connection: AsyncConnection) -> None:
        self._connection = connection

    @property
    def raw(self) -> AsyncConnection:
        return self._connection

    async def execute(self, sql: str) -> None:
        await self._connection.exec_driver_sql(sql)

    async def fetch_rows(self, sql: str) -> list[Sequence[Any]]:
        result = await self._connection.exec_driver_sql(sql)
        return list(result.all())

    async def run_sync(self, fn: Callable[[Connection], T]) -> T:
        return await self._connection.run_sync(fn)


class AsyncpgConnectionAdapter(ConnectionAdapter):
    """Adapter for a raw :class:`asyncpg.Connection`.

    ``asyncpg`` returns :class:`asyncpg.Record` objects, which support
    positional indexing, so rows are handed back as-is.
    """

    def __init__(self, connection: asyncpg.Connection) -> None:
        self._connection = connection

    @property
    def raw(self) -> asyncpg.Connection:
        return self._connection

    async def execute(self, sql: str) -> None:
        await self._connection.execute(sql)

    async def fetch_rows(self, sql: str) -> list[Sequence[Any]]:
        return list(await self._connection.fetch(sql))


def make_adapter(connection: Any) -> ConnectionAdapter:
    """Wrap *connection* in the adapter matching its driver shape.

    Args:
        connection: A :class:`ConnectionAdapter` (returned unchanged), a
            SQLAlchemy ``AsyncConnection``, or an ``asyncpg``-style
            connection exposing ``execute`` and ``fetch`` coroutines.

    Raises:
        ConfigurationError: When the connection shape is not recognised.
    """
    if isinstance(connection, ConnectionAdapter):
        return connection
    if isinstance(connection, AsyncConnection):
        return SQLAlchemyConnectionAdapter(connection)
    if callable(getattr(connection, "fetch", None)) and callable(
        getattr(connection, "execute", None)
    ):
        return AsyncpgConnectionAdapter(connection)
    raise ConfigurationError(
        parameter="connection",
        reason=f"unsupported connection type {type(connection).__name__}",
    )


__all__ = [
    "AsyncpgConnectionAdapter",
    "ConnectionAdapter",
    "SQLAlchemyConnectionAdapter",
    "make_adapter",
]
