"""Per-execution-context connection binding using :mod:`contextvars`.

``SET search_path`` mutates *session* state, so two concurrent requests must
never share the session they switch.  Each execution context (asyncio task
or OS thread) binds its own connection here; the schema switcher always asks
:func:`get_bound_connection` for the connection of the context it runs in.

Usage::

    async with connection_scope(engine):
        await switcher.switch_schema("acme")   # runs on this task's connection

    # or, with a connection managed elsewhere:
    token = bind_connection(raw_asyncpg_connection)
    try:
        ...
    finally:
        release_connection(token)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from contextvars import ContextVar, Token
import logging
from typing import TYPE_CHECKING, Any

from schema_tenancy.core.exceptions import DatabaseConnectionError
from schema_tenancy.isolation.adapters import ConnectionAdapter, make_adapter
from schema_tenancy.utils.validation import quote_identifier

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

_connection_ctx: ContextVar[ConnectionAdapter | None] = ContextVar(
    "tenancy_connection", default=None
)


def bind_connection(connection: Any) -> Token[ConnectionAdapter | None]:
    """Bind *connection* to the current execution context.

    The driver adapter is selected here, once per binding.

    Returns:
        A token for :func:`release_connection`.
    """
    return _connection_ctx.set(make_adapter(connection))


def release_connection(token: Token[ConnectionAdapter | None]) -> None:
    """Restore the binding captured in *token*."""
    _connection_ctx.reset(token)


def get_bound_connection() -> ConnectionAdapter:
    """Return the connection bound to the current execution context.

    Raises:
        DatabaseConnectionError: When no connection is bound.
    """
    adapter = _connection_ctx.get()
    if adapter is None:
        raise DatabaseConnectionError(
            "no database connection is bound to the current execution context",
            details={"hint": "wrap the work in connection_scope() or bind_connection()"},
        )
    return adapter


async def _reset_session(adapter: ConnectionAdapter, default_schema: str) -> None:
    """Put the session and the context slots back on *default_schema*.

    A session that cannot be reset is invalidated, so the pool never hands
    it out again while it still points at a tenant schema.
    """
    from schema_tenancy.core.context import TenantContext  # noqa: PLC0415

    TenantContext.clear()
    try:
        await adapter.execute(f"SET search_path TO {quote_identifier(default_schema)};")
    except Exception:
        logger.exception("Failed to reset search_path; invalidating connection")
        invalidate = getattr(adapter.raw, "invalidate", None)
        if invalidate is not None:
            await invalidate()


@asynccontextmanager
async def connection_scope(
    engine: AsyncEngine,
    default_schema: str = "public",
) -> AsyncIterator[ConnectionAdapter]:
    """Check out a connection from *engine* and bind it for the block.

    The connection runs in ``AUTOCOMMIT`` mode so ``SET search_path`` behaves
    as plain session state that survives statement and transaction
    boundaries.  On exit the tenant context is cleared and the session is
    switched back to *default_schema* before it returns to the pool.

    Raises:
        DatabaseConnectionError: When the connection cannot be opened.
    """
    try:
        connection = await engine.connect()
    except Exception as exc:
        raise DatabaseConnectionError(str(exc), operation="connect") from exc

    try:
        connection = await connection.execution_options(isolation_level="AUTOCOMMIT")
        token = bind_connection(connection)
        adapter = _connection_ctx.get()
        try:
            yield adapter  # type: ignore[misc]
        finally:
            try:
                await _reset_session(adapter, default_schema)  # type: ignore[arg-type]
            finally:
                release_connection(token)
    finally:
        await connection.close()
        logger.debug("Released tenancy connection")


__all__ = [
    "bind_connection",
    "connection_scope",
    "get_bound_connection",
    "release_connection",
]
