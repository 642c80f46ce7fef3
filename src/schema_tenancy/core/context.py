"""Async-safe tenant context management using :mod:`contextvars`.

Each asyncio task (and each OS thread) sees its own copy of every
:class:`~contextvars.ContextVar`, so the current tenant and schema set while
handling one request are invisible to every other concurrent request.

The per-context record has two slots:

``current_tenant``
    The tenant entity borrowed for the duration of the scope, or ``None``.

``current_schema``
    The schema most recently activated on this context's connection.
    Falls back to the configured default schema when unset.

:meth:`TenantContext.switch_to_schema` is the only path that changes the
schema slot, and it does so only after the ``SET search_path`` statement
has succeeded, so the slot always mirrors the session.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from contextvars import ContextVar
import logging
from typing import TYPE_CHECKING, Any

from schema_tenancy.core.types import (
    NamedTenant,
    RawSchemaName,
    is_tenant_like,
    schema_name_for,
    schema_ref,
)
from schema_tenancy.utils.validation import is_blank

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from schema_tenancy.core.types import SchemaRef
    from schema_tenancy.isolation.schema import SchemaSwitcher

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level context variables
# ---------------------------------------------------------------------------

_tenant_ctx: ContextVar[Any | None] = ContextVar("tenant", default=None)
_schema_ctx: ContextVar[str | None] = ContextVar("tenant_schema", default=None)


class TenantContext:
    """Per-execution-context tenant and schema state.

    Args:
        switcher: Executor used for every schema change.
        default_schema: Schema used when nothing else is selected.  Defaults
            to the switcher's default schema.

    Usage::

        context = TenantContext(SchemaSwitcher())

        async with connection_scope(engine):
            async with context.with_tenant(tenant):
                ...  # queries resolve against tenant's schema
            # previous schema is active again here
    """

    def __init__(self, switcher: SchemaSwitcher, default_schema: str | None = None) -> None:
        self.switcher = switcher
        self.default_schema = default_schema or switcher.default_schema

    # ------------------------------------------------------------------
    # Slot accessors
    # ------------------------------------------------------------------

    @staticmethod
    def current_tenant() -> Any | None:
        """Return the tenant of the current context, or ``None``."""
        return _tenant_ctx.get()

    def current_schema(self) -> str:
        """Return the schema of the current context (default when unset)."""
        return _schema_ctx.get() or self.default_schema

    @staticmethod
    def set_current_tenant(tenant: Any | None) -> None:
        """Set the tenant slot.  Does not touch the database."""
        _tenant_ctx.set(tenant)

    @staticmethod
    def set_current_schema(schema_name: str | None) -> None:
        """Set the schema slot.  Does not touch the database."""
        _schema_ctx.set(schema_name)

    @staticmethod
    def clear() -> None:
        """Empty both slots without touching the database."""
        _tenant_ctx.set(None)
        _schema_ctx.set(None)

    # ------------------------------------------------------------------
    # Switching
    # ------------------------------------------------------------------

    def resolve(self, tenant_or_schema: Any) -> SchemaRef:
        """Turn a tenant, a schema name or ``None`` into a schema reference."""
        return schema_ref(tenant_or_schema, default_schema=self.default_schema)

    async def switch_to_schema(self, schema_name: str | None) -> None:
        """Activate *schema_name* on the connection, then record it.

        Blank or ``None`` names select the default schema.
        """
        if is_blank(schema_name):
            schema_name = self.default_schema
        await self.switcher.switch_schema(schema_name)  # type: ignore[arg-type]
        _schema_ctx.set(schema_name)

    async def switch_to_tenant(self, tenant: Any | None) -> None:
        """Activate *tenant*'s schema and record the tenant.

        ``None`` switches to the default schema and clears the tenant slot.
        A plain string is treated as a schema name with no tenant entity.
        """
        if tenant is None:
            await self.switch_to_schema(self.default_schema)
            _tenant_ctx.set(None)
            return
        await self._activate(self.resolve(tenant))

    async def _activate(self, ref: SchemaRef) -> None:
        await self.switch_to_schema(ref.schema_name)
        _tenant_ctx.set(ref.tenant)

    @asynccontextmanager
    async def with_tenant(self, tenant_or_schema: Any) -> AsyncIterator[SchemaRef]:
        """Run the block with *tenant_or_schema* active, then restore.

        The previous tenant and schema are captured on entry and
        re-activated on every exit path, including errors, early returns
        and cancellation.  Scopes nest to any depth.

        When the block raises and the restore fails as well, the restore
        failure is logged and the block's exception propagates.

        Yields:
            The resolved :data:`~schema_tenancy.core.types.SchemaRef`.
        """
        ref = self.resolve(tenant_or_schema)
        previous_tenant = _tenant_ctx.get()
        previous_schema = self.current_schema()
        try:
            await self._activate(ref)
            yield ref
        except BaseException:
            # The block's own error wins over a failed restore.
            try:
                await self._restore(previous_tenant, previous_schema)
            except Exception:
                logger.exception("Failed to restore tenant context to %r", previous_schema)
            raise
        await self._restore(previous_tenant, previous_schema)

    async def _restore(self, previous_tenant: Any | None, previous_schema: str) -> None:
        restore_schema = previous_schema
        if is_tenant_like(previous_tenant):
            restore_schema = schema_name_for(previous_tenant)
        await self.switch_to_schema(restore_schema)
        _tenant_ctx.set(previous_tenant)
        logger.debug("Restored tenant context -> %r", restore_schema)

    async def reset(self) -> None:
        """Clear both slots and re-activate the default schema."""
        self.clear()
        await self.switch_to_schema(self.default_schema)

    # ------------------------------------------------------------------
    # Schema lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def _schema_name_of(tenant_or_schema: Any) -> Any:
        # Unlike switching, a missing name is an error here rather than the
        # default schema.
        if isinstance(tenant_or_schema, (NamedTenant, RawSchemaName)):
            return tenant_or_schema.schema_name
        if tenant_or_schema is None or isinstance(tenant_or_schema, str):
            return tenant_or_schema
        if is_tenant_like(tenant_or_schema):
            return schema_name_for(tenant_or_schema)
        return str(tenant_or_schema)

    async def create_tenant_schema(self, tenant_or_schema: Any) -> None:
        """Create the schema of a tenant or schema name (idempotent)."""
        await self.switcher.create_schema(self._schema_name_of(tenant_or_schema))

    async def drop_tenant_schema(self, tenant_or_schema: Any, cascade: bool = True) -> None:
        """Drop the schema of a tenant or schema name (idempotent)."""
        await self.switcher.drop_schema(self._schema_name_of(tenant_or_schema), cascade=cascade)


__all__ = ["TenantContext"]
