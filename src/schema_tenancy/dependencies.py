"""FastAPI dependencies for the tenant and connection of the current request.

:class:`~schema_tenancy.middleware.tenancy.TenancyMiddleware` binds a
connection and activates the tenant schema in the request's context, so the
dependencies below only read that context.

Usage::

    from typing import Annotated
    from fastapi import Depends
    from schema_tenancy.dependencies import ConnectionDep, TenantDep

    @app.get("/orders")
    async def list_orders(tenant: TenantDep, connection: ConnectionDep):
        rows = await connection.fetch_rows("SELECT id FROM orders")
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, HTTPException

from schema_tenancy.core.context import TenantContext
from schema_tenancy.isolation.adapters import ConnectionAdapter
from schema_tenancy.isolation.connection import get_bound_connection

if TYPE_CHECKING:
    from collections.abc import Callable

    from schema_tenancy.manager import TenancyManager


def get_current_tenant() -> Any:
    """Return the current request's tenant.

    Raises:
        HTTPException: ``404`` when the request runs without a tenant.
    """
    tenant = TenantContext.current_tenant()
    if tenant is None:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant


def get_current_tenant_optional() -> Any | None:
    """Return the current request's tenant, or ``None``."""
    return TenantContext.current_tenant()


def get_tenant_connection() -> ConnectionAdapter:
    """Return the connection bound to the current request.

    Raises:
        DatabaseConnectionError: When the request did not pass through
            :class:`~schema_tenancy.middleware.tenancy.TenancyMiddleware`.
    """
    return get_bound_connection()


def make_schema_dependency(manager: TenancyManager) -> Callable[[], str]:
    """Create a dependency returning the schema active for the request."""

    def _current_schema() -> str:
        return manager.context.current_schema()

    return _current_schema


#: Annotated alias for route signatures: ``tenant: TenantDep``.
TenantDep = Annotated[Any, Depends(get_current_tenant)]

#: Annotated alias for routes that also serve the default schema.
TenantOptionalDep = Annotated[Any | None, Depends(get_current_tenant_optional)]

#: Annotated alias for the request's bound connection.
ConnectionDep = Annotated[ConnectionAdapter, Depends(get_tenant_connection)]

__all__ = [
    "ConnectionDep",
    "TenantDep",
    "TenantOptionalDep",
    "get_current_tenant",
    "get_current_tenant_optional",
    "get_tenant_connection",
    "make_schema_dependency",
]
