"""Dict-backed :class:`TenantStore` for tests, local development and demos.

Records live only as long as the process.

Design notes
------------
- ``_tenants`` (id -> Tenant) and ``_subdomain_map`` (subdomain -> id) are
  plain dicts, kept in sync by every mutating method.
- ``list()`` sorts by ``created_at`` ascending; ties keep insertion order.
- Mutating methods hold ``_lock`` for their whole check-then-write sequence.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from schema_tenancy.core.exceptions import TenantNotFoundError
from schema_tenancy.storage.tenant_store import TenantStore

if TYPE_CHECKING:
    from schema_tenancy.core.types import Tenant, TenantStatus

logger = logging.getLogger(__name__)


class InMemoryTenantStore(TenantStore):
    """In-memory tenant store.

    Example::

        store = InMemoryTenantStore()
        await store.create(Tenant(subdomain="acme", name="Acme"))
        await store.create_from_attributes({"subdomain": "globex", "name": "Globex"})

        assert await store.count() == 2
    """

    def __init__(self) -> None:
        self._tenants: dict[str, Tenant] = {}
        self._subdomain_map: dict[str, str] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    ###################
    # Read operations #
    ###################

    async def get_by_id(self, tenant_id: str) -> Tenant:
        tenant = self._tenants.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(identifier=tenant_id)
        return tenant

    async def get_by_subdomain(self, subdomain: str) -> Tenant:
        tenant_id = self._subdomain_map.get(subdomain)
        if tenant_id is None:
            raise TenantNotFoundError(identifier=subdomain)
        return self._tenants[tenant_id]

    async def list(
        self,
        skip: int = 0,
        limit: int = 100,
        status: TenantStatus | None = None,
    ) -> list[Tenant]:
        tenants = list(self._tenants.values())
        if status is not None:
            tenants = [t for t in tenants if t.status == status]
        tenants.sort(key=lambda t: t.created_at)
        return tenants[skip : skip + limit]

    async def count(self, status: TenantStatus | None = None) -> int:
        if status is None:
            return len(self._tenants)
        return sum(1 for t in self._tenants.values() if t.status == status)

    ####################
    # Write operations #
    ####################

    async def create(self, tenant: Tenant) -> Tenant:
        """Store *tenant*.

        Raises:
            ValueError: When ``id`` or ``subdomain`` already exists.
        """
        async with self._lock:
            if tenant.id in self._tenants:
                msg = f"Tenant id={tenant.id!r} already exists."
                raise ValueError(msg)
            if tenant.subdomain in self._subdomain_map:
                msg = f"Tenant subdomain={tenant.subdomain!r} already exists."
                raise ValueError(msg)

            self._tenants[tenant.id] = tenant
            self._subdomain_map[tenant.subdomain] = tenant.id
        logger.debug("Created tenant id=%s subdomain=%s", tenant.id, tenant.subdomain)
        return tenant

    async def delete(self, tenant_id: str) -> None:
        async with self._lock:
            tenant = self._tenants.get(tenant_id)
            if tenant is None:
                raise TenantNotFoundError(identifier=tenant_id)

            del self._subdomain_map[tenant.subdomain]
            del self._tenants[tenant_id]
        logger.debug("Deleted tenant id=%s", tenant_id)

    ########################
    # Test / debug helpers #
    ########################

    def clear(self) -> None:
        """Remove all tenants."""
        self._tenants.clear()
        self._subdomain_map.clear()


__all__ = ["InMemoryTenantStore"]
