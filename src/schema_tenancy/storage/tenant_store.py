"""Abstract tenant registry interface: the repository pattern.

``TenantStore`` is the contract the orchestrator and the subdomain resolver
depend on.  Concrete backends implement the abstract CRUD methods; the
iteration and attribute-based creation helpers are built on top of them.

Extending
---------
Subclass ``TenantStore`` and implement every ``@abstractmethod``::

    class MyStore(TenantStore):
        async def get_by_id(self, tenant_id: str) -> Tenant: ...
        # ... implement all other abstract methods
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from schema_tenancy.core.exceptions import ConfigurationError
from schema_tenancy.core.types import Tenant

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping, Sequence

    from schema_tenancy.core.types import TenantStatus

logger = logging.getLogger(__name__)


class TenantStore(ABC):
    """Abstract base class for tenant registries.

    Implementations must be:

    - **Fully async**: every method is a coroutine.
    - **Raise on not-found**: single-tenant lookups raise
      ``TenantNotFoundError``, never return ``None``.
    - **Ordered**: :meth:`list` pages through tenants in creation order.
    """

    ############################
    # Required CRUD operations #
    ############################

    @abstractmethod
    async def get_by_id(self, tenant_id: str) -> Tenant:
        """Fetch a tenant by its opaque unique ID.

        Raises:
            TenantNotFoundError: When no tenant with *tenant_id* exists.
        """

    @abstractmethod
    async def get_by_subdomain(self, subdomain: str) -> Tenant:
        """Fetch a tenant by its subdomain.

        Raises:
            TenantNotFoundError: When no tenant uses *subdomain*.
        """

    @abstractmethod
    async def create(self, tenant: Tenant) -> Tenant:
        """Persist a new tenant record.

        Raises:
            ValueError: When the ``id`` or ``subdomain`` already exists.
        """

    @abstractmethod
    async def delete(self, tenant_id: str) -> None:
        """Remove a tenant from the store.

        Raises:
            TenantNotFoundError: When *tenant_id* does not exist.
        """

    @abstractmethod
    async def list(
        self,
        skip: int = 0,
        limit: int = 100,
        status: TenantStatus | None = None,
    ) -> Sequence[Tenant]:
        """Return a page of tenants in creation order (oldest first).

        Args:
            skip: Number of records to skip (offset-based pagination).
            limit: Maximum number of records to return.
            status: When provided, only tenants with this status are returned.
        """

    @abstractmethod
    async def count(self, status: TenantStatus | None = None) -> int:
        """Return the number of tenants, optionally filtered by status."""

    ##################
    # Helper methods #
    ##################

    async def close(self) -> None:
        """Release any resources held by this store.

        The base implementation is a no-op.
        """

    async def iter_all(
        self,
        page_size: int = 100,
        status: TenantStatus | None = None,
    ) -> AsyncIterator[Tenant]:
        """Yield every tenant, fetching *page_size* records at a time."""
        skip = 0
        while True:
            page = await self.list(skip=skip, limit=page_size, status=status)
            for tenant in page:
                yield tenant
            if len(page) < page_size:
                return
            skip += len(page)

    async def create_from_attributes(self, attributes: Mapping[str, Any]) -> Tenant:
        """Build a :class:`~schema_tenancy.core.types.Tenant` and persist it.

        Raises:
            ConfigurationError: When *attributes* do not form a valid tenant.
            ValueError: When the tenant collides with an existing one.
        """
        try:
            tenant = Tenant(**dict(attributes))
        except ValidationError as exc:
            raise ConfigurationError(
                parameter="tenant_attributes",
                reason=str(exc),
                details={"errors": exc.errors(include_url=False)},
            ) from exc
        return await self.create(tenant)


__all__ = ["TenantStore"]
