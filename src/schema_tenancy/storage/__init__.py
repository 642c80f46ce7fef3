"""Tenant registries."""

from schema_tenancy.storage.memory import InMemoryTenantStore
from schema_tenancy.storage.tenant_store import TenantStore

__all__ = ["InMemoryTenantStore", "TenantStore"]
