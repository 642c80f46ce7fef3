"""Tenant resolution from incoming requests."""

from schema_tenancy.resolution.subdomain import SubdomainTenantResolver, extract_subdomain

__all__ = ["SubdomainTenantResolver", "extract_subdomain"]
