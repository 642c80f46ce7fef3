"""ASGI middleware for per-request tenant activation."""

from schema_tenancy.middleware.tenancy import TenancyMiddleware

__all__ = ["TenancyMiddleware"]
