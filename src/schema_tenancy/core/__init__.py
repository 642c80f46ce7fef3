"""Core tenancy abstractions: config, exceptions, domain types and context.

Only configuration and exceptions are re-exported here; the remaining
modules depend on :mod:`schema_tenancy.utils` and are imported from the
top-level package.
"""

from schema_tenancy.core.config import TenancyConfig
from schema_tenancy.core.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    DependencyViolationError,
    InvalidSchemaNameError,
    MigrationError,
    SchemaNotFoundError,
    TenancyError,
    TenantNotFoundError,
)

__all__ = [
    # Config
    "TenancyConfig",
    # Exceptions
    "TenancyError",
    "InvalidSchemaNameError",
    "DatabaseConnectionError",
    "SchemaNotFoundError",
    "DependencyViolationError",
    "MigrationError",
    "ConfigurationError",
    "TenantNotFoundError",
]
