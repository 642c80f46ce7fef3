"""Exceptions raised by schema switching, tenant context and migrations.

Schema and migration failures surface as one of the types below, never as
a raw driver error: the switcher translates driver exceptions (SQLSTATE
``2BP01`` becomes :class:`DependencyViolationError`, anything else
:class:`DatabaseConnectionError`) and keeps the original as ``__cause__``.

Exception hierarchy::

    TenancyError
    ├── InvalidSchemaNameError   (also a ValueError)
    ├── DatabaseConnectionError
    ├── SchemaNotFoundError
    ├── DependencyViolationError
    ├── MigrationError
    ├── ConfigurationError
    └── TenantNotFoundError

Schema names appear in messages through ``!r``, so embedded quotes and
control characters stay visible in logs.  ``details`` holds extra context
(operation, hint) and is safe to log.
"""

from __future__ import annotations

from typing import Any


class TenancyError(Exception):
    """Base exception for all schema-tenancy errors.

    Attributes:
        message: Human-readable description of the error.
        details: Supplementary key-value context.  Safe to log.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Message, followed by ``details`` when there are any."""
        if self.details:
            return f"{self.message} | details={self.details}"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r})"


class InvalidSchemaNameError(TenancyError, ValueError):
    """Raised when a blank or missing schema name reaches a schema operation.

    Subclasses :class:`ValueError` as well, so code that treats bad arguments
    generically keeps working.

    Attributes:
        schema: The rejected value (may be ``None``).
        operation: The operation that rejected it (e.g. ``"switch_schema"``).
    """

    def __init__(
        self,
        schema: str | None,
        operation: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Schema name cannot be empty (operation: {operation}, got {schema!r})",
            details,
        )
        self.schema = schema
        self.operation = operation


class DatabaseConnectionError(TenancyError):
    """Raised when the database connection cannot be obtained or used.

    Attributes:
        reason: A concise description of the failure.
        operation: The schema operation in progress, when known.
    """

    def __init__(
        self,
        reason: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = f"Database connection failed: {reason}"
        if operation:
            message += f" (operation: {operation})"
        super().__init__(message, details)
        self.reason = reason
        self.operation = operation


class SchemaNotFoundError(TenancyError):
    """Raised when an operation requires a tenant schema that does not exist.

    Attributes:
        schema: The missing schema name.
    """

    def __init__(
        self,
        schema: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Schema {schema!r} does not exist", details)
        self.schema = schema


class DependencyViolationError(TenancyError):
    """Raised when a non-cascading drop hits objects that depend on the schema.

    Attributes:
        schema: The schema that could not be dropped.
    """

    def __init__(
        self,
        schema: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Cannot drop schema {schema!r} without CASCADE: dependent objects exist",
            details,
        )
        self.schema = schema


class MigrationError(TenancyError):
    """Raised when the migration engine fails for a tenant schema.

    Attributes:
        schema: The affected schema.
        operation: The migration operation (``"migrate"``, ``"rollback"``, …).
        reason: The underlying error description.
    """

    def __init__(
        self,
        schema: str,
        operation: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Migration failed for schema {schema!r} during {operation!r}: {reason}",
            details,
        )
        self.schema = schema
        self.operation = operation
        self.reason = reason


class ConfigurationError(TenancyError):
    """Raised when a setting or a required collaborator is missing or invalid.

    Attributes:
        parameter: The name of the offending setting or collaborator.
        reason: Why the current value is invalid.
    """

    def __init__(
        self,
        parameter: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Invalid configuration for {parameter!r}: {reason}", details)
        self.parameter = parameter
        self.reason = reason


class TenantNotFoundError(TenancyError):
    """Raised when a tenant cannot be located in the tenant store.

    Attributes:
        identifier: The identifier that was looked up.
    """

    def __init__(
        self,
        identifier: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = f"Tenant not found: {identifier!r}" if identifier else "Tenant not found"
        super().__init__(message, details)
        self.identifier = identifier


__all__ = [
    "ConfigurationError",
    "DatabaseConnectionError",
    "DependencyViolationError",
    "InvalidSchemaNameError",
    "MigrationError",
    "SchemaNotFoundError",
    "TenancyError",
    "TenantNotFoundError",
]
