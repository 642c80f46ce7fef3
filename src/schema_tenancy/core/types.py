"""Domain types, enumerations, and data models for schema-tenancy.

This module holds the domain vocabulary shared by the whole library.  Other
modules import from it; it imports only ``core.exceptions`` and
``utils.validation``.

Design notes
------------
* Enumerations use :class:`~enum.StrEnum` so values serialise to plain
  strings in JSON and logs without extra conversion.
* :class:`Tenant`, :class:`MigrationResult` and :class:`SchemaStatus` are
  Pydantic ``frozen=True`` models: results are immutable once produced.
* Callers may pass either a tenant entity or a raw schema name wherever a
  schema is expected.  :func:`schema_ref` turns that value into a
  :data:`SchemaRef` once, at the API boundary, so the rest of the code never
  inspects attributes again.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schema_tenancy.core.exceptions import ConfigurationError
from schema_tenancy.utils.validation import is_blank, validate_subdomain

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TenantStatus(StrEnum):
    """Lifecycle status of a tenant."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"
    PROVISIONING = "provisioning"


class MigrationStatus(StrEnum):
    """Terminal state of one tenant-migration attempt."""

    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class SchemaState(StrEnum):
    """Migration state of a tenant schema as seen by a status scan."""

    UP_TO_DATE = "up_to_date"
    PENDING = "pending"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Domain models
# ---------------------------------------------------------------------------


class Tenant(BaseModel):
    """Immutable tenant domain model.

    To produce a modified copy use :meth:`model_copy`::

        updated = tenant.model_copy(update={"status": TenantStatus.SUSPENDED})

    Attributes:
        id: Opaque unique identifier (generated when omitted).
        subdomain: Host label that identifies the tenant (``acme`` in
            ``acme.example.com``).  Also the schema name unless
            :attr:`schema_name` overrides it.
        name: Display name.
        status: Current :class:`TenantStatus`.
        schema_name: Explicit schema name; takes precedence over the subdomain.
        metadata: Application-defined key-value store.
        created_at: Creation timestamp in UTC.
        updated_at: Last-modification timestamp in UTC.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        min_length=1,
        max_length=255,
        description="Unique opaque tenant identifier.",
    )
    subdomain: str = Field(
        ...,
        min_length=1,
        max_length=63,
        description="Tenant subdomain (lowercase letters, digits, '-', '_').",
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Display name.",
    )
    status: TenantStatus = Field(
        default=TenantStatus.ACTIVE,
        description="Lifecycle status.",
    )
    schema_name: str | None = Field(
        default=None,
        description="Schema name override (defaults to the subdomain).",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Application-defined key-value store.",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Creation timestamp (UTC).",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Last-modification timestamp (UTC).",
    )

    @field_validator("subdomain")
    @classmethod
    def _validate_subdomain(cls, v: str) -> str:
        if not validate_subdomain(v):
            msg = f"Invalid tenant subdomain: {v!r}"
            raise ValueError(msg)
        return v

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tenant):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def is_active(self) -> bool:
        """Return ``True`` if this tenant's status is :attr:`TenantStatus.ACTIVE`."""
        return self.status == TenantStatus.ACTIVE


class MigrationResult(BaseModel):
    """Outcome of migrating one tenant schema.

    Attributes:
        schema_name: The schema the attempt targeted.
        status: ``success``, ``error`` or ``skipped``.
        message: Operator-readable summary.
        error: The underlying exception for ``error`` results.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    schema_name: str
    status: MigrationStatus
    message: str
    error: BaseException | None = Field(default=None, exclude=True, repr=False)

    @property
    def ok(self) -> bool:
        return self.status == MigrationStatus.SUCCESS


class MigrationReport(BaseModel):
    """Ordered per-tenant results of a bulk run plus a status summary."""

    model_config = ConfigDict(frozen=True)

    results: tuple[MigrationResult, ...] = ()

    @property
    def summary(self) -> dict[MigrationStatus, int]:
        """Return result counts per status, including zero counts."""
        counts = Counter(result.status for result in self.results)
        return {status: counts.get(status, 0) for status in MigrationStatus}

    @property
    def succeeded(self) -> list[MigrationResult]:
        return [r for r in self.results if r.status == MigrationStatus.SUCCESS]

    @property
    def failed(self) -> list[MigrationResult]:
        return [r for r in self.results if r.status == MigrationStatus.ERROR]

    @property
    def skipped(self) -> list[MigrationResult]:
        return [r for r in self.results if r.status == MigrationStatus.SKIPPED]


class SchemaStatus(BaseModel):
    """Migration status of one tenant schema.

    ``pending_count`` / ``applied_count`` are ``None`` when the scan failed;
    ``error`` then carries the underlying message.
    """

    model_config = ConfigDict(frozen=True)

    schema_name: str
    state: SchemaState
    pending_count: int | None = None
    applied_count: int | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Schema references
# ---------------------------------------------------------------------------


def is_tenant_like(value: object) -> bool:
    """Return ``True`` when *value* is a tenant entity rather than a name.

    Strings are always names.  Anything else counts as a tenant when it
    exposes a ``schema_name`` or ``subdomain`` attribute.
    """
    if isinstance(value, str):
        return False
    return hasattr(value, "schema_name") or hasattr(value, "subdomain")


def schema_name_for(tenant: Any) -> str:
    """Derive the schema name of a tenant entity.

    An explicit, non-blank ``schema_name`` wins; otherwise a non-blank
    ``subdomain`` is used.

    Raises:
        ConfigurationError: When neither attribute yields a usable name.
    """
    explicit = getattr(tenant, "schema_name", None)
    if not is_blank(explicit):
        return explicit
    subdomain = getattr(tenant, "subdomain", None)
    if not is_blank(subdomain):
        return subdomain
    raise ConfigurationError(
        parameter="schema_name",
        reason=(
            f"cannot derive a schema name from {type(tenant).__name__}: "
            "it has neither a schema_name nor a subdomain"
        ),
    )


@dataclass(frozen=True)
class RawSchemaName:
    """A schema given directly by name."""

    name: str

    @property
    def schema_name(self) -> str:
        return self.name

    @property
    def tenant(self) -> None:
        return None


@dataclass(frozen=True)
class NamedTenant:
    """A tenant entity whose schema name is derived from its attributes."""

    entity: Any
    schema_name: str

    @property
    def tenant(self) -> Any:
        return self.entity


SchemaRef = NamedTenant | RawSchemaName


def schema_ref(value: Any, *, default_schema: str) -> SchemaRef:
    """Resolve a tenant, a schema name or ``None`` into a :data:`SchemaRef`.

    ``None`` and blank strings resolve to *default_schema*.  Other
    non-tenant values are converted with ``str()``.
    """
    if value is None:
        return RawSchemaName(default_schema)
    if isinstance(value, (NamedTenant, RawSchemaName)):
        return value
    if is_tenant_like(value):
        return NamedTenant(value, schema_name_for(value))
    name = str(value)
    return RawSchemaName(default_schema if is_blank(name) else name)


__all__ = [
    "MigrationReport",
    "MigrationResult",
    "MigrationStatus",
    "NamedTenant",
    "RawSchemaName",
    "SchemaRef",
    "SchemaState",
    "SchemaStatus",
    "Tenant",
    "TenantStatus",
    "is_tenant_like",
    "schema_name_for",
    "schema_ref",
]
