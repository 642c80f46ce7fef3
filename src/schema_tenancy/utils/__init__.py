"""Utility helpers: identifier quoting, validation and dialect detection."""

from schema_tenancy.utils.db_compat import (
    DbDialect,
    detect_dialect,
    supports_search_path,
    uses_async_driver,
)
from schema_tenancy.utils.validation import (
    is_blank,
    quote_identifier,
    quote_literal,
    require_schema_name,
    validate_subdomain,
)

__all__ = [
    "DbDialect",
    "detect_dialect",
    "is_blank",
    "quote_identifier",
    "quote_literal",
    "require_schema_name",
    "supports_search_path",
    "uses_async_driver",
    "validate_subdomain",
]
