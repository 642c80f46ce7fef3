"""Identifier quoting and validation utilities.

Every schema name that flows into a SQL statement (``SET search_path``,
``CREATE SCHEMA``, ``DROP SCHEMA``, catalog lookups, …) **must** pass through
the quoting helpers below before interpolation.  They are the only defence
against SQL injection via tenant-derived names.

Security model
--------------
- Schema names are never rejected for their *content*: any non-blank string
  is accepted and rendered as exactly one quoted identifier, so
  ``test"; DROP TABLE users; --`` becomes ``"test""; DROP TABLE users; --"``.
- String literals are rendered with doubled single quotes.  This relies on
  ``standard_conforming_strings = on`` (the PostgreSQL default since 9.1),
  under which backslashes inside ``'...'`` are ordinary characters.
- Blank names (``None``, ``""``, whitespace only) are rejected by
  :func:`require_schema_name` before any SQL is built.
"""

from __future__ import annotations

import re

from schema_tenancy.core.exceptions import InvalidSchemaNameError

################################
# Compiled regular expressions #
################################

# Tenant subdomain: lowercase letter, then up to 62 letters/digits/hyphens/
# underscores.  Total length: 1-63 characters.
_SUBDOMAIN_RE = re.compile(r"^[a-z][a-z0-9_\-]{0,62}$")

# Hard cap applied before any regex to prevent ReDoS.
_MAX_INPUT_LEN: int = 512


###########
# Quoting #
###########


def quote_identifier(name: str) -> str:
    """Return *name* as a single double-quoted SQL identifier.

    Embedded double quotes are doubled, so the result can never terminate
    the identifier early.

    Examples::

        quote_identifier("tenant_a")      # '"tenant_a"'
        quote_identifier('we"ird')        # '"we""ird"'
    """
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Return *value* as a single-quoted SQL string literal.

    Examples::

        quote_literal("acme")        # "'acme'"
        quote_literal("o'brien")     # "'o''brien'"
    """
    return "'" + value.replace("'", "''") + "'"


##############
# Validation #
##############


def is_blank(value: object) -> bool:
    """Return ``True`` for ``None``, non-strings and whitespace-only strings."""
    return not isinstance(value, str) or not value.strip()


def require_schema_name(schema_name: str | None, *, operation: str) -> str:
    """Return *schema_name* unchanged, raising if it is blank.

    Args:
        schema_name: The candidate schema name.
        operation: Call-site description included in the error.

    Returns:
        The original, untrimmed name.  Surrounding whitespace is part of the
        identifier once quoted; only all-blank values are refused.

    Raises:
        InvalidSchemaNameError: When *schema_name* is ``None``, not a string,
            or contains only whitespace.
    """
    if is_blank(schema_name):
        raise InvalidSchemaNameError(schema_name, operation)
    return schema_name  # type: ignore[return-value]


def validate_subdomain(subdomain: str) -> bool:
    """Return ``True`` if *subdomain* is a valid tenant subdomain.

    A valid subdomain:
        - Is a ``str`` instance of 1 to 63 characters.
        - Starts with a lowercase ASCII letter.
        - Contains only lowercase letters, digits, hyphens and underscores.

    The length is checked *before* the regular expression to prevent ReDoS
    on adversarially crafted inputs.

    Examples::

        validate_subdomain("acme-corp")   # True
        validate_subdomain("acme_corp")   # True
        validate_subdomain("ACME")        # False  (uppercase)
        validate_subdomain("1acme")       # False  (starts with a digit)
    """
    if not subdomain or not isinstance(subdomain, str):
        return False
    if len(subdomain) > _MAX_INPUT_LEN:
        return False
    return bool(_SUBDOMAIN_RE.match(subdomain))


__all__ = [
    "is_blank",
    "quote_identifier",
    "quote_literal",
    "require_schema_name",
    "validate_subdomain",
]
