"""Subdomain-based tenant resolution.

Extracts the tenant subdomain from the leftmost label of the incoming
``Host`` / ``X-Forwarded-Host`` header and looks it up in the tenant store.

Example::

    Host: acme.example.com        -> "acme"
    Host: acme.example.com:8000   -> "acme"
    Host: www.example.com         -> None   (excluded subdomain)
    Host: example.com             -> None   (bare domain)
    Host: api.acme.example.com    -> "api"  (four labels: exclusions off)

Security notes
--------------
- The extracted label is validated against tenant subdomain rules before it
  reaches the store.
- ``X-Forwarded-Host`` is read only when ``trust_x_forwarded`` is set.
  Disable it when the application is not behind a trusted reverse proxy.
"""

from __future__ import annotations

from collections.abc import Collection
import logging
import re
from typing import TYPE_CHECKING

from schema_tenancy.core.exceptions import TenantNotFoundError
from schema_tenancy.utils.validation import validate_subdomain

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

    from schema_tenancy.core.types import Tenant
    from schema_tenancy.storage.tenant_store import TenantStore

logger = logging.getLogger(__name__)

_IPV4_PREFIX_RE = re.compile(r"^\d+\.\d+\.\d+\.\d+")


def extract_subdomain(
    host: str | None,
    excluded_subdomains: Collection[str] = (),
    common_tlds: Collection[str] = (),
) -> str | None:
    """Return the tenant subdomain encoded in *host*, or ``None``.

    Rules:
        - Blank hosts, ``localhost`` and dotted-quad IPs have no subdomain.
        - A ``:port`` suffix is ignored.
        - At least two labels are required; the leftmost is lowercased.
        - On hosts with three labels or fewer, names in
          *excluded_subdomains* are rejected.
        - A two-label host whose last label is in *common_tlds* is a bare
          domain (``example.com``), not ``<tenant>.<domain>``.
    """
    if host is None:
        return None
    host = host.strip()
    if not host or host == "localhost" or _IPV4_PREFIX_RE.match(host):
        return None

    parts = host.split(":", maxsplit=1)[0].split(".")
    if len(parts) < 2:
        return None

    subdomain = parts[0].lower()
    if len(parts) <= 3 and subdomain in excluded_subdomains:
        return None
    if len(parts) == 2 and parts[-1].lower() in common_tlds:
        return None
    return subdomain


class SubdomainTenantResolver:
    """Resolve the active tenant of a request from its subdomain.

    Args:
        store: Tenant store searched by subdomain.
        excluded_subdomains: Labels never treated as tenants on short hosts.
        common_tlds: Top-level domains that make a two-label host bare.
        trust_x_forwarded: Read ``X-Forwarded-Host`` before ``Host``.

    Example::

        resolver = SubdomainTenantResolver(store, excluded_subdomains=["www"])
        tenant = await resolver.resolve(request)   # Tenant or None
    """

    def __init__(
        self,
        store: TenantStore,
        excluded_subdomains: Collection[str] = (),
        common_tlds: Collection[str] = (),
        trust_x_forwarded: bool = True,
    ) -> None:
        self.store = store
        self._excluded = frozenset(label.lower() for label in excluded_subdomains)
        self._tlds = frozenset(label.lower() for label in common_tlds)
        self._trust_x_forwarded = trust_x_forwarded

    def host_of(self, connection: HTTPConnection) -> str:
        host = ""
        if self._trust_x_forwarded:
            # First entry when a proxy chain appended several hosts.
            host = connection.headers.get("x-forwarded-host", "").split(",")[0].strip()
        return host or connection.headers.get("host", "")

    def subdomain_of(self, host: str | None) -> str | None:
        return extract_subdomain(host, self._excluded, self._tlds)

    async def find_tenant(self, subdomain: str | None) -> Tenant | None:
        """Return the *active* tenant using *subdomain*, or ``None``."""
        if not subdomain:
            return None
        if not validate_subdomain(subdomain):
            logger.debug("Ignoring invalid subdomain %r", subdomain)
            return None
        try:
            tenant = await self.store.get_by_subdomain(subdomain)
        except TenantNotFoundError:
            logger.debug("No tenant for subdomain %r", subdomain)
            return None
        if not tenant.is_active():
            logger.info("Tenant %r is not active (status=%s)", subdomain, tenant.status)
            return None
        return tenant

    async def resolve(self, connection: HTTPConnection) -> Tenant | None:
        """Return the tenant addressed by *connection*, or ``None``.

        Raises:
            TenancyError: When the store lookup itself fails.
        """
        host = self.host_of(connection)
        subdomain = self.subdomain_of(host)
        logger.debug("Subdomain resolver: host=%r -> subdomain=%r", host, subdomain)
        return await self.find_tenant(subdomain)


__all__ = ["SubdomainTenantResolver", "extract_subdomain"]
