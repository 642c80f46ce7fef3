"""Schema isolation primitives for schema-tenancy.

:class:`SchemaSwitcher`
    Issues every schema-mutating and schema-inspecting statement, with all
    names quoted.

:func:`connection_scope` / :func:`bind_connection`
    Bind one database session to the current task or thread so concurrent
    requests never share a mutated ``search_path``.

:class:`ConnectionAdapter`
    Uniform interface over SQLAlchemy and asyncpg connections.
"""

from schema_tenancy.isolation.adapters import (
    AsyncpgConnectionAdapter,
    ConnectionAdapter,
    SQLAlchemyConnectionAdapter,
    make_adapter,
)
from schema_tenancy.isolation.connection import (
    bind_connection,
    connection_scope,
    get_bound_connection,
    release_connection,
)
from schema_tenancy.isolation.schema import SchemaSwitcher

__all__ = [
    "AsyncpgConnectionAdapter",
    "ConnectionAdapter",
    "SQLAlchemyConnectionAdapter",
    "SchemaSwitcher",
    "bind_connection",
    "connection_scope",
    "get_bound_connection",
    "make_adapter",
    "release_connection",
]
