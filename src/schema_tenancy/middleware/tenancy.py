"""Raw ASGI tenancy middleware: streaming-safe and context-clean.

Why raw ASGI instead of ``BaseHTTPMiddleware``
----------------------------------------------
``BaseHTTPMiddleware`` buffers responses and does not propagate
``ContextVar`` mutations to background tasks (Starlette issue #1001).  Both
the bound connection and the tenant context live in context variables, so
this middleware implements the ASGI 3 callable directly.

Request lifecycle
-----------------
::

    Client                  Middleware                           App
      │── request ─────────►│                                     │
      │                 manager.connection()   (bind session)     │
      │                 resolver.resolve()                        │
      │                 context.with_tenant(tenant)               │
      │                     ├── await app() ─────────────────────►│
      │                     │◄── response ────────────────────────│
      │                 restore schema, reset context, release    │
      │◄── response ────────│                                     │

Error handling
--------------
- Resolution raised a ``TenancyError`` -> ``500`` (or the default schema
  when ``development_fallback`` is enabled).
- No tenant for the host and ``require_tenant=True`` -> ``404``.
- Any ``TenancyError`` while switching schemas -> ``500`` if the response
  has not started yet.

All error responses are JSON with a stable ``{"detail": "..."}`` shape.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from schema_tenancy.core.exceptions import TenancyError

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)


def _json_response(send: Send, status_code: int, detail: str) -> Awaitable[None]:
    """Build and send a minimal JSON error response."""
    body = json.dumps({"detail": detail}).encode("utf-8")
    headers: list[tuple[bytes, bytes]] = [
        (b"content-type", b"application/json"),
        (b"content-length", str(len(body)).encode()),
    ]

    async def _send() -> None:
        await send({"type": "http.response.start", "status": status_code, "headers": headers})
        await send({"type": "http.response.body", "body": body, "more_body": False})

    return _send()


class TenancyMiddleware:
    """Raw ASGI middleware that activates the request's tenant schema.

    Args:
        app: The downstream ASGI application.
        manager: The configured :class:`~schema_tenancy.manager.TenancyManager`.
        require_tenant: Answer ``404`` when no active tenant matches the host.
            When ``False`` such requests run on the default schema.
        excluded_paths: URL path prefixes that bypass tenancy entirely
            (e.g. ``["/health", "/docs"]``).

    Example::

        app.add_middleware(
            TenancyMiddleware,
            manager=manager,
            excluded_paths=["/health", "/docs", "/openapi.json"],
        )
    """

    def __init__(
        self,
        app: ASGIApp,
        manager: Any,  # TenancyManager; Any avoids circular import
        require_tenant: bool = False,
        excluded_paths: list[str] | None = None,
    ) -> None:
        self._app = app
        self._manager = manager
        self._require_tenant = require_tenant
        self._excluded: list[str] = excluded_paths or []

    def _is_excluded(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self._excluded)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self._app(scope, receive, send)
            return

        if self._is_excluded(scope.get("path", "/")):
            await self._app(scope, receive, send)
            return

        try:
            async with self._manager.connection():
                await self._handle(scope, receive, send)
        except TenancyError:
            # Raised while binding or releasing the connection.
            logger.exception("Tenancy connection failure")
            await _json_response(send, 500, "Internal tenancy error")

    async def _resolve(self, scope: Scope, receive: Receive) -> tuple[bool, Any]:
        """Return ``(ok, tenant)``; ``ok`` is ``False`` when resolution failed."""
        from starlette.requests import HTTPConnection  # noqa: PLC0415

        connection = HTTPConnection(scope, receive)
        try:
            return True, await self._manager.resolver.resolve(connection)
        except TenancyError:
            logger.exception("Tenant resolution failed")
            if self._manager.config.development_fallback:
                logger.info("No tenant resolved, using development fallback")
                return True, None
            return False, None

    async def _handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        response_started = False

        async def _send_wrapper(message: dict[str, Any]) -> None:
            nonlocal response_started
            if message.get("type") == "http.response.start":
                response_started = True
            await send(message)

        ok, tenant = await self._resolve(scope, receive)
        if not ok:
            await _json_response(send, 500, "Internal tenancy error")
            return
        if (
            tenant is None
            and self._require_tenant
            and not self._manager.config.development_fallback
        ):
            await _json_response(send, 404, "Tenant not found")
            return

        context = self._manager.context
        try:
            async with context.with_tenant(tenant):
                # Starlette wraps scope["state"] (a dict) in request.state.
                state = scope.setdefault("state", {})
                if isinstance(state, dict):
                    state["tenant"] = tenant
                else:
                    state.tenant = tenant

                await self._app(scope, receive, _send_wrapper)  # type: ignore[arg-type]
        except TenancyError as exc:
            if not response_started:
                logger.exception("Unhandled tenancy error: %s", exc)  # noqa: TRY401
                await _json_response(send, 500, "Internal tenancy error")
            else:
                logger.exception(
                    "TenancyError raised after response already started "
                    "for tenant %r; cannot send error response",
                    tenant,
                )


__all__ = ["TenancyMiddleware"]
