"""ASGI middleware that gates requests on an Ed25519 request signature.

Usage with FastAPI:

    from fastapi import Depends, FastAPI
    from sigguard import AuthenticatorBuilder, require_authenticated

    app = FastAPI()
    AuthenticatorBuilder().public_key(PUBLIC_KEY_HEX).reject().build().install(app)

    @app.post("/webhook")
    async def webhook(request: Request):
        data = await request.json()   # body was replayed after verification
        ...

With the annotate policy every request reaches the route and the route
decides, e.g. via `Depends(require_authenticated)` or
`get_authentication_info(request).authenticated`.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from fastapi import HTTPException, Request, status
from starlette.datastructures import Headers
from starlette.requests import ClientDisconnect
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from sigguard.body import capture
from sigguard.gate import authenticate, decide
from sigguard.models import AuthenticationInfo, GateConfig

logger = logging.getLogger(__name__)

# Key under scope["state"]; readable as request.state.signature_auth
STATE_KEY = "signature_auth"


class Ed25519AuthMiddleware:
    """Verify every HTTP request before it reaches `app`.

    Args:
        app: The downstream ASGI application.
        config: Frozen gate configuration shared by all requests.
        paths: If given, only these exact paths are gated.
    """

    def __init__(
        self,
        app: ASGIApp,
        config: GateConfig,
        paths: Optional[Iterable[str]] = None,
    ) -> None:
        self.app = app
        self.config = config
        self.paths = frozenset(paths) if paths is not None else None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        if self.paths is not None and scope.get("path") not in self.paths:
            await self.app(scope, receive, send)
            return

        try:
            body, replay = await capture(receive)
        except ClientDisconnect:
            logger.debug("Client disconnected before the body was complete")
            return

        result = authenticate(Headers(scope=scope), body, self.config)
        decision = decide(result, self.config.policy)

        if not decision.forward:
            logger.warning(
                "Rejected unsigned or badly signed request: %s %s",
                scope.get("method"),
                scope.get("path"),
            )
            # Same response for every failure kind
            response = JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Unauthorized"},
            )
            await response(scope, receive, send)
            return

        scope.setdefault("state", {})[STATE_KEY] = decision.info
        await self.app(scope, replay, send)


class Ed25519Authenticator:
    """Middleware factory produced by AuthenticatorBuilder.build()."""

    def __init__(self, config: GateConfig) -> None:
        self.config = config

    def wrap(self, app: ASGIApp, paths: Optional[Iterable[str]] = None) -> Ed25519AuthMiddleware:
        """Wrap a bare ASGI app."""
        return Ed25519AuthMiddleware(app, config=self.config, paths=paths)

    def install(self, app, paths: Optional[Iterable[str]] = None) -> None:
        """Register on a Starlette/FastAPI app via add_middleware."""
        app.add_middleware(Ed25519AuthMiddleware, config=self.config, paths=paths)


# --- FastAPI dependencies ---

def get_authentication_info(request: Request) -> AuthenticationInfo:
    """Authentication flag set by the middleware.

    Requests the middleware never saw count as unauthenticated.
    """
    info = request.scope.get("state", {}).get(STATE_KEY)
    if info is None:
        return AuthenticationInfo(authenticated=False)
    return info


def require_authenticated(request: Request) -> AuthenticationInfo:
    """Dependency for annotate-mode routes: 401 unless the signature verified."""
    info = get_authentication_info(request)
    if not info.authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return info
