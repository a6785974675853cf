"""Development application — gated POST endpoints for trying out clients.

`POST /` sits behind the middleware. `POST /manual` is not gated and
verifies inside the route instead.

Run with `sigguard serve` or:

    SIGGUARD_PUBLIC_KEY=<hex> uvicorn sigguard.api.app:create_app --factory
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from sigguard import __version__ as _VERSION
from sigguard.config import config_from_env
from sigguard.exceptions import RequestError
from sigguard.gate import ensure_authenticated
from sigguard.middleware import Ed25519AuthMiddleware, get_authentication_info
from sigguard.models import AuthenticationInfo, GateConfig


def create_app(config: Optional[GateConfig] = None) -> FastAPI:
    """Build the development app. Reads the environment when no config is given."""
    if config is None:
        config = config_from_env()

    app = FastAPI(
        title="sigguard development server",
        description="Ed25519 signature-gated webhook receiver.",
        version=_VERSION,
    )
    app.add_middleware(Ed25519AuthMiddleware, config=config, paths={"/"})

    # --- Exception handlers ---

    @app.exception_handler(RequestError)
    async def _request_error(request: Request, exc: RequestError):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    # --- Routes ---

    @app.post("/")
    async def receive_webhook(
        request: Request,
        info: AuthenticationInfo = Depends(get_authentication_info),
    ):
        body = await request.body()
        return {"ok": True, "authenticated": info.authenticated, "bytes": len(body)}

    @app.post("/manual")
    async def receive_manual(request: Request):
        await ensure_authenticated(request, config)
        body = await request.body()
        return {"ok": True, "authenticated": True, "bytes": len(body)}

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": _VERSION,
            "policy": config.policy.value,
        }

    return app
