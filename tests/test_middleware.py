"""Tests for sigguard.middleware — the gate in front of an ASGI app."""

from __future__ import annotations

import asyncio

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from sigguard.config import AuthenticatorBuilder
from sigguard.middleware import (
    STATE_KEY,
    Ed25519AuthMiddleware,
    get_authentication_info,
    require_authenticated,
)
from sigguard.models import AuthenticationInfo
from tests.conftest import _sign

TS = "1700000000"
BODY = b'{"x":1}'


def _headers(sk, body: bytes = BODY, ts: str = TS) -> dict:
    return {
        "X-Signature-Ed25519": _sign(sk, ts.encode() + body),
        "X-Signature-Timestamp": ts,
        "Content-Type": "application/json",
    }


def _make_app(config) -> tuple[FastAPI, list]:
    """App echoing the replayed body and the auth flag; records each call."""
    calls = []
    app = FastAPI()
    app.add_middleware(Ed25519AuthMiddleware, config=config)

    @app.post("/webhook")
    async def webhook(request: Request, info: AuthenticationInfo = Depends(get_authentication_info)):
        body = await request.body()
        calls.append(body)
        return {"authenticated": info.authenticated, "body": body.decode("latin-1")}

    @app.post("/strict")
    async def strict(info: AuthenticationInfo = Depends(require_authenticated)):
        return {"authenticated": info.authenticated}

    return app, calls


class TestRejectPolicy:
    def test_valid_forwarded_with_body(self, signing_key, reject_config):
        app, calls = _make_app(reject_config)
        client = TestClient(app)
        resp = client.post("/webhook", content=BODY, headers=_headers(signing_key))
        assert resp.status_code == 200
        assert resp.json() == {"authenticated": True, "body": BODY.decode()}
        assert calls == [BODY]

    def test_downstream_can_parse_json(self, signing_key, reject_config):
        app = FastAPI()
        app.add_middleware(Ed25519AuthMiddleware, config=reject_config)

        @app.post("/json")
        async def as_json(request: Request):
            return await request.json()

        resp = TestClient(app).post("/json", content=BODY, headers=_headers(signing_key))
        assert resp.json() == {"x": 1}

    def test_tampered_body_rejected(self, signing_key, reject_config):
        app, calls = _make_app(reject_config)
        resp = TestClient(app).post(
            "/webhook", content=b'{"x":2}', headers=_headers(signing_key),
        )
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}
        assert calls == []

    @pytest.mark.parametrize("signature", [None, "zz", "ab" * 63, "ab" * 64])
    def test_failures_indistinguishable(self, signing_key, reject_config, signature):
        app, calls = _make_app(reject_config)
        headers = _headers(signing_key)
        if signature is None:
            del headers["X-Signature-Ed25519"]
        else:
            headers["X-Signature-Ed25519"] = signature
        resp = TestClient(app).post("/webhook", content=BODY, headers=headers)
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}
        assert calls == []

    def test_missing_timestamp_signed_over_body_only(self, signing_key, reject_config):
        app, calls = _make_app(reject_config)
        headers = {"X-Signature-Ed25519": _sign(signing_key, BODY)}
        resp = TestClient(app).post("/webhook", content=BODY, headers=headers)
        assert resp.status_code == 200
        assert calls == [BODY]

    def test_lowercase_header_names(self, signing_key, reject_config):
        app, _ = _make_app(reject_config)
        headers = {k.lower(): v for k, v in _headers(signing_key).items()}
        resp = TestClient(app).post("/webhook", content=BODY, headers=headers)
        assert resp.status_code == 200

    def test_non_http_scope_passes_through(self, reject_config):
        seen = []

        async def downstream(scope, receive, send):
            seen.append(scope["type"])

        mw = Ed25519AuthMiddleware(downstream, config=reject_config)
        asyncio.run(mw({"type": "lifespan"}, None, None))
        assert seen == ["lifespan"]


class TestAnnotatePolicy:
    def test_valid_flag_true(self, signing_key, annotate_config):
        app, _ = _make_app(annotate_config)
        resp = TestClient(app).post("/webhook", content=BODY, headers=_headers(signing_key))
        assert resp.status_code == 200
        assert resp.json()["authenticated"] is True

    def test_tampered_forwarded_with_flag_false(self, signing_key, annotate_config):
        app, calls = _make_app(annotate_config)
        resp = TestClient(app).post(
            "/webhook", content=b'{"x":2}', headers=_headers(signing_key),
        )
        assert resp.status_code == 200
        assert resp.json() == {"authenticated": False, "body": '{"x":2}'}
        assert calls == [b'{"x":2}']

    def test_require_authenticated_dependency(self, signing_key, annotate_config):
        app, _ = _make_app(annotate_config)
        client = TestClient(app)
        ok = client.post("/strict", content=BODY, headers=_headers(signing_key))
        assert ok.status_code == 200
        bad = client.post("/strict", content=BODY, headers={"X-Signature-Ed25519": "zz"})
        assert bad.status_code == 401


class TestPathRestriction:
    def test_ungated_path_passes(self, reject_config):
        app = FastAPI()
        app.add_middleware(Ed25519AuthMiddleware, config=reject_config, paths={"/webhook"})

        @app.post("/open")
        async def open_route(request: Request):
            return {"authenticated": get_authentication_info(request).authenticated}

        @app.post("/webhook")
        async def webhook():
            return {"ok": True}

        client = TestClient(app)
        assert client.post("/open", content=b"x").json() == {"authenticated": False}
        assert client.post("/webhook", content=b"x").status_code == 401


def _run_asgi(mw, messages):
    """Drive a middleware with raw ASGI messages; return sent messages."""
    queue = list(messages)
    sent = []

    async def receive():
        if queue:
            return queue.pop(0)
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/webhook",
        "headers": [],
    }
    return scope, receive, send, sent


class TestRawAsgi:
    def _scope_headers(self, sk, body):
        return [
            (b"x-signature-ed25519", _sign(sk, TS.encode() + body).encode()),
            (b"x-signature-timestamp", TS.encode()),
        ]

    def test_chunked_body_replayed_exactly(self, signing_key, reject_config):
        parts = [b'{"pay', b"", b'load":', b'"' + b"z" * 5000 + b'"}']
        body = b"".join(parts)
        seen = {}

        async def downstream(scope, receive, send):
            chunks = []
            while True:
                msg = await receive()
                chunks.append(msg.get("body", b""))
                if not msg.get("more_body", False):
                    break
            seen["body"] = b"".join(chunks)
            seen["info"] = scope["state"][STATE_KEY]
            seen["next"] = await receive()

        mw = Ed25519AuthMiddleware(downstream, config=reject_config)
        messages = [{"type": "http.request", "body": p, "more_body": True} for p in parts[:-1]]
        messages.append({"type": "http.request", "body": parts[-1], "more_body": False})
        scope, receive, send, _ = _run_asgi(mw, messages)
        scope["headers"] = self._scope_headers(signing_key, body)

        asyncio.run(mw(scope, receive, send))
        assert seen["body"] == body
        assert seen["info"] == AuthenticationInfo(authenticated=True)
        assert seen["next"] == {"type": "http.disconnect"}

    def test_disconnect_during_capture_abandons(self, signing_key, reject_config):
        called = []

        async def downstream(scope, receive, send):
            called.append(True)

        mw = Ed25519AuthMiddleware(downstream, config=reject_config)
        scope, receive, send, sent = _run_asgi(mw, [
            {"type": "http.request", "body": b"part", "more_body": True},
            {"type": "http.disconnect"},
        ])
        scope["headers"] = self._scope_headers(signing_key, b"part")

        asyncio.run(mw(scope, receive, send))
        assert called == []
        assert sent == []

    def test_cancelled_during_capture(self, signing_key, reject_config):
        called = []

        async def downstream(scope, receive, send):
            called.append(True)

        mw = Ed25519AuthMiddleware(downstream, config=reject_config)

        async def run():
            stalled = asyncio.Event()
            sent = []

            async def receive():
                if not sent:
                    sent.append(True)
                    return {"type": "http.request", "body": b"part", "more_body": True}
                await stalled.wait()

            async def send(message):
                raise AssertionError("nothing may be sent")

            scope = {
                "type": "http",
                "method": "POST",
                "path": "/webhook",
                "headers": self._scope_headers(signing_key, b"part"),
            }
            task = asyncio.create_task(mw(scope, receive, send))
            for _ in range(3):
                await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return scope

        scope = asyncio.run(run())
        assert called == []
        assert "state" not in scope

    def test_rejection_sends_401(self, reject_config):
        async def downstream(scope, receive, send):
            raise AssertionError("downstream must not run")

        mw = Ed25519AuthMiddleware(downstream, config=reject_config)
        scope, receive, send, sent = _run_asgi(mw, [
            {"type": "http.request", "body": b"x", "more_body": False},
        ])

        asyncio.run(mw(scope, receive, send))
        assert sent[0]["type"] == "http.response.start"
        assert sent[0]["status"] == 401


class TestAuthenticatorFactory:
    def test_wrap_bare_app(self, signing_key, public_key):
        authenticator = AuthenticatorBuilder().public_key(public_key).reject().build()
        inner = FastAPI()

        @inner.post("/")
        async def root(request: Request):
            return {"body": (await request.body()).decode()}

        client = TestClient(authenticator.wrap(inner))
        resp = client.post("/", content=BODY, headers=_headers(signing_key))
        assert resp.status_code == 200
        assert resp.json() == {"body": BODY.decode()}

    def test_install(self, signing_key, public_key):
        app = FastAPI()
        AuthenticatorBuilder().public_key(public_key).annotate().build().install(app)

        @app.post("/")
        async def root(info: AuthenticationInfo = Depends(get_authentication_info)):
            return {"authenticated": info.authenticated}

        resp = TestClient(app).post("/", content=BODY, headers={"X-Signature-Ed25519": "zz"})
        assert resp.json() == {"authenticated": False}


class TestScenario:
    """Fixed key, timestamp and body; valid, then tampered under both policies."""

    def test_end_to_end(self, signing_key, public_key):
        message = b'1700000000{"x":1}'
        headers = {
            "X-Signature-Ed25519": _sign(signing_key, message),
            "X-Signature-Timestamp": "1700000000",
        }
        builder = AuthenticatorBuilder().public_key(public_key)

        reject_app, _ = _make_app(builder.reject().build_config())
        annotate_app, _ = _make_app(builder.annotate().build_config())

        assert TestClient(reject_app).post("/webhook", content=b'{"x":1}', headers=headers).status_code == 200
        assert TestClient(reject_app).post("/webhook", content=b'{"x":2}', headers=headers).status_code == 401
        tampered = TestClient(annotate_app).post("/webhook", content=b'{"x":2}', headers=headers)
        assert tampered.status_code == 200
        assert tampered.json()["authenticated"] is False
