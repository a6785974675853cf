"""Request verification pipeline and the pass/reject decision.

    headers + body ──> canonical message ──┐
    signature header ──> 64-byte signature ┼──> verify ──> decide(policy)
    config.verify_key ─────────────────────┘

Decode failures (absent header, bad hex, wrong length) and bad signatures
collapse into the same invalid outcome. `authenticate` never raises for a
per-request condition; `ensure_authenticated` raises RequestError for
callers that prefer exceptions.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

from starlette.datastructures import Headers
from starlette.requests import Request

from sigguard._canonical import build_message
from sigguard.codec import decode_signature
from sigguard.exceptions import (
    DecodeError,
    MalformedSignatureHeaderError,
    RequestError,
    SignatureVerificationFailedError,
)
from sigguard.models import AuthenticationInfo, Decision, GateConfig, Policy, VerificationResult
from sigguard.signing import verify

logger = logging.getLogger(__name__)

HeaderSource = Union[Headers, Mapping[str, str]]


def _header(headers: HeaderSource, name: str) -> Optional[str]:
    """Case-insensitive header lookup on Starlette Headers or a plain mapping."""
    if isinstance(headers, Headers):
        return headers.get(name)
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def check_signature(headers: HeaderSource, body: bytes, config: GateConfig) -> None:
    """Verify the detached signature of one request, raising on failure.

    Header names are matched case-insensitively. A missing timestamp
    header contributes an empty timestamp to the signed message.

    Raises:
        MalformedSignatureHeaderError: header absent, not hex, or not 64 bytes.
        SignatureVerificationFailedError: signature does not match.
    """
    message = build_message(_header(headers, config.timestamp_header), body)

    try:
        signature = decode_signature(_header(headers, config.signature_header))
    except DecodeError as exc:
        raise MalformedSignatureHeaderError(str(exc)) from exc

    result = verify(message, signature, config.verify_key)
    if not result.valid:
        raise SignatureVerificationFailedError(result.reason)


def authenticate(headers: HeaderSource, body: bytes, config: GateConfig) -> VerificationResult:
    """Verify one request, returning the outcome as a value."""
    try:
        check_signature(headers, body, config)
    except RequestError as exc:
        logger.info("Request failed signature check: %s", exc)
        return VerificationResult.invalid(str(exc))
    return VerificationResult.ok()


def decide(result: VerificationResult, policy: Policy) -> Decision:
    """Map a verification outcome to forward/reject under `policy`.

    Reject: only valid requests are forwarded.
    Annotate: every request is forwarded; the flag records validity.
    """
    info = AuthenticationInfo(authenticated=result.valid)
    if policy is Policy.ANNOTATE:
        return Decision(forward=True, info=info)
    return Decision(forward=result.valid, info=info)


async def authenticate_request(request: Request, config: GateConfig) -> VerificationResult:
    """Verify a Starlette request by hand, inside a route or another middleware.

    Does not reject and does not set the authentication flag; the caller
    decides. The body stays readable afterwards since Starlette caches it.
    """
    body = await request.body()
    return authenticate(request.headers, body, config)


async def ensure_authenticated(request: Request, config: GateConfig) -> None:
    """Like authenticate_request, but raises RequestError when invalid."""
    body = await request.body()
    check_signature(request.headers, body, config)
