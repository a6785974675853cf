"""Data model for the signature gate.

GateConfig is built once at startup and shared read-only by every request.
The other types are per-request values.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from nacl.signing import VerifyKey
from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator, model_validator

from sigguard.codec import decode_public_key
from sigguard.exceptions import DecodeError, InvalidKeyEncodingError, MissingKeyError

DEFAULT_SIGNATURE_HEADER = "X-Signature-Ed25519"
DEFAULT_TIMESTAMP_HEADER = "X-Signature-Timestamp"


# --- Enums ---

class Policy(str, Enum):
    REJECT = "reject"
    ANNOTATE = "annotate"


# --- Per-request values ---

@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying one request. `reason` is set only when invalid."""

    valid: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> VerificationResult:
        return cls(valid=True)

    @classmethod
    def invalid(cls, reason: str) -> VerificationResult:
        return cls(valid=False, reason=reason)

    def __bool__(self) -> bool:
        return self.valid


@dataclass(frozen=True)
class AuthenticationInfo:
    """Authentication flag attached to the request state for later handlers."""

    authenticated: bool


@dataclass(frozen=True)
class Decision:
    """Forward to the next handler, or short-circuit with 401."""

    forward: bool
    info: AuthenticationInfo


# --- Configuration ---

class GateConfig(BaseModel):
    """Immutable gate configuration.

    The hex public key is decoded once here; requests only ever see the
    resulting VerifyKey.
    """

    model_config = ConfigDict(frozen=True)

    public_key: str
    signature_header: str = DEFAULT_SIGNATURE_HEADER
    timestamp_header: str = DEFAULT_TIMESTAMP_HEADER
    policy: Policy = Policy.REJECT

    _verify_key: VerifyKey = PrivateAttr()

    @model_validator(mode="before")
    @classmethod
    def require_public_key(cls, data):
        if isinstance(data, dict) and not data.get("public_key"):
            raise MissingKeyError("A public key is required to build the gate")
        return data

    @field_validator("public_key")
    @classmethod
    def validate_public_key(cls, v: str) -> str:
        try:
            decode_public_key(v)
        except DecodeError as exc:
            # Not a ValueError, so pydantic lets it through unwrapped
            raise InvalidKeyEncodingError(f"Public key is not valid: {exc}") from exc
        return v.lower()

    @field_validator("signature_header", "timestamp_header")
    @classmethod
    def validate_header_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("header name must not be empty")
        return v.strip()

    def model_post_init(self, __context) -> None:
        self._verify_key = VerifyKey(decode_public_key(self.public_key))

    @property
    def verify_key(self) -> VerifyKey:
        return self._verify_key

