"""Gate configuration: builder and environment loading.

Configuration errors surface here, at startup, and never per request. A
gate whose key does not decode is never constructed.

Environment variables:
  SIGGUARD_PUBLIC_KEY        — hex Ed25519 public key (falls back to PUBLIC_KEY)
  SIGGUARD_SIGNATURE_HEADER  — default X-Signature-Ed25519
  SIGGUARD_TIMESTAMP_HEADER  — default X-Signature-Timestamp
  SIGGUARD_POLICY            — "reject" (default) or "annotate"
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Optional

from pydantic import ValidationError

from sigguard.codec import decode_public_key
from sigguard.exceptions import (
    ConfigError,
    DecodeError,
    InvalidKeyEncodingError,
    MissingKeyError,
)
from sigguard.models import (
    DEFAULT_SIGNATURE_HEADER,
    DEFAULT_TIMESTAMP_HEADER,
    GateConfig,
    Policy,
)

if TYPE_CHECKING:
    from sigguard.middleware import Ed25519Authenticator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatorBuilder:
    """Chainable builder for the gate. Every setter returns a new builder.

        AuthenticatorBuilder()
            .public_key(hex_key)
            .signature_header("X-Signature-Ed25519")
            .timestamp_header("X-Signature-Timestamp")
            .reject()
            .build()

    A public key is required. The policy defaults to reject.
    """

    _public_key: Optional[str] = None
    _signature_header: Optional[str] = None
    _timestamp_header: Optional[str] = None
    _policy: Policy = Policy.REJECT

    def public_key(self, public_key: str) -> AuthenticatorBuilder:
        """Hex-encoded 32-byte Ed25519 public key. Required."""
        return dataclasses.replace(self, _public_key=public_key)

    def signature_header(self, header: str) -> AuthenticatorBuilder:
        return dataclasses.replace(self, _signature_header=header)

    def timestamp_header(self, header: str) -> AuthenticatorBuilder:
        return dataclasses.replace(self, _timestamp_header=header)

    def policy(self, policy: Policy | str) -> AuthenticatorBuilder:
        try:
            policy = Policy(policy)
        except ValueError:
            raise ConfigError(f"Unknown policy: {policy!r}. Use 'reject' or 'annotate'.")
        return dataclasses.replace(self, _policy=policy)

    def reject(self) -> AuthenticatorBuilder:
        """Answer 401 to any request whose signature does not verify."""
        return self.policy(Policy.REJECT)

    def annotate(self) -> AuthenticatorBuilder:
        """Forward every request, flagging whether it authenticated."""
        return self.policy(Policy.ANNOTATE)

    def build_config(self) -> GateConfig:
        """Validate and freeze the configuration.

        Raises MissingKeyError or InvalidKeyEncodingError.
        """
        if not self._public_key:
            raise MissingKeyError("A public key is required to build the authenticator")
        try:
            decode_public_key(self._public_key)
        except DecodeError as exc:
            raise InvalidKeyEncodingError(f"Public key is not valid: {exc}") from exc

        try:
            return GateConfig(
                public_key=self._public_key,
                signature_header=self._signature_header or DEFAULT_SIGNATURE_HEADER,
                timestamp_header=self._timestamp_header or DEFAULT_TIMESTAMP_HEADER,
                policy=self._policy,
            )
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    def build(self) -> Ed25519Authenticator:
        """Build the middleware factory."""
        from sigguard.middleware import Ed25519Authenticator

        return Ed25519Authenticator(self.build_config())


def _env_value(env: Mapping[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = env.get(key)
        if value is not None and value.strip():
            return value.strip()
    return None


def builder_from_env(environ: Mapping[str, str] | None = None) -> AuthenticatorBuilder:
    """Builder preloaded from environment variables, for callers that override some settings."""
    env = os.environ if environ is None else environ
    builder = AuthenticatorBuilder()

    public_key = _env_value(env, "SIGGUARD_PUBLIC_KEY", "PUBLIC_KEY")
    if public_key is not None:
        builder = builder.public_key(public_key)

    signature_header = _env_value(env, "SIGGUARD_SIGNATURE_HEADER")
    if signature_header is not None:
        builder = builder.signature_header(signature_header)

    timestamp_header = _env_value(env, "SIGGUARD_TIMESTAMP_HEADER")
    if timestamp_header is not None:
        builder = builder.timestamp_header(timestamp_header)

    policy = _env_value(env, "SIGGUARD_POLICY")
    if policy is not None:
        builder = builder.policy(policy.lower())
    return builder


def config_from_env(environ: Mapping[str, str] | None = None) -> GateConfig:
    """Build a GateConfig from environment variables."""
    config = builder_from_env(environ).build_config()
    logger.debug(
        "Loaded gate config from environment: policy=%s signature_header=%s timestamp_header=%s",
        config.policy.value,
        config.signature_header,
        config.timestamp_header,
    )
    return config
