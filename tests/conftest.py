"""Shared fixtures for sigguard tests."""

from __future__ import annotations

import pytest
from nacl.encoding import HexEncoder
from nacl.signing import SigningKey

from sigguard.config import AuthenticatorBuilder
from sigguard.models import GateConfig


@pytest.fixture
def signing_key():
    """A fresh Ed25519 signing key."""
    return SigningKey.generate()


@pytest.fixture
def signing_key_b():
    """A second Ed25519 signing key."""
    return SigningKey.generate()


def _public_hex(sk: SigningKey) -> str:
    return sk.verify_key.encode(encoder=HexEncoder).decode("ascii")


def _sign(sk: SigningKey, message: bytes) -> str:
    return sk.sign(message, encoder=HexEncoder).signature.decode("ascii")


@pytest.fixture
def public_key(signing_key):
    return _public_hex(signing_key)


@pytest.fixture
def reject_config(public_key) -> GateConfig:
    return AuthenticatorBuilder().public_key(public_key).reject().build_config()


@pytest.fixture
def annotate_config(public_key) -> GateConfig:
    return AuthenticatorBuilder().public_key(public_key).annotate().build_config()
