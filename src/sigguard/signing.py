"""Ed25519 signing and verification of request messages."""

from __future__ import annotations

from typing import Optional, Union

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from sigguard._canonical import build_message
from sigguard.codec import decode_public_key
from sigguard.models import DEFAULT_SIGNATURE_HEADER, DEFAULT_TIMESTAMP_HEADER, VerificationResult


def verify_key_from_hex(hex_text: Union[str, bytes]) -> VerifyKey:
    """Build a PyNaCl VerifyKey from a hex public key."""
    return VerifyKey(decode_public_key(hex_text))


def verify(message: bytes, signature: bytes, verify_key: VerifyKey) -> VerificationResult:
    """Check a detached 64-byte Ed25519 signature over `message`.

    Never raises for a bad signature; the outcome is returned as a value.
    """
    try:
        verify_key.verify(message, signature)
    except BadSignatureError:
        return VerificationResult.invalid("signature verification failed")
    return VerificationResult.ok()


def signing_key_to_public_hex(signing_key: SigningKey) -> str:
    """Hex-encoded public key for a PyNaCl SigningKey."""
    return signing_key.verify_key.encode(encoder=HexEncoder).decode("ascii")


def sign_request(
    signing_key: SigningKey,
    timestamp: Optional[Union[str, bytes]],
    body: bytes,
) -> str:
    """Sign a request as a client would, returning the hex signature."""
    message = build_message(timestamp, body)
    signed = signing_key.sign(message, encoder=HexEncoder)
    return signed.signature.decode("ascii")


def signed_headers(
    signing_key: SigningKey,
    timestamp: str,
    body: bytes,
    signature_header: str = DEFAULT_SIGNATURE_HEADER,
    timestamp_header: str = DEFAULT_TIMESTAMP_HEADER,
) -> dict[str, str]:
    """Headers a client sends alongside `body` for the gate to accept it."""
    return {
        signature_header: sign_request(signing_key, timestamp, body),
        timestamp_header: timestamp,
    }
