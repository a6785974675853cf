"""Hex decoding for Ed25519 public keys and detached signatures.

Both are transmitted as hex text (either case). Decoding is strict: any
non-hex character, odd length, or size other than the Ed25519 size is an
error. Nothing is ever padded or truncated.
"""

from __future__ import annotations

from typing import Optional, Union

from nacl.bindings import crypto_sign_BYTES, crypto_sign_PUBLICKEYBYTES
from nacl.encoding import HexEncoder

from sigguard.exceptions import (
    InvalidHexError,
    MissingSignatureHeaderError,
    WrongKeyLengthError,
    WrongSignatureLengthError,
)

PUBLIC_KEY_SIZE = crypto_sign_PUBLICKEYBYTES  # 32
SIGNATURE_SIZE = crypto_sign_BYTES  # 64

HexInput = Union[str, bytes]


def decode_hex(text: HexInput) -> bytes:
    """Decode hex text to raw bytes, raising InvalidHexError on bad input."""
    if isinstance(text, str):
        try:
            text = text.encode("ascii")
        except UnicodeEncodeError:
            raise InvalidHexError("hex input contains non-ASCII characters")
    if len(text) % 2:
        raise InvalidHexError("hex input has odd length")
    try:
        return HexEncoder.decode(text)
    except ValueError:
        raise InvalidHexError("hex input contains non-hex characters")


def decode_public_key(hex_text: HexInput) -> bytes:
    """Decode a hex public key to exactly 32 bytes."""
    raw = decode_hex(hex_text)
    if len(raw) != PUBLIC_KEY_SIZE:
        raise WrongKeyLengthError(
            f"public key must be {PUBLIC_KEY_SIZE} bytes, got {len(raw)}"
        )
    return raw


def decode_signature(header_value: Optional[HexInput]) -> bytes:
    """Decode a hex signature header value to exactly 64 bytes.

    None means the header was absent.
    """
    if header_value is None:
        raise MissingSignatureHeaderError("signature header is missing")
    raw = decode_hex(header_value)
    if len(raw) != SIGNATURE_SIZE:
        raise WrongSignatureLengthError(
            f"signature must be {SIGNATURE_SIZE} bytes, got {len(raw)}"
        )
    return raw
