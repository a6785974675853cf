"""Canonical message framing for request signatures.

The signed message is the raw timestamp header bytes immediately followed
by the raw body bytes:

    message = timestamp ++ body

No separator, no length prefix. An absent timestamp header contributes
zero bytes, so a signature over the body alone verifies when the header
is missing.
"""

from __future__ import annotations

from typing import Optional, Union


def _timestamp_bytes(timestamp: Optional[Union[str, bytes]]) -> bytes:
    if timestamp is None:
        return b""
    if isinstance(timestamp, str):
        # Header values travel as latin-1 on the wire; frameworks that
        # decode headers as UTF-8 can hand over characters beyond latin-1
        try:
            return timestamp.encode("latin-1")
        except UnicodeEncodeError:
            return timestamp.encode("utf-8")
    return bytes(timestamp)


def build_message(timestamp: Optional[Union[str, bytes]], body: bytes) -> bytes:
    """Build the exact byte sequence the client signed.

    Deterministic: the same timestamp and body always produce the same bytes.
    """
    return _timestamp_bytes(timestamp) + bytes(body)
