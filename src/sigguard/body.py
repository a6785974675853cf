"""Request body capture and replay over the ASGI receive channel.

The body stream can be consumed only once, but the gate needs it twice:
once to verify the signature and once for the downstream handler. The
whole body is drained into memory and a replacement `receive` is handed
downstream that delivers the identical bytes as a single message.

No size limit is applied here. Deployments that need one must enforce it
in front of the gate.
"""

from __future__ import annotations

from typing import Tuple

from starlette.requests import ClientDisconnect
from starlette.types import Message, Receive


async def capture(receive: Receive) -> Tuple[bytes, Receive]:
    """Drain the request body, returning (raw_body, replay_receive).

    Chunks are accumulated in arrival order until `more_body` is false.
    Raises ClientDisconnect if the client goes away mid-body; the partial
    buffer is discarded.
    """
    buffer = bytearray()
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            raise ClientDisconnect()
        if message["type"] != "http.request":
            continue
        buffer.extend(message.get("body", b""))
        if not message.get("more_body", False):
            break

    raw_body = bytes(buffer)
    return raw_body, replay_receive(raw_body, receive)


def replay_receive(body: bytes, receive: Receive) -> Receive:
    """Build a receive callable that yields `body` once, then defers to `receive`.

    After the replayed message, later calls reach the original channel so
    downstream still observes `http.disconnect`.
    """
    replayed = False

    async def _receive() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return _receive
