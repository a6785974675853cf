"""Webhook sender that signs requests for a sigguard-protected endpoint.

Uses stdlib urllib — no extra dependencies required.
"""

from __future__ import annotations

import json
import time
import urllib.error
import urllib.request
from typing import Optional, Union

from nacl.signing import SigningKey

from sigguard.models import DEFAULT_SIGNATURE_HEADER, DEFAULT_TIMESTAMP_HEADER
from sigguard.signing import signed_headers


class WebhookDeliveryError(Exception):
    """Raised when the receiving endpoint answers with an error."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")


class SignedWebhookClient:
    """POST signed payloads to a single endpoint."""

    def __init__(
        self,
        signing_key: SigningKey,
        url: str,
        signature_header: str = DEFAULT_SIGNATURE_HEADER,
        timestamp_header: str = DEFAULT_TIMESTAMP_HEADER,
        timeout: float = 30,
    ):
        self.signing_key = signing_key
        self.url = url
        self.signature_header = signature_header
        self.timestamp_header = timestamp_header
        self.timeout = timeout

    def headers_for(self, body: bytes, timestamp: Optional[str] = None) -> dict[str, str]:
        """Signature and timestamp headers for `body`. Timestamp defaults to now."""
        if timestamp is None:
            timestamp = str(int(time.time()))
        return signed_headers(
            self.signing_key,
            timestamp,
            body,
            signature_header=self.signature_header,
            timestamp_header=self.timestamp_header,
        )

    def send(
        self,
        payload: Union[bytes, dict],
        timestamp: Optional[str] = None,
        content_type: str = "application/json",
    ) -> bytes:
        """Sign and POST `payload`, returning the raw response body.

        Dicts are serialized as compact JSON; the signature covers exactly
        the bytes that go on the wire.
        """
        if isinstance(payload, dict):
            body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        else:
            body = payload

        req = urllib.request.Request(self.url, data=body, method="POST")
        req.add_header("Content-Type", content_type)
        for name, value in self.headers_for(body, timestamp).items():
            req.add_header(name, value)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return resp.read()
        except urllib.error.HTTPError as e:
            try:
                error_body = json.loads(e.read().decode("utf-8"))
                msg = (
                    error_body.get("error")
                    or error_body.get("detail")
                    or str(error_body)
                )
            except (ValueError, AttributeError):
                msg = e.reason
            raise WebhookDeliveryError(e.code, msg) from e
        except urllib.error.URLError as e:
            raise WebhookDeliveryError(0, f"Connection failed: {e.reason}") from e
