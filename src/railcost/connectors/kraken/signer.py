"""Kraken private-endpoint request signing."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from urllib.parse import urlencode


def sign_request(path: str, data: dict[str, str], secret_b64: str) -> str:
    """
    Compute the API-Sign header value.

    API-Sign = base64(HMAC-SHA512(path + SHA256(nonce + postdata), base64decode(secret)))

    Args:
        path: URI path, e.g. "/0/private/TradeVolume".
        data: Form fields including "nonce", in the order they are sent.
        secret_b64: Base64-encoded API secret.
    """
    postdata = urlencode(data)
    digest = hashlib.sha256((data["nonce"] + postdata).encode()).digest()
    mac = hmac.new(base64.b64decode(secret_b64), path.encode() + digest, hashlib.sha512)
    return base64.b64encode(mac.digest()).decode()


class NonceSource:
    """Strictly increasing millisecond nonces."""

    def __init__(self) -> None:
        self._last = 0

    def next(self) -> str:
        now = int(time.time() * 1000)
        self._last = max(now, self._last + 1)
        return str(self._last)
