"""
LN Markets request signing.

Signature = base64(HMAC-SHA256(secret, timestamp + METHOD + path + data))
where ``path`` includes the ``/v2`` prefix and ``data`` is the urlencoded
query string for GET/DELETE or the JSON body for POST/PUT.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from defisats.domain.exchange.entities import LNMarketsCredentials

BODY_METHODS = ("POST", "PUT", "PATCH")


def sign_payload(secret: str, timestamp: str, method: str, path: str, data: str) -> str:
    """Return the base64 HMAC-SHA256 signature of one request."""
    message = f"{timestamp}{method.upper()}{path}{data}"
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def encode_params(params: Optional[Mapping[str, Any]]) -> str:
    """Urlencode query params in insertion order, dropping None values."""
    if not params:
        return ""
    return urlencode({k: v for k, v in params.items() if v is not None})


def encode_body(body: Optional[Mapping[str, Any]]) -> str:
    """Serialize a JSON body compactly; the signed bytes must match the sent bytes."""
    if body is None:
        return ""
    return json.dumps(body, separators=(",", ":"))


def request_data(method: str, params: Optional[Mapping[str, Any]], body: Optional[Mapping[str, Any]]) -> str:
    if method.upper() in BODY_METHODS:
        return encode_body(body)
    return encode_params(params)


def build_auth_headers(
    credentials: LNMarketsCredentials,
    method: str,
    path: str,
    params: Optional[Mapping[str, Any]] = None,
    body: Optional[Mapping[str, Any]] = None,
    timestamp: Optional[str] = None,
) -> dict[str, str]:
    """Return the four LNM-ACCESS-* headers for a request.

    Args:
        credentials: API key, secret and passphrase.
        method: HTTP method.
        path: Full request path including ``/v2``.
        params: Query parameters (GET/DELETE).
        body: JSON body (POST/PUT).
        timestamp: Milliseconds since epoch; defaults to now.
    """
    ts = timestamp or str(int(time.time() * 1000))
    data = request_data(method, params, body)
    return {
        "LNM-ACCESS-KEY": credentials.api_key.strip(),
        "LNM-ACCESS-PASSPHRASE": credentials.passphrase.strip(),
        "LNM-ACCESS-TIMESTAMP": ts,
        "LNM-ACCESS-SIGNATURE": sign_payload(credentials.api_secret.strip(), ts, method, path, data),
    }
