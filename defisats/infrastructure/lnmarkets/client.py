"""
HTTP client for the LN Markets v2 REST API.

Handles base URL selection, request signing, timeouts, retries with
exponential backoff and the circuit breaker. Returns decoded JSON; the
mapping to domain entities lives in ``exchange.py``.

Retry policy:
    - network errors and 5xx responses are retried
    - 4xx responses are never retried (401/403 raise ExchangeAuthenticationError)
"""

import logging
import time
from typing import Any, Callable, Mapping, Optional

import httpx

from defisats.domain.exchange.entities import LNMarketsCredentials
from defisats.domain.exchange.errors import (
    ExchangeAuthenticationError,
    ExchangeError,
    ExchangeUnavailableError,
)
from defisats.infrastructure.lnmarkets.circuit_breaker import CircuitBreaker
from defisats.infrastructure.lnmarkets.signing import (
    BODY_METHODS,
    build_auth_headers,
    encode_body,
    encode_params,
)

logger = logging.getLogger(__name__)

MAINNET_URL = "https://api.lnmarkets.com"
TESTNET_URL = "https://api.testnet4.lnmarkets.com"
API_PREFIX = "/v2"


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)
    return str(payload)


class LNMarketsClient:
    """Signed, retrying client for one LN Markets account.

    Args:
        credentials: API credentials; None restricts the client to public endpoints.
        testnet: Use the testnet host. Defaults to ``credentials.testnet``.
        timeout: Per-request timeout in seconds.
        max_attempts: Attempts per call for retryable failures.
        backoff_seconds: Initial backoff, doubled after each failed attempt.
        transport: Optional httpx transport (tests use httpx.MockTransport).
        circuit_breaker: Shared breaker; a private one is created by default.
        sleep: Sleep function used between attempts.
    """

    def __init__(
        self,
        credentials: Optional[LNMarketsCredentials] = None,
        testnet: Optional[bool] = None,
        timeout: float = 15.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._credentials = credentials
        if testnet is None:
            testnet = credentials.testnet if credentials else False
        self.base_url = TESTNET_URL if testnet else MAINNET_URL
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff_seconds
        self._breaker = circuit_breaker or CircuitBreaker()
        self._sleep = sleep
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "LNMarketsClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Mapping[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        """Send one API call and return its decoded JSON body.

        Args:
            method: HTTP method.
            path: Path below ``/v2``, e.g. ``/futures``.
            params: Query parameters for GET/DELETE.
            body: JSON body for POST/PUT.
            authenticated: Sign the request with the account credentials.

        Raises:
            ExchangeAuthenticationError: Missing credentials or 401/403.
            ExchangeUnavailableError: The circuit breaker is open.
            ExchangeError: Any other failure after retries.
        """
        method = method.upper()
        full_path = f"{API_PREFIX}{path}"
        has_body = method in BODY_METHODS
        query = "" if has_body else encode_params(params)
        url = f"{full_path}?{query}" if query else full_path
        content = encode_body(body) if has_body else None

        if authenticated and self._credentials is None:
            raise ExchangeAuthenticationError("No LN Markets credentials configured")

        last_error: ExchangeError | None = None
        for attempt in range(self._max_attempts):
            if not self._breaker.allow_request():
                raise ExchangeUnavailableError("LN Markets temporarily unavailable (circuit open)")

            headers: dict[str, str] = {}
            if authenticated:
                headers.update(build_auth_headers(
                    self._credentials, method, full_path,
                    params=None if has_body else params,
                    body=body if has_body else None,
                ))
            if content is not None:
                headers["Content-Type"] = "application/json"

            try:
                response = self._http.request(method, url, content=content, headers=headers)
            except httpx.TransportError as exc:
                self._breaker.record_failure()
                last_error = ExchangeError(f"Network error calling LN Markets: {type(exc).__name__}")
                logger.warning(
                    "LN Markets %s %s failed (attempt %d/%d): %s",
                    method, full_path, attempt + 1, self._max_attempts, type(exc).__name__,
                )
            else:
                if response.status_code >= 500:
                    self._breaker.record_failure()
                    last_error = ExchangeError(
                        f"LN Markets error {response.status_code}: {_error_message(response)}",
                        status_code=response.status_code,
                    )
                    logger.warning(
                        "LN Markets %s %s returned %d (attempt %d/%d)",
                        method, full_path, response.status_code, attempt + 1, self._max_attempts,
                    )
                else:
                    self._breaker.record_success()
                    return self._handle_response(method, full_path, response)

            if attempt < self._max_attempts - 1:
                self._sleep(self._backoff * (2 ** attempt))

        raise last_error

    def _handle_response(self, method: str, path: str, response: httpx.Response) -> Any:
        status = response.status_code
        if status in (401, 403):
            logger.info("LN Markets rejected credentials on %s %s (%d)", method, path, status)
            raise ExchangeAuthenticationError(
                f"LN Markets authentication failed: {_error_message(response)}", status_code=status
            )
        if status >= 400:
            raise ExchangeError(
                f"LN Markets error {status}: {_error_message(response)}", status_code=status
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("LN Markets %s %s returned a non-JSON body (%d)", method, path, status)
            raise ExchangeError(
                f"LN Markets returned a malformed response ({status})", status_code=status
            ) from exc
