"""
Adapters: Lightning payment providers.

Three backends implement the PaymentProvider port:

    - LN Markets deposits (platform account)
    - LND REST (``/v1/invoices``, settled when ``state == "SETTLED"``)
    - LNbits (``/api/v1/payments``, settled when ``paid`` is true)

``build_payment_providers`` returns the configured ones in failover order.
"""

import base64
import binascii
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional

import httpx

from defisats.core.config import Settings
from defisats.domain.billing.entities import LightningInvoice
from defisats.domain.billing.errors import PaymentProviderError
from defisats.domain.billing.ports import PaymentProvider
from defisats.domain.errors import ExternalServiceError
from defisats.domain.exchange.entities import LNMarketsCredentials
from defisats.domain.exchange.ports import ExchangePort

logger = logging.getLogger(__name__)


def _expiry(seconds: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


@contextmanager
def _fields(provider: str) -> Iterator[None]:
    try:
        yield
    except (KeyError, TypeError, binascii.Error) as exc:
        logger.warning("%s returned an incomplete payload: %r", provider, exc)
        raise PaymentProviderError(provider, f"malformed response ({type(exc).__name__})") from exc


class LNMarketsPaymentProvider(PaymentProvider):
    """Receives payments as deposits into the platform's LN Markets account."""

    name = "lnmarkets"

    def __init__(self, exchange: ExchangePort) -> None:
        self._exchange = exchange

    def create_invoice(self, amount_sats: int, description: str, expiry_seconds: int) -> LightningInvoice:
        try:
            deposit = self._exchange.create_deposit(amount_sats)
        except ExternalServiceError as exc:
            raise PaymentProviderError(self.name, exc.message) from exc
        return LightningInvoice(
            payment_hash=deposit.deposit_id,
            payment_request=deposit.payment_request,
            amount_sats=amount_sats,
            provider=self.name,
            expires_at=deposit.expires_at or _expiry(expiry_seconds),
        )

    def is_paid(self, payment_hash: str) -> bool:
        try:
            return self._exchange.is_deposit_paid(payment_hash)
        except ExternalServiceError as exc:
            raise PaymentProviderError(self.name, exc.message) from exc

    def is_available(self) -> bool:
        try:
            self._exchange.get_account()
        except ExternalServiceError:
            return False
        return True


class _HTTPProvider(PaymentProvider):
    """Shared plumbing for REST-based Lightning backends."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str],
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"), headers=headers, timeout=timeout, transport=transport
        )

    def _call(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("%s %s %s failed: %s", self.name, method, path, type(exc).__name__)
            raise PaymentProviderError(self.name, type(exc).__name__) from exc
        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("%s %s %s returned a non-JSON body", self.name, method, path)
            raise PaymentProviderError(self.name, "malformed response (not JSON)") from exc
        if not isinstance(data, dict):
            raise PaymentProviderError(self.name, "malformed response (not an object)")
        return data


class LNDPaymentProvider(_HTTPProvider):
    name = "lnd"

    def __init__(self, base_url: str, macaroon: str, **kwargs) -> None:
        super().__init__(base_url, {"Grpc-Metadata-macaroon": macaroon}, **kwargs)

    def create_invoice(self, amount_sats: int, description: str, expiry_seconds: int) -> LightningInvoice:
        data = self._call(
            "POST", "/v1/invoices",
            json={"value": str(amount_sats), "memo": description, "expiry": str(expiry_seconds)},
        )
        with _fields(self.name):
            # LND returns r_hash base64-encoded; lookups take it as hex
            r_hash = base64.b64decode(data["r_hash"], validate=True).hex()
            payment_request = data["payment_request"]
        return LightningInvoice(
            payment_hash=r_hash,
            payment_request=payment_request,
            amount_sats=amount_sats,
            provider=self.name,
            expires_at=_expiry(expiry_seconds),
        )

    def is_paid(self, payment_hash: str) -> bool:
        data = self._call("GET", f"/v1/invoice/{payment_hash}")
        return data.get("state") == "SETTLED" or bool(data.get("settled"))

    def is_available(self) -> bool:
        try:
            self._call("GET", "/v1/getinfo")
        except PaymentProviderError:
            return False
        return True


class LNbitsPaymentProvider(_HTTPProvider):
    name = "lnbits"

    def __init__(self, base_url: str, api_key: str, **kwargs) -> None:
        super().__init__(base_url, {"X-Api-Key": api_key}, **kwargs)

    def create_invoice(self, amount_sats: int, description: str, expiry_seconds: int) -> LightningInvoice:
        data = self._call(
            "POST", "/api/v1/payments",
            json={"out": False, "amount": amount_sats, "memo": description, "expiry": expiry_seconds},
        )
        with _fields(self.name):
            payment_hash = data["payment_hash"]
            payment_request = data.get("payment_request") or data["bolt11"]
        return LightningInvoice(
            payment_hash=payment_hash,
            payment_request=payment_request,
            amount_sats=amount_sats,
            provider=self.name,
            expires_at=_expiry(expiry_seconds),
        )

    def is_paid(self, payment_hash: str) -> bool:
        return bool(self._call("GET", f"/api/v1/payments/{payment_hash}").get("paid"))

    def is_available(self) -> bool:
        try:
            self._call("GET", "/api/v1/wallet")
        except PaymentProviderError:
            return False
        return True


def build_payment_providers(settings: Settings, exchange_factory) -> list[PaymentProvider]:
    """Return the configured providers in failover order (LN Markets, LND, LNbits)."""
    providers: list[PaymentProvider] = []
    if settings.lnmarkets_api_key and settings.lnmarkets_api_secret and settings.lnmarkets_passphrase:
        exchange = exchange_factory(LNMarketsCredentials(
            api_key=settings.lnmarkets_api_key,
            api_secret=settings.lnmarkets_api_secret,
            passphrase=settings.lnmarkets_passphrase,
            testnet=settings.lnmarkets_testnet,
        ))
        providers.append(LNMarketsPaymentProvider(exchange))
    if settings.lnd_rest_url and settings.lnd_macaroon:
        providers.append(LNDPaymentProvider(settings.lnd_rest_url, settings.lnd_macaroon))
    if settings.lnbits_url and settings.lnbits_api_key:
        providers.append(LNbitsPaymentProvider(settings.lnbits_url, settings.lnbits_api_key))
    if not providers:
        logger.warning("No payment provider configured; invoices cannot be created")
    return providers
