"""
Domain-specific errors for the exchange bounded context.

Raised by exchange adapters and mapped to 502 at the interface layer,
except credential rejections which callers usually handle themselves.
"""

from typing import Optional

from defisats.domain.errors import DomainValidationError, ExternalServiceError, NotFoundError


class ExchangeError(ExternalServiceError):
    """LN Markets returned an error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExchangeAuthenticationError(ExchangeError):
    """LN Markets rejected the API key, secret or passphrase (401/403)."""


class ExchangeUnavailableError(ExchangeError):
    """The circuit breaker is open; calls are refused until it half-opens."""


class InvalidExchangeCredentialsError(DomainValidationError):
    """Credentials supplied by a user failed validation against LN Markets."""

    def __init__(self) -> None:
        super().__init__("Invalid LN Markets API credentials")


class TradeNotRunningError(NotFoundError):
    """The trade an action targets is not among the running trades."""

    def __init__(self, trade_id: str) -> None:
        super().__init__(f"Trade {trade_id} is not running")
        self.trade_id = trade_id
