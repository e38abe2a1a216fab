"""
Per-client request throttling with slowapi.

Clients are keyed by the first ``X-Forwarded-For`` hop when the app sits
behind a proxy, else by the socket address. Login and registration use
the tighter ``AUTH_RATE_LIMIT``.
"""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from defisats.core.config import settings

DEFAULT_RATE_LIMIT = settings.rate_limit_default
AUTH_RATE_LIMIT = settings.rate_limit_auth
RETRY_AFTER_SECONDS = "60"


def client_key(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    return first_hop or get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    default_limits=[DEFAULT_RATE_LIMIT],
    enabled=settings.rate_limit_enabled,
)


async def rate_limit_exceeded_handler(
    _request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests", "detail": f"Rate limit exceeded: {exc.detail}"},
        headers={"Retry-After": RETRY_AFTER_SECONDS},
    )
