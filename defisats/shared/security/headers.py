"""
Secure HTTP headers middleware.

Every HTTP response gets the browser hardening headers below. API
responses also get ``Cache-Control: no-store`` because they carry account
data. HSTS is left out in debug mode so plain-http local runs keep working.
WebSocket traffic is not touched.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

SECURE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'none'",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}
HSTS_HEADER = ("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
NO_STORE_HEADER = ("Cache-Control", "no-store")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the hardening headers without overriding ones a route already set.

    Args:
        app: Wrapped ASGI application.
        hsts: Send Strict-Transport-Security.
        api_prefix: Responses under this path are marked uncacheable.
    """

    def __init__(self, app: ASGIApp, hsts: bool = True, api_prefix: str = "/api/") -> None:
        super().__init__(app)
        self._headers = dict(SECURE_HEADERS)
        if hsts:
            self._headers[HSTS_HEADER[0]] = HSTS_HEADER[1]
        self._api_prefix = api_prefix

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in self._headers.items():
            response.headers.setdefault(name, value)
        if request.url.path.startswith(self._api_prefix):
            response.headers.setdefault(*NO_STORE_HEADER)
        return response
