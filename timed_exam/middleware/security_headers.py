from __future__ import annotations

from typing import Dict, Iterable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Test pages embed the exam PDF, which may be an inline data: URL (local store)
# or an S3 object URL (remote store).
DEFAULT_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline'; "
    "style-src 'self' 'unsafe-inline'; "
    "img-src 'self' data: blob: https:; "
    "frame-src 'self' data: blob: https:; "
    "object-src 'self' data: blob: https:; "
    "connect-src 'self'; "
    "frame-ancestors 'self'"
)

NO_STORE_PREFIXES = ("/test/", "/api/tests")


def build_security_headers(
    hsts_max_age: int,
    hsts_include_subdomains: bool,
    content_security_policy: str,
    referrer_policy: str,
) -> Dict[str, str]:
    transport = f"max-age={hsts_max_age}"
    if hsts_include_subdomains:
        transport = f"{transport}; includeSubDomains"
    return {
        "Strict-Transport-Security": transport,
        "X-Content-Type-Options": "nosniff",
        # the exam document is shown in a same-origin frame
        "X-Frame-Options": "SAMEORIGIN",
        "Content-Security-Policy": content_security_policy,
        # share links carry the test id in the path
        "Referrer-Policy": referrer_policy,
        "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    }


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Stamps a fixed set of security headers on every response. Test pages and
    the test API are additionally marked ``no-store`` so a shared computer
    does not keep exam documents or answers in its cache.
    """

    def __init__(
        self,
        app,
        *,
        hsts_max_age: int = 365 * 24 * 60 * 60,
        hsts_include_subdomains: bool = True,
        content_security_policy: str | None = None,
        referrer_policy: str = "same-origin",
        no_store_prefixes: Iterable[str] = NO_STORE_PREFIXES,
    ):
        super().__init__(app)
        self.headers = build_security_headers(
            hsts_max_age,
            hsts_include_subdomains,
            content_security_policy or DEFAULT_CSP,
            referrer_policy,
        )
        self.no_store_prefixes = tuple(no_store_prefixes)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers.update(self.headers)
        if request.url.path.startswith(self.no_store_prefixes):
            response.headers.setdefault("Cache-Control", "no-store")
        return response
