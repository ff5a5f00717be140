"""
Security headers for JSON API responses

The API serves nothing a browser should render or frame, so the policy is
deny-by-default. HSTS is only sent in production, behind TLS.
"""

import logging
import os
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

IS_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"

API_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'",
    "Permissions-Policy": "camera=(), geolocation=(), microphone=(), payment=(), usb=()",
    "X-Permitted-Cross-Domain-Policies": "none",
}
HSTS_VALUE = "max-age=31536000; includeSubDomains; preload"
NO_STORE = "no-store, no-cache, must-revalidate"


def security_headers(production: bool = IS_PRODUCTION) -> dict:
    headers = dict(API_HEADERS)
    if production:
        headers["Strict-Transport-Security"] = HSTS_VALUE
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp API_HEADERS on every response outside the excluded path prefixes"""

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or ())
        self.headers = security_headers()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if request.url.path.startswith(self.exclude_paths):
            return response

        response.headers.update(self.headers)
        # Responses carry per-user booking data
        response.headers.setdefault("Cache-Control", NO_STORE)
        return response
