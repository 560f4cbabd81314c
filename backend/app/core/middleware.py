from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import Settings

TENANT_HEADER = "X-Tenant-ID"
_LOCAL_HOSTS = {"localhost", "127", "testserver"}


def extract_tenant_slug(host: str) -> str:
    """``school1.nora-nak.de`` and ``api.school1.nora-nak.de`` -> ``school1``; local hosts -> ``""``."""
    host = host.split(":", 1)[0].strip().lower()
    parts = host.split(".")
    if len(parts) < 2 or parts[0] in _LOCAL_HOSTS:
        return ""
    if parts[0] == "api" and len(parts) >= 3:
        return parts[1]
    return parts[0]


class TenantResolutionMiddleware(BaseHTTPMiddleware):
    """Stores the requested tenant slug on ``request.state.tenant_slug``."""

    def __init__(self, app, *, settings: Settings) -> None:
        super().__init__(app)
        self._settings = settings

    def resolve(self, request: Request) -> str:
        slug = ""
        if self._settings.enable_tenant_subdomain:
            slug = extract_tenant_slug(request.headers.get("host", ""))
            if not slug:
                slug = request.headers.get(TENANT_HEADER, "").strip().lower()
        return slug or self._settings.default_tenant_slug

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.tenant_slug = self.resolve(request)
        return await call_next(request)
