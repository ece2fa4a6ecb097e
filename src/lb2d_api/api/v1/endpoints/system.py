"""Service status endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from lb2d_api.core.settings import settings
from lb2d_api.services.rate_limit import MAX_REQUESTS, WINDOW_MS

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "auth": {
            "jwt_algorithm": settings.jwt_algorithm,
            "access_token_expire_minutes": settings.access_token_expire_minutes,
            "refresh_token_expire_days": settings.refresh_token_expire_days,
            "max_devices": settings.max_devices,
        },
        "rate_limit": {
            "backend": settings.rate_limit_backend,
            "window_ms": WINDOW_MS,
            "max_requests": MAX_REQUESTS,
        },
    }
