"""Per-IP rate limiting at the transport edge."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from lb2d_api.db.time import epoch_ms
from lb2d_api.services.rate_limit import (
    UNKNOWN_CLIENT,
    RateLimitStore,
    get_rate_limit_store,
    retry_after_seconds,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


def client_key(request: Request) -> str:
    """Return the client IP used as the rate limit key."""
    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject bursts from one client with a 429 before any handler runs.

    The request body is never read for a rejected request.
    """

    def __init__(
        self,
        app: ASGIApp,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = epoch_ms,
    ) -> None:
        super().__init__(app)
        self._store = store
        self._clock = clock

    @property
    def store(self) -> RateLimitStore:
        return self._store if self._store is not None else get_rate_limit_store()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        store = self.store
        key = client_key(request)
        # Store calls may block on Redis, so they run off the event loop.
        if await asyncio.to_thread(store.allow, key, self._clock()):
            return await call_next(request)

        retry_after = retry_after_seconds(store.window_ms)
        logger.warning("Rate limit exceeded for %s on %s %s", key, request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "success": False,
                "statusCode": status.HTTP_429_TOO_MANY_REQUESTS,
                "message": RATE_LIMIT_MESSAGE,
                "retryAfter": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )
