# src/lb2d_api/main.py
"""Main entry point for the LB2D API."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lb2d_api.api.v1 import auth_router, system_router
from lb2d_api.core.errors import ApiError
from lb2d_api.core.logging_config import configure_logging
from lb2d_api.core.settings import settings
from lb2d_api.db.session import create_tables
from lb2d_api.db.time import utcnow
from lb2d_api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="LB2D API",
    description="Authentication and transport edge of the LB2D learning platform",
    version=settings.app_version,
)

# Middleware added last runs first. CORS wraps everything so even a 429 is
# readable by browser clients; the rate limiter still runs before any route.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


def error_body(request: Request, status_code: int, message: str, **extra: object) -> dict[str, object]:
    """Build the uniform JSON error envelope."""
    body: dict[str, object] = {
        "success": False,
        "statusCode": status_code,
        "message": message,
    }
    body.update(extra)
    body["timestamp"] = utcnow().isoformat()
    body["path"] = request.url.path
    return body


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    logger.info("%s %s - %d - %s", request.method, request.url.path, exc.status_code, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, exc.detail),
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning("%s %s - %d - %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(
            request,
            status.HTTP_400_BAD_REQUEST,
            "Validation failed",
            errors=jsonable_encoder(exc.errors()),
        ),
    )


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level)
    if settings.is_sqlite:
        create_tables()
    logger.info("%s %s started (rate limit backend: %s)",
                settings.app_name, settings.app_version, settings.rate_limit_backend)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "LB2D API",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("lb2d_api.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
