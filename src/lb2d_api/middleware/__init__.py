# src/lb2d_api/middleware/__init__.py
"""ASGI middleware applied in front of the API routers."""

from .rate_limit import RateLimitMiddleware
from .security_headers import SecurityHeadersMiddleware

__all__ = ["RateLimitMiddleware", "SecurityHeadersMiddleware"]
