# src/lb2d_api/services/__init__.py
"""Business logic services for the LB2D API edge."""

from .auth import AuthService
from .authenticator import Principal, RefreshClaims, SessionAuthenticator
from .mailer import AccountMailer, LoggingMailer
from .rate_limit import InMemoryRateLimitStore, RateLimitStore, RedisRateLimitStore

__all__ = [
    "AuthService",
    "AccountMailer",
    "LoggingMailer",
    "Principal",
    "RefreshClaims",
    "SessionAuthenticator",
    "RateLimitStore",
    "InMemoryRateLimitStore",
    "RedisRateLimitStore",
]
