# src/lb2d_api/models/__init__.py
"""SQLAlchemy models for the LB2D API."""

from .device_session import DeviceSession
from .user import ROLE_ADMIN, ROLE_INSTRUCTOR, ROLE_STUDENT, User

__all__ = [
    "DeviceSession",
    "User",
    "ROLE_ADMIN", "ROLE_INSTRUCTOR", "ROLE_STUDENT",
]
