"""Outbound account emails.

Only the message and its link are built here. Delivery goes through the
mailer handed to `AuthService`; the default one writes the message to the log,
which is all local development needs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

from lb2d_api.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountEmail:
    to: str
    subject: str
    greeting_name: str
    link: str


class AccountMailer(Protocol):
    def send_verification_email(self, email: str, token: str, first_name: str) -> None: ...

    def send_password_reset_email(self, email: str, token: str, first_name: str) -> None: ...


class LoggingMailer:
    """Mailer that records each message in the log instead of sending it."""

    def __init__(self, client_url: str | None = None) -> None:
        self._client_url = (client_url or settings.client_url).rstrip("/")

    def _link(self, path: str, token: str) -> str:
        return f"{self._client_url}/{path}?{urlencode({'token': token})}"

    def deliver(self, message: AccountEmail) -> None:
        logger.info("Email to %s: %s (%s)", message.to, message.subject, message.link)

    def send_verification_email(self, email: str, token: str, first_name: str) -> None:
        self.deliver(
            AccountEmail(
                to=email,
                subject="Verify Your Email - LB2D",
                greeting_name=first_name,
                link=self._link("email-verification", token),
            )
        )

    def send_password_reset_email(self, email: str, token: str, first_name: str) -> None:
        self.deliver(
            AccountEmail(
                to=email,
                subject="Reset Your Password - LB2D",
                greeting_name=first_name,
                link=self._link("reset-password", token),
            )
        )


__all__ = ["AccountEmail", "AccountMailer", "LoggingMailer"]
