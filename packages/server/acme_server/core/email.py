"""
Outbound email.

``EmailSender`` is the collaborator interface; ``send()`` never raises and
reports delivery through ``EmailResult`` so callers can surface failures
without rolling back their own state.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Protocol

import resend
import structlog

log = structlog.get_logger()


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


@dataclass(frozen=True)
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> EmailResult: ...


@dataclass
class LogEmailSender:
    """Development sender: logs the message and keeps it in ``outbox``."""

    outbox: list[EmailMessage] = field(default_factory=list)

    async def send(self, message: EmailMessage) -> EmailResult:
        self.outbox.append(message)
        log.info("email.logged", to=message.to, subject=message.subject)
        return EmailResult(success=True, message_id=f"log-{len(self.outbox)}")


class ResendEmailSender:
    """Delivers through the Resend API."""

    def __init__(self, api_key: str, from_address: str):
        self._api_key = api_key
        self._from = from_address

    def _send_sync(self, message: EmailMessage) -> dict:
        resend.api_key = self._api_key
        params: resend.Emails.SendParams = {
            "from": self._from,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        return resend.Emails.send(params)

    async def send(self, message: EmailMessage) -> EmailResult:
        try:
            response = await asyncio.to_thread(self._send_sync, message)
        except Exception as exc:
            log.warning("email.send_failed", to=message.to, error=str(exc))
            return EmailResult(success=False, error=str(exc))
        log.info("email.sent", to=message.to, message_id=response.get("id"))
        return EmailResult(success=True, message_id=response.get("id"))


def verification_email(
    to: str, name: str, verify_url: str, app_name: str, expires_hours: int = 24
) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"Verify your email for {app_name}",
        html=f"""
            <h2>Welcome to {app_name}, {name}!</h2>
            <p>Please confirm your email address to finish setting up your account.</p>
            <p><a href="{verify_url}">Verify email</a></p>
            <p>This link expires in {expires_hours} hours.</p>
        """,
    )


def invitation_email(
    to: str,
    org_name: str,
    inviter_name: str,
    role: str,
    accept_url: str,
    expires_days: int = 7,
) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"You've been invited to join {org_name}",
        html=f"""
            <h2>You've been invited to join {org_name}</h2>
            <p>{inviter_name} has invited you to join {org_name} as {role}.</p>
            <p><a href="{accept_url}">Accept invitation</a></p>
            <p>This invitation expires in {expires_days} days.</p>
        """,
    )
