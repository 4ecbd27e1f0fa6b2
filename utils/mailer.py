"""
Outbound mail delivery.

Architecture:
  • ``Notifier.send()`` takes a ``MailMessage`` and either returns or raises
    ``DeliveryError``.  Callers never retry.
  • ``SmtpNotifier`` speaks SMTP through ``smtplib``; the blocking client is
    offloaded with ``asyncio.to_thread()`` so it never blocks the event loop.
  • ``HttpNotifier`` posts the message as JSON to a mail relay with ``httpx``.
  • ``LogNotifier`` only logs (development, nothing configured).
  • ``build_notifier(settings)`` picks one from the configuration.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.text import MIMEText

import httpx

from config.settings import Settings
from utils.errors import DeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailMessage:
    recipient: str
    subject: str
    body: str


class Notifier(ABC):
    """Fire-and-forget delivery of a message to a single recipient."""

    @abstractmethod
    async def send(self, message: MailMessage) -> None:
        """Deliver ``message``; raise ``DeliveryError`` on failure."""
        ...


def _build_mime_message(sender: str, message: MailMessage) -> MIMEText:
    mime = MIMEText(message.body, "plain", "utf-8")
    mime["To"] = message.recipient
    mime["From"] = sender
    mime["Subject"] = message.subject
    return mime


class SmtpNotifier(Notifier):
    def __init__(self, settings: Settings) -> None:
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._username = settings.smtp_username
        self._password = settings.smtp_password
        self._use_tls = settings.smtp_use_tls
        self._sender = settings.mail_sender
        self._timeout = settings.mail_timeout_seconds

    def _deliver(self, message: MailMessage) -> None:
        mime = _build_mime_message(self._sender, message)
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password)
            smtp.send_message(mime)

    async def send(self, message: MailMessage) -> None:
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP delivery to %s failed: %s", message.recipient, exc)
            raise DeliveryError() from exc
        logger.info("send_email → to=%s via smtp %s", message.recipient, self._host)


class HttpNotifier(Notifier):
    def __init__(self, settings: Settings) -> None:
        self._url = settings.mail_api_url
        self._api_key = settings.mail_api_key
        self._sender = settings.mail_sender
        self._timeout = settings.mail_timeout_seconds

    async def send(self, message: MailMessage) -> None:
        headers = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        payload = {
            "from": self._sender,
            "to": message.recipient,
            "subject": message.subject,
            "text": message.body,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=payload, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Mail relay delivery to %s failed: %s", message.recipient, exc)
            raise DeliveryError() from exc
        logger.info("send_email → to=%s via relay (status %d)", message.recipient, resp.status_code)


class LogNotifier(Notifier):
    async def send(self, message: MailMessage) -> None:
        logger.warning(
            "No mail transport configured; message to %s (%s) not delivered",
            message.recipient, message.subject,
        )


def build_notifier(settings: Settings) -> Notifier:
    if settings.smtp_host:
        return SmtpNotifier(settings)
    if settings.mail_api_url:
        return HttpNotifier(settings)
    logger.warning("SMTP_HOST and MAIL_API_URL not set; outgoing mail will only be logged.")
    return LogNotifier()
