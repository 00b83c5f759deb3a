"""Outbound email capability: SMTP and Gmail API senders."""

from __future__ import annotations

import asyncio
import base64
import json
import smtplib
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from pathlib import Path
from typing import Protocol

from om_reminders.infrastructure.config import (
    EMAIL_FROM_NAME,
    EMAIL_HOST,
    EMAIL_PASS,
    EMAIL_PORT,
    EMAIL_PROVIDER,
    EMAIL_USER,
    GMAIL_CONFIG_DIR,
)
from om_reminders.infrastructure.errors import DomainError
from om_reminders.infrastructure.logger import logger

SMTP_TIMEOUT = 30


class DeliveryFailed(DomainError):
    def __init__(self, reason: str, to: str = "") -> None:
        super().__init__(f"Email delivery failed: {reason}", {"to": to, "reason": reason})
        self.reason = reason


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, body: str, html: str | None = None) -> str:
        """Deliver one email and return its message id. Raises DeliveryFailed."""
        ...


def _build_mime(sender: str | None, to: str, subject: str, body: str, html: str | None) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    if sender:
        msg["From"] = sender
    msg["To"] = to
    msg["Message-ID"] = make_msgid()
    msg.attach(MIMEText(body, "plain", "utf-8"))
    if html:
        msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


class SmtpEmailSender:
    """Sends through an SMTP relay. Port 465 uses implicit TLS, anything else STARTTLS."""

    def __init__(self, host: str, port: int, username: str, password: str, from_name: str = EMAIL_FROM_NAME) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = formataddr((from_name, username))

    async def send(self, to: str, subject: str, body: str, html: str | None = None) -> str:
        if not to:
            raise DeliveryFailed("no recipient address", to)
        msg = _build_mime(self.sender, to, subject, body, html)

        def _send() -> None:
            if self.port == 465:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=SMTP_TIMEOUT) as server:
                    server.login(self.username, self.password)
                    server.sendmail(self.username, [to], msg.as_string())
                return
            with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT) as server:
                server.starttls()
                server.login(self.username, self.password)
                server.sendmail(self.username, [to], msg.as_string())

        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, _send)
        except (smtplib.SMTPException, OSError) as err:
            raise DeliveryFailed(str(err), to) from err
        return msg["Message-ID"]


class GmailEmailSender:
    """Gmail API sender with OAuth credentials from ``config_dir``."""

    def __init__(self, config_dir: str | Path) -> None:
        from google.oauth2.credentials import Credentials
        from googleapiclient.discovery import build

        keys = json.loads((Path(config_dir) / "gcp-oauth.keys.json").read_text())
        creds_data = json.loads((Path(config_dir) / "credentials.json").read_text())
        installed = keys.get("installed", keys.get("web", {}))

        self._creds = Credentials(
            token=creds_data.get("access_token"),
            refresh_token=creds_data.get("refresh_token"),
            token_uri="https://oauth2.googleapis.com/token",
            client_id=installed.get("client_id", ""),
            client_secret=installed.get("client_secret", ""),
        )
        self._gmail = build("gmail", "v1", credentials=self._creds)

    async def send(self, to: str, subject: str, body: str, html: str | None = None) -> str:
        from googleapiclient.errors import HttpError

        if not to:
            raise DeliveryFailed("no recipient address", to)
        # Gmail fills in the account address as sender
        msg = _build_mime(None, to, subject, body, html)
        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode().rstrip("=")

        loop = asyncio.get_event_loop()
        try:
            result = await loop.run_in_executor(
                None,
                lambda: self._gmail.users().messages().send(userId="me", body={"raw": raw}).execute(),
            )
        except (HttpError, OSError) as err:
            raise DeliveryFailed(str(err), to) from err
        return result.get("id", msg["Message-ID"])


class UnconfiguredEmailSender:
    """Stand-in used when no transport is configured; every send fails."""

    def __init__(self, reason: str) -> None:
        self.reason = reason

    async def send(self, to: str, subject: str, body: str, html: str | None = None) -> str:
        raise DeliveryFailed(self.reason, to)


class RecordingEmailSender:
    """Keeps sent mail in memory instead of delivering it (dry runs)."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str | None]] = []

    async def send(self, to: str, subject: str, body: str, html: str | None = None) -> str:
        message_id = f"<{uuid.uuid4().hex}@dry-run>"
        self.sent.append({"id": message_id, "to": to, "subject": subject, "body": body, "html": html})
        logger.info("Dry-run email recorded", to=to, subject=subject)
        return message_id


def create_email_sender(provider: str = EMAIL_PROVIDER) -> EmailSender:
    """Build the configured sender."""
    if provider == "gmail":
        return GmailEmailSender(GMAIL_CONFIG_DIR)
    if provider == "dry-run":
        return RecordingEmailSender()
    if not (EMAIL_HOST and EMAIL_USER and EMAIL_PASS):
        logger.warning("Email configuration missing; reminders will fail until EMAIL_HOST/EMAIL_USER/EMAIL_PASS are set")
        return UnconfiguredEmailSender("email configuration missing (EMAIL_HOST, EMAIL_USER, EMAIL_PASS)")
    return SmtpEmailSender(EMAIL_HOST, EMAIL_PORT, EMAIL_USER, EMAIL_PASS)
