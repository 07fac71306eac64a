# audiotext/email_utils.py
from __future__ import annotations

import logging
from email.message import EmailMessage

import aiosmtplib

from audiotext.config import Settings

log = logging.getLogger(__name__)


async def send_email(settings: Settings, to: str, subject: str, html: str) -> bool:
    """
    Send an HTML email. When SMTP_HOST is unset this only logs the message so
    dev/testing can continue; returns True when a message was handed to SMTP.
    """
    if not settings.smtp_host:
        log.info("[email] (noop) would email %r: %s", to, subject)
        return False

    msg = EmailMessage()
    msg["From"] = settings.mail_from
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(html, subtype="html")

    await aiosmtplib.send(
        msg,
        hostname=settings.smtp_host,
        port=settings.smtp_port,
        start_tls=settings.smtp_starttls,
        username=settings.smtp_username,
        password=settings.smtp_password,
        timeout=30,
    )
    log.info("[email] sent %r to %r", subject, to)
    return True


def password_reset_email(reset_url: str) -> str:
    return (
        "<p>We received a request to reset your AudioText password.</p>"
        f'<p><a href="{reset_url}">Reset your password</a></p>'
        "<p>This link expires in one hour. If you did not request it, you can ignore this email.</p>"
    )
