# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Email sending service. Logs to console when SMTP not configured."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from zocc_server.config import settings
from zocc_server.models import CodePurpose

logger = logging.getLogger(__name__)

CLUB_NAME = "ZeroOne Coding Club"

_SUBJECTS = {
    CodePurpose.EMAIL_VERIFICATION: f"Email Verification OTP - {CLUB_NAME} ERP",
    CodePurpose.PASSWORD_RESET: f"Password Reset OTP - {CLUB_NAME} ERP",
}

_LABELS = {
    CodePurpose.EMAIL_VERIFICATION: "email verification code",
    CodePurpose.PASSWORD_RESET: "password reset code",
}


def wrap_body_html(plain_body: str) -> str:
    """Wrap plain text body in minimal HTML with the club header."""
    body_escaped = escape(plain_body).replace("\n", "<br>\n")
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; color: #333; max-width: 600px;">
<h1 style="color: #4f9cff;">{CLUB_NAME}</h1>
<div style="white-space: pre-wrap;">{body_escaped}</div>
</body>
</html>"""


def code_message(code: str, purpose: CodePurpose) -> tuple[str, str]:
    """Subject and plain body for a one-time code email."""
    minutes = max(1, settings.otp_ttl_seconds // 60)
    body = (
        f"Your {_LABELS[purpose]} is: {code}\n\n"
        f"This code will expire in {minutes} minutes.\n\n"
        "If you didn't request this code, please ignore this email. Do not share this code with anyone."
    )
    return _SUBJECTS[purpose], body


async def send_email(to: str, subject: str, body: str, html: bool = True) -> bool:
    """Send an email (plain and HTML). Returns False when delivery fails.

    Logs to console and reports success if SMTP is not configured.
    """
    if not (settings.smtp_host and settings.smtp_user):
        logger.info("Email (SMTP not configured): To=%s Subject=%s Body=%s", to, subject, body[:200])
        return True
    if html:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(wrap_body_html(body), "html"))
    else:
        msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = f'"{CLUB_NAME}" <{settings.smtp_from}>'
    msg["To"] = to
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password or "")
            server.sendmail(settings.smtp_from, [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email to %s: %s", to, e)
        return False
    return True


async def dispatch_code(to: str, code: str, purpose: CodePurpose) -> bool:
    """Deliver a one-time code to its owner."""
    subject, body = code_message(code, purpose)
    return await send_email(to, subject, body)
