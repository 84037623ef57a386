"""
core/mailer.py -- Outbound SMTP mail for password-reset codes.

One Mailer instance lives on app.state so tests can swap it for a fake that
records messages instead of opening a socket.

Failure contract: send_otp() raises MailerError on any delivery problem.
The caller (POST /auth/forgot-password) deletes the freshly issued OTP and
answers 500, so a user is never left waiting for a code that was not sent.

In DEBUG mode with no SMTP credentials the code is written to the log rather
than sent. Never rely on this in production.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from core.config import Settings

logger = logging.getLogger("quizdesk.mailer")

_OTP_SUBJECT = "Password Reset OTP - QuizDesk"

_OTP_TEXT = """Password reset request

Use the code below to reset your QuizDesk password:

    {otp}

The code expires in {minutes} minutes. If you did not ask for a reset,
ignore this message; your password stays unchanged.
"""

_OTP_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #667eea; text-align: center;">Password Reset Request</h2>
  <p>Use the code below to reset your QuizDesk password:</p>
  <p style="font-size: 32px; font-weight: bold; letter-spacing: 8px; text-align: center;">{otp}</p>
  <p>The code expires in {minutes} minutes.</p>
  <p style="color: #888;">If you did not ask for a reset, ignore this message.</p>
</div>
"""


class MailerError(Exception):
    """Raised when an email could not be delivered."""


class Mailer:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def send_otp(self, to_email: str, otp: str, ttl_seconds: int) -> None:
        minutes = max(ttl_seconds // 60, 1)
        if not self._settings.mail_configured:
            if self._settings.debug:
                logger.warning("SMTP not configured; OTP for %s is %s", to_email, otp)
                return
            raise MailerError("Email service not configured. Set EMAIL_USER and EMAIL_PASSWORD.")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = _OTP_SUBJECT
        msg["From"] = self._settings.email_from or self._settings.email_user
        msg["To"] = to_email
        msg.attach(MIMEText(_OTP_TEXT.format(otp=otp, minutes=minutes), "plain"))
        msg.attach(MIMEText(_OTP_HTML.format(otp=otp, minutes=minutes), "html"))

        try:
            with smtplib.SMTP(self._settings.smtp_host, self._settings.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self._settings.email_user, self._settings.email_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("OTP email to %s failed: %s", to_email, exc)
            raise MailerError("Failed to send email. Please try again later.") from exc
        logger.info("OTP email sent to %s", to_email)
