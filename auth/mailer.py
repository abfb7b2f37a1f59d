"""
auth/mailer.py -- Outbound OTP email.

OtpMailer is the notification collaborator of the auth flow. Delivery is
best-effort: the flow schedules send_otp_email() as a background task after
the response is built, and a failed delivery is logged, never raised.

When SMTP_HOST is empty (local development) the message is logged instead of
sent so the flow still works end to end without a mail server.

Layer rule: no imports from api/ or directory/.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from core.config import Settings, get_settings

logger = logging.getLogger("educenter.mailer")


def _redact_email(email: str) -> str:
    """Redact an email address for logging to avoid PII leakage."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class OtpMailer:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.smtp_host and (self.settings.mail_from or self.settings.smtp_user))

    def send_otp_email(self, destination: str, name: str, code: str) -> bool:
        """Send the verification code to destination. Returns True on success."""
        subject = "Your verification code"
        text_body = (
            f"Hello {name},\n\n"
            f"Your EduCenter verification code is {code}.\n"
            f"It expires in {self.settings.otp_step_seconds // 60} minutes.\n"
        )
        html_body = (
            f"<p>Hello {name},</p>"
            f"<p>Your EduCenter verification code is <strong>{code}</strong>.</p>"
            f"<p>It expires in {self.settings.otp_step_seconds // 60} minutes.</p>"
        )
        return self._send(destination, subject, html_body, text_body)

    def _send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        if not self.is_configured:
            # Dev mode: no SMTP server. The body holds the code, so DEBUG only.
            logger.info("Mail not configured; skipped delivery to %s", _redact_email(to_email))
            logger.debug("Undelivered mail to %s: %s", _redact_email(to_email), text_body)
            return True

        s = self.settings
        from_email = s.mail_from or s.smtp_user
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{s.mail_from_name} <{from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        context = ssl.create_default_context()
        try:
            if s.smtp_use_tls:
                with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=30) as server:
                    server.starttls(context=context)
                    if s.smtp_user and s.smtp_password:
                        server.login(s.smtp_user, s.smtp_password)
                    server.sendmail(from_email, to_email, msg.as_string())
            else:
                with smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, context=context, timeout=30) as server:
                    if s.smtp_user and s.smtp_password:
                        server.login(s.smtp_user, s.smtp_password)
                    server.sendmail(from_email, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError):
            logger.exception("OTP mail delivery to %s failed", _redact_email(to_email))
            return False

        logger.info("OTP mail sent to %s", _redact_email(to_email))
        return True
