from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from taskhub.config import Settings

LOGGER = logging.getLogger(__name__)


class EmailSendError(RuntimeError):
    pass


def smtp_configured(settings: Settings) -> bool:
    return bool(settings.smtp_host and settings.otp_email_sender)


def send_otp_email(settings: Settings, to_email: str, code: str) -> None:
    sender = settings.otp_email_sender
    if not sender:
        raise EmailSendError("OTP email sender is not configured")
    if not settings.smtp_host:
        raise EmailSendError("SMTP host is not configured")

    message = _build_message(
        sender, to_email, settings.otp_email_subject, code, settings.otp_ttl_seconds
    )

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as client:
            if settings.smtp_starttls:
                client.starttls()
            if settings.smtp_user:
                client.login(settings.smtp_user, settings.smtp_password)
            client.send_message(message)
    except smtplib.SMTPException as exc:
        LOGGER.error("SMTP error sending OTP to=%s: %s", to_email, exc)
        raise EmailSendError("Failed to send OTP email") from exc
    except OSError as exc:
        raise EmailSendError("Failed to reach SMTP server") from exc


def _build_message(
    sender: str, recipient: str, subject: str, code: str, ttl_seconds: int
) -> EmailMessage:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = subject
    message.set_content(_build_text_body(code, ttl_seconds))
    message.add_alternative(_build_html_body(code, ttl_seconds), subtype="html")
    return message


def _build_text_body(code: str, ttl_seconds: int) -> str:
    minutes = max(1, ttl_seconds // 60)
    return (
        f"Your login verification code is {code}.\n\n"
        f"This code will expire in {minutes} minute(s).\n"
        "Do not share this code with anyone.\n\n"
        "This is an automated message. Please do not reply to this email."
    )


def _build_html_body(code: str, ttl_seconds: int) -> str:
    minutes = max(1, ttl_seconds // 60)
    return f"""
      <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #2563eb;">Your Login Verification Code</h2>
        <p>Please use the following code to complete your login:</p>
        <div style="background: #f3f4f6; padding: 16px; border-radius: 8px; margin: 16px 0; text-align: center;">
          <h1 style="margin: 0; color: #2563eb; font-size: 36px; letter-spacing: 5px;">{code}</h1>
        </div>
        <p>This code will expire in {minutes} minute(s).</p>
        <p style="color: #dc2626; font-weight: bold;">Do not share this code with anyone.</p>
        <p style="color: #4b5563; margin-top: 24px; font-size: 14px;">
          This is an automated message. Please do not reply to this email.
        </p>
      </div>
    """
