"""
core/mailer.py -- Outbound transactional email over SMTP.

Three messages are sent by the API: a welcome note after registration, the
password-reset link, and a confirmation after a password change. Route handlers
queue them with FastAPI BackgroundTasks so a slow or unreachable SMTP server
never delays the HTTP response.

Failure policy: sending is best-effort. When SMTP_HOST is empty the message is
logged and skipped; SMTP or socket errors are logged as warnings and the
function returns False. Nothing here raises into the request cycle.

Layer rule: core/ is the kernel. No imports from api/, auth/, or board/.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from typing import Optional

from core.config import get_settings

logger = logging.getLogger("jobboard.mailer")


@dataclass(frozen=True)
class Mail:
    """A rendered message ready to hand to send_mail()."""

    subject: str
    text: str
    html: Optional[str] = None


def welcome_mail(name: str) -> Mail:
    text = (
        f"Hello {name},\n\n"
        "Thank you for registering on Job Board. Your account has been created.\n"
        "You can now browse job listings, apply for positions and manage your profile.\n\n"
        "Job Board Team"
    )
    html = (
        f"<p>Hello {escape(name)},</p>"
        "<p>Thank you for registering on Job Board. Your account has been created.</p>"
        "<ul><li>Browse job listings</li><li>Apply for positions</li><li>Manage your profile</li></ul>"
        "<p>Job Board Team</p>"
    )
    return Mail(subject="Welcome to Job Board", text=text, html=html)


def password_reset_mail(reset_url: str) -> Mail:
    text = (
        "Hello,\n\n"
        "You requested a password reset for your account. Open the link below to choose a new password:\n\n"
        f"{reset_url}\n\n"
        "If you did not request this, ignore this email. The link expires in 1 hour.\n\n"
        "Job Board Team"
    )
    html = (
        "<p>Hello,</p>"
        "<p>You requested a password reset for your account.</p>"
        f'<p><a href="{escape(reset_url, quote=True)}">Reset password</a></p>'
        "<p>If you did not request this, ignore this email. The link expires in 1 hour.</p>"
        "<p>Job Board Team</p>"
    )
    return Mail(subject="Password reset request", text=text, html=html)


def password_changed_mail() -> Mail:
    text = (
        "Hello,\n\n"
        "The password for your Job Board account was just changed.\n"
        "If you did not make this change, contact support immediately.\n\n"
        "Job Board Team"
    )
    return Mail(subject="Your password was changed", text=text)


def build_message(to: str, mail: Mail) -> EmailMessage:
    settings = get_settings()
    msg = EmailMessage()
    msg["Subject"] = mail.subject
    msg["From"] = settings.mail_from
    msg["To"] = to
    msg.set_content(mail.text)
    if mail.html:
        msg.add_alternative(mail.html, subtype="html")
    return msg


def send_mail(to: str, mail: Mail) -> bool:
    """Deliver one message. Returns True when the SMTP server accepted it.

    Safe to call from a BackgroundTasks job: every failure is logged, never raised.
    """
    settings = get_settings()
    if not settings.smtp_host:
        logger.info("SMTP not configured; skipping %r to %s", mail.subject, to)
        return False

    msg = build_message(to, mail)
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_username:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("Email %r to %s failed: %s", mail.subject, to, e)
        return False
    logger.info("Email %r sent to %s", mail.subject, to)
    return True
