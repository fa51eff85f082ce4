"""SMTP-backed email dispatcher for passcodes and complaint notifications."""
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Dict, List, Tuple

from flask import current_app, render_template

from models import Complaint
from utils.email_formatter import (
    format_complaint_noted_markdown,
    format_otp_markdown,
    markdown_to_email_html,
    markdown_to_plaintext,
)

EMAIL_TEMPLATE = "email/notification.html"


class EmailDeliveryError(Exception):
    """Raised when email dispatch fails."""


class Mailer:
    """SMTP transport settings, built once at startup and shared by every request."""

    def __init__(
        self,
        host: str,
        port: int = 25,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        use_ssl: bool = False,
        default_sender: str = "",
        timeout: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.default_sender = default_sender
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "Mailer":
        return cls(
            host=config.get("MAIL_SERVER", ""),
            port=int(config.get("MAIL_PORT", 25)),
            username=config.get("MAIL_USERNAME", ""),
            password=config.get("MAIL_PASSWORD", ""),
            use_tls=bool(config.get("MAIL_USE_TLS")),
            use_ssl=bool(config.get("MAIL_USE_SSL")),
            default_sender=config.get("MAIL_DEFAULT_SENDER", ""),
            timeout=int(config.get("MAIL_TIMEOUT", 10)),
        )

    def send(self, subject: str, text_body: str, html_body: str, recipients: List[str], sender: str | None = None) -> None:
        if not recipients:
            raise EmailDeliveryError("No recipients resolved for email dispatch")
        if not self.host:
            raise EmailDeliveryError("MAIL_SERVER is not configured")

        sender = sender or self.default_sender or self.username
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = ", ".join(recipients)
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid()
        msg.set_content(text_body or subject)
        msg.add_alternative(html_body, subtype="html")

        try:
            if self.use_ssl:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                    if self.username and self.password:
                        server.login(self.username, self.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.ehlo()
                    if self.use_tls:
                        server.starttls(context=ssl.create_default_context())
                    if self.username and self.password:
                        server.login(self.username, self.password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(str(exc)) from exc


def get_mailer() -> Mailer:
    return current_app.extensions["mailer"]


def _render_email_content(subject: str, markdown_body: str, context: Dict) -> Tuple[str, str]:
    """Return plaintext and HTML bodies using a shared markdown source."""
    text_body = markdown_to_plaintext(markdown_body)
    ctx = dict(context or {})
    preheader = ctx.pop("preheader", "")
    html_body = render_template(
        EMAIL_TEMPLATE,
        subject=subject,
        content_html=markdown_to_email_html(markdown_body),
        preheader=preheader,
        **ctx,
    )
    return text_body, html_body


def send_otp_email(recipient: str, user_name: str, otp: str, purpose: str, ttl_minutes: int) -> None:
    markdown_body = format_otp_markdown(user_name, otp, purpose, ttl_minutes)
    subject = f"Smart City Complaint System - {purpose}"
    text_body, html_body = _render_email_content(
        subject,
        markdown_body,
        {"preheader": f"Your {purpose.lower()} is inside."},
    )
    get_mailer().send(subject, text_body, html_body, [recipient])
    current_app.logger.info("OTP email sent", extra={"recipient": recipient, "purpose": purpose})


def send_complaint_noted_email(complaint: Complaint) -> None:
    if not complaint.user or not complaint.user.email:
        raise EmailDeliveryError("Complaint owner has no email address")
    markdown_body = format_complaint_noted_markdown(
        {
            "id": complaint.id,
            "category": complaint.category,
            "urgency": complaint.urgency,
            "location": complaint.location,
        }
    )
    subject = "Your Complaint Has Been Noted - Smart City"
    text_body, html_body = _render_email_content(
        subject,
        markdown_body,
        {"preheader": "Your complaint is being handled."},
    )
    get_mailer().send(subject, text_body, html_body, [complaint.user.email])
    current_app.logger.info("Complaint notification sent", extra={"complaint_id": complaint.id})
