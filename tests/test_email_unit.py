"""Unit tests for email composition and the SMTP mailer."""

from unittest.mock import MagicMock, patch

import pytest

from utils.email_formatter import format_otp_markdown, markdown_to_email_html, markdown_to_plaintext
from utils.email_service import EmailDeliveryError, Mailer


class TestFormatting:
    def test_otp_markdown_contains_code_and_expiry(self):
        text = markdown_to_plaintext(format_otp_markdown("Asha", "482913", "Login OTP", 10))

        assert "482913" in text
        assert "10 minutes" in text

    def test_html_is_sanitized(self):
        html = markdown_to_email_html("Hello <script>alert(1)</script> **world**")

        assert "<script>" not in html
        assert "<strong>world</strong>" in html


class TestMailer:
    def test_from_config(self):
        mailer = Mailer.from_config(
            {"MAIL_SERVER": "smtp.city.gov", "MAIL_PORT": "587", "MAIL_USE_TLS": True, "MAIL_DEFAULT_SENDER": "no-reply@city.gov"}
        )

        assert (mailer.host, mailer.port, mailer.use_tls, mailer.default_sender) == (
            "smtp.city.gov",
            587,
            True,
            "no-reply@city.gov",
        )

    def test_unconfigured_server_raises(self):
        with pytest.raises(EmailDeliveryError):
            Mailer(host="").send("s", "t", "<p>t</p>", ["a@example.com"])

    def test_no_recipients_raises(self):
        with pytest.raises(EmailDeliveryError):
            Mailer(host="smtp.city.gov").send("s", "t", "<p>t</p>", [])

    def test_send_over_starttls(self):
        server = MagicMock()
        with patch("utils.email_service.smtplib.SMTP") as smtp:
            smtp.return_value.__enter__.return_value = server
            Mailer(host="smtp.city.gov", port=587, username="u", password="p", default_sender="no-reply@city.gov").send(
                "Subject", "text", "<p>html</p>", ["a@example.com"]
            )

        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")
        message = server.send_message.call_args[0][0]
        assert message["To"] == "a@example.com"
        assert message["From"] == "no-reply@city.gov"

    def test_smtp_errors_become_delivery_errors(self):
        with patch("utils.email_service.smtplib.SMTP", side_effect=OSError("connection refused")):
            with pytest.raises(EmailDeliveryError):
                Mailer(host="smtp.city.gov").send("s", "t", "<p>t</p>", ["a@example.com"])
