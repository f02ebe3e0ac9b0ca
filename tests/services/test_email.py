"""Email service tests."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from careerforge.services.email import (
    ConsoleEmailBackend,
    EmailService,
    ResendEmailBackend,
    SMTPEmailBackend,
    get_email_backend,
)


def make_smtp_backend(**kwargs) -> SMTPEmailBackend:
    params = {
        "host": "smtp.example.com",
        "port": 587,
        "username": "user",
        "password": "pass",
        "from_address": "no-reply@example.com",
    }
    params.update(kwargs)
    return SMTPEmailBackend(**params)


class TestConsoleEmailBackend:
    """Tests for console email backend."""

    @pytest.mark.asyncio
    async def test_send_logs_email(self, caplog):
        """Console backend logs recipient and subject instead of sending."""
        backend = ConsoleEmailBackend()

        with caplog.at_level(logging.INFO):
            result = await backend.send(
                to="test@example.com",
                subject="Verify your email",
                html="<p>Hello</p>",
                text="Hello",
            )

        assert result is True
        assert "test@example.com" in caplog.text
        assert "Verify your email" in caplog.text


class TestSMTPEmailBackend:
    """Tests for SMTP email backend."""

    @pytest.mark.asyncio
    async def test_send_success_sets_reply_to(self):
        backend = make_smtp_backend(reply_to="support@example.com")

        with patch("careerforge.services.email.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            result = await backend.send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
                text="Hello",
            )

        assert result is True
        message = mock_send.call_args[0][0]
        assert message["To"] == "test@example.com"
        assert message["Reply-To"] == "support@example.com"
        assert mock_send.call_args[1]["start_tls"] is True

    @pytest.mark.asyncio
    async def test_send_failure(self):
        """SMTP errors are reported as False, not raised."""
        backend = make_smtp_backend()

        with patch(
            "careerforge.services.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=Exception("Connection failed"),
        ):
            result = await backend.send(to="test@example.com", subject="Test", html="<p>Hello</p>")

        assert result is False


class TestResendEmailBackend:
    """Tests for Resend email backend."""

    @pytest.mark.asyncio
    async def test_send_success(self):
        backend = ResendEmailBackend(
            api_key="re_test_key",
            from_address="no-reply@example.com",
            reply_to="support@example.com",
        )

        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response
            result = await backend.send(to="test@example.com", subject="Test", html="<p>Hello</p>")

        assert result is True
        body = mock_post.call_args[1]["json"]
        assert body["to"] == ["test@example.com"]
        assert body["reply_to"] == "support@example.com"

    @pytest.mark.asyncio
    async def test_send_http_error(self):
        backend = ResendEmailBackend(api_key="re_test_key", from_address="no-reply@example.com")

        mock_response = MagicMock()
        mock_response.status_code = 401
        mock_response.text = "Unauthorized"
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Unauthorized",
            request=MagicMock(),
            response=mock_response,
        )

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response
            result = await backend.send(to="test@example.com", subject="Test", html="<p>Hello</p>")

        assert result is False


class TestGetEmailBackend:
    """Tests for get_email_backend factory."""

    def test_console_backend(self):
        with patch("careerforge.services.email.settings") as mock_settings:
            mock_settings.email_backend = "console"
            assert isinstance(get_email_backend(), ConsoleEmailBackend)

    def test_smtp_backend(self):
        with patch("careerforge.services.email.settings") as mock_settings:
            mock_settings.email_backend = "smtp"
            mock_settings.smtp_host = "smtp.example.com"
            mock_settings.smtp_port = 587
            mock_settings.support_email = "support@example.com"

            backend = get_email_backend()

            assert isinstance(backend, SMTPEmailBackend)
            assert backend.host == "smtp.example.com"
            assert backend.reply_to == "support@example.com"

    def test_invalid_backend(self):
        with patch("careerforge.services.email.settings") as mock_settings:
            mock_settings.email_backend = "carrier-pigeon"

            with pytest.raises(ValueError, match="Unknown email backend"):
                get_email_backend()


class TestEmailService:
    """Tests for EmailService."""

    @pytest.mark.asyncio
    async def test_send_verification_link(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = True
        service = EmailService(backend=mock_backend)

        result = await service.send_verification_link(
            to="test@example.com",
            name="Alice",
            link="http://localhost:5173/verify/abc.def.ghi",
        )

        assert result is True
        call_kwargs = mock_backend.send.call_args[1]
        assert call_kwargs["to"] == "test@example.com"
        assert call_kwargs["subject"] == "CareerForge: Verify your email address"
        assert "abc.def.ghi" in call_kwargs["html"]
        assert "abc.def.ghi" in call_kwargs["text"]

    @pytest.mark.asyncio
    async def test_verification_link_escapes_name(self):
        mock_backend = AsyncMock()
        service = EmailService(backend=mock_backend)

        await service.send_verification_link(
            to="test@example.com",
            name="<script>alert(1)</script>",
            link="http://localhost:5173/verify/t",
        )

        html = mock_backend.send.call_args[1]["html"]
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    @pytest.mark.asyncio
    async def test_send_password_reset_failure(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = False
        service = EmailService(backend=mock_backend)

        result = await service.send_password_reset(
            to="test@example.com",
            name="Alice",
            link="http://localhost:5173/reset-password/abc",
        )

        assert result is False
        assert "Password reset" in mock_backend.send.call_args[1]["subject"]

    def test_lazy_backend_loading(self):
        service = EmailService()

        with patch("careerforge.services.email.get_email_backend") as mock_get_backend:
            mock_get_backend.return_value = ConsoleEmailBackend()

            backend = service.backend
            assert service.backend is backend
            mock_get_backend.assert_called_once()
