"""Unit tests for email service implementations"""

import pytest
import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

from src.adapter.services.email_service import (
    CompositeEmailService,
    LoggingEmailService,
    SmtpEmailService,
    create_email_service,
)


class TestCreateEmailService:
    def test_logging_only_without_smtp_host(self):
        config = MagicMock(SMTP_HOST="")

        assert isinstance(create_email_service(config), LoggingEmailService)

    def test_logging_and_smtp_with_smtp_host(self):
        config = MagicMock(
            SMTP_HOST="smtp.example.com",
            SMTP_PORT=587,
            SMTP_USERNAME="billing",
            SMTP_PASSWORD="secret",
            SMTP_USE_TLS=True,
            EMAIL_FROM="billing@example.com",
            EMAIL_FROM_NAME="Billing",
        )

        service = create_email_service(config)

        assert isinstance(service, CompositeEmailService)
        assert isinstance(service.services[1], SmtpEmailService)
        assert service.services[1].host == "smtp.example.com"


@pytest.mark.asyncio
class TestSmtpEmailService:

    async def test_builds_html_message(self):
        service = SmtpEmailService(
            host="smtp.example.com", from_address="billing@example.com", from_name="Billing"
        )
        service._deliver = MagicMock()

        sent = await service.send("jane@example.com", "Subject", "line<br>line")

        assert sent is True
        msg = service._deliver.call_args.args[0]
        assert msg["To"] == "jane@example.com"
        assert msg["From"] == "Billing <billing@example.com>"
        assert msg.get_content_type() == "text/html"

    async def test_smtp_failure_returns_false(self):
        service = SmtpEmailService(host="smtp.example.com", from_address="billing@example.com")

        with patch("src.adapter.services.email_service.smtplib.SMTP") as smtp:
            smtp.side_effect = smtplib.SMTPConnectError(421, "unavailable")
            sent = await service.send("jane@example.com", "Subject", "body")

        assert sent is False


@pytest.mark.asyncio
class TestCompositeEmailService:

    async def test_succeeds_if_any_service_succeeds(self):
        failing = MagicMock()
        failing.send = AsyncMock(side_effect=RuntimeError("down"))
        working = MagicMock()
        working.send = AsyncMock(return_value=True)

        service = CompositeEmailService([failing, working])

        assert await service.send("a@example.com", "s", "b") is True
        working.send.assert_awaited_once_with("a@example.com", "s", "b")
