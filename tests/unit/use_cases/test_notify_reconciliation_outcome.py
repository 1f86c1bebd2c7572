"""Unit tests for NotifyReconciliationOutcome use case"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.billing.dtos import CustomerReconciliationLog
from src.app.use_cases.billing.notify_reconciliation_outcome import NotifyReconciliationOutcome


@pytest.fixture
def mock_email_service():
    service = MagicMock()
    service.send = AsyncMock(return_value=True)
    return service


@pytest.fixture
def notify_use_case(mock_email_service):
    return NotifyReconciliationOutcome(
        email_service=mock_email_service, operations_email="billing-ops@example.com"
    )


def make_log(changes=(), errors=()):
    return CustomerReconciliationLog(
        customer_id=1,
        customer_name="Nordic Freight A/S",
        changes=list(changes),
        errors=list(errors),
    )


@pytest.mark.asyncio
class TestNotifyReconciliationOutcome:

    async def test_changes_are_sent_to_salesperson(self, notify_use_case, mock_email_service):
        log = make_log(changes=["first change", "second change"])

        result = await notify_use_case.execute(log, "jane@example.com")

        assert result.is_ok()
        assert result.value.change_email_sent
        assert not result.value.error_email_sent
        assert result.value.emails_sent == 1
        mock_email_service.send.assert_awaited_once_with(
            "jane@example.com",
            "[Billing Alert]: Nordic Freight A/S - Automatic changes made",
            "first change<br>second change",
        )

    async def test_errors_are_sent_to_operations(self, notify_use_case, mock_email_service):
        log = make_log(errors=["SKU AZ-001 has no matching subscription instance"])

        result = await notify_use_case.execute(log, "jane@example.com")

        assert result.value.error_email_sent
        assert not result.value.change_email_sent
        mock_email_service.send.assert_awaited_once_with(
            "billing-ops@example.com",
            "[Billing Alert]: Nordic Freight A/S - Errors found while reconciling subscriptions",
            "SKU AZ-001 has no matching subscription instance",
        )

    async def test_nothing_to_report_sends_nothing(self, notify_use_case, mock_email_service):
        result = await notify_use_case.execute(make_log(), "jane@example.com")

        assert result.value.emails_sent == 0
        mock_email_service.send.assert_not_awaited()

    async def test_missing_salesperson_turns_into_error_email(
        self, notify_use_case, mock_email_service
    ):
        """
        Given: Change lines but no salesperson email on file
        When: Notification runs
        Then: A fallback error line is added and only the operations email is sent
        """
        log = make_log(changes=["a change"])

        result = await notify_use_case.execute(log, None)

        assert len(log.errors) == 1
        assert "no salesperson" in log.errors[0]
        assert result.value.error_email_sent
        assert not result.value.change_email_sent
        to_address = mock_email_service.send.await_args.args[0]
        assert to_address == "billing-ops@example.com"

    async def test_lines_are_html_escaped(self, notify_use_case, mock_email_service):
        log = make_log(changes=['Instance "A&B" <old>'])

        await notify_use_case.execute(log, "jane@example.com")

        body = mock_email_service.send.await_args.args[2]
        assert body == "Instance &quot;A&amp;B&quot; &lt;old&gt;"

    async def test_send_failure_is_not_fatal(self, notify_use_case, mock_email_service):
        mock_email_service.send = AsyncMock(side_effect=OSError("smtp down"))
        log = make_log(changes=["a change"], errors=["an error"])

        result = await notify_use_case.execute(log, "jane@example.com")

        assert result.is_ok()
        assert result.value.emails_sent == 0
        assert mock_email_service.send.await_count == 2
