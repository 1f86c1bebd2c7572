"""Unit tests for UsageReconcilerWorker

Tests cover:
- Worker initialization and source selection
- run_once totals across customers
- Reconciliation disabled scenario
- A failing customer does not stop the run
- Shutdown and cleanup
"""

import pytest
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

from src.adapter.services.cloud_subscription_source import CloudSubscriptionSource
from src.adapter.services.virtualization_usage_source import VirtualizationUsageSource
from src.app.use_cases.billing.dtos import CustomerReconciliationLog
from src.worker.usage_reconciler import UsageReconcilerWorker


@pytest.fixture
def mock_email_service():
    service = MagicMock()
    service.send = AsyncMock(return_value=True)
    return service


def make_log(customer_id, changes=(), errors=()):
    return CustomerReconciliationLog(
        customer_id=customer_id,
        customer_name=f"Customer {customer_id}",
        changes=list(changes),
        errors=list(errors),
    )


class TestUsageReconcilerWorkerInit:
    """Test worker initialization"""

    @patch("src.worker.usage_reconciler.ApplicationConfig")
    @patch("src.worker.usage_reconciler.create_async_engine")
    def test_default_sources_follow_config(
        self, mock_create_engine, mock_app_config, mock_email_service
    ):
        """
        Given: Virtualization enabled and a cloud provider URL configured
        When: Worker is initialized without sources
        Then: Both sources are used and the cloud source is the catalog
        """
        # Arrange
        mock_app_config.DB_URI = "sqlite+aiosqlite:///:memory:"
        mock_app_config.VIRTUALIZATION_SOURCE_ENABLED = True
        mock_app_config.CLOUD_PROVIDER_BASE_URL = "https://provider.test/api"
        mock_app_config.CLOUD_PROVIDER_API_KEY = "secret"
        mock_app_config.CLOUD_PROVIDER_TIMEOUT_SECONDS = 10
        mock_create_engine.return_value = MagicMock()

        # Act
        worker = UsageReconcilerWorker(email_service=mock_email_service)

        # Assert
        assert [type(s) for s in worker.sources] == [
            VirtualizationUsageSource,
            CloudSubscriptionSource,
        ]
        assert worker.catalog is worker.sources[1]
        assert worker.sources[1].timeout == 10.0

    @patch("src.worker.usage_reconciler.ApplicationConfig")
    @patch("src.worker.usage_reconciler.create_async_engine")
    def test_cloud_source_skipped_without_provider_url(
        self, mock_create_engine, mock_app_config, mock_email_service
    ):
        mock_app_config.DB_URI = "sqlite+aiosqlite:///:memory:"
        mock_app_config.VIRTUALIZATION_SOURCE_ENABLED = True
        mock_app_config.CLOUD_PROVIDER_BASE_URL = ""
        mock_create_engine.return_value = MagicMock()

        worker = UsageReconcilerWorker(email_service=mock_email_service)

        assert [type(s) for s in worker.sources] == [VirtualizationUsageSource]
        assert worker.catalog is None

    @patch("src.worker.usage_reconciler.create_async_engine")
    def test_initializes_with_custom_db_uri(self, mock_create_engine, mock_email_service):
        mock_create_engine.return_value = MagicMock()

        worker = UsageReconcilerWorker(
            db_uri="sqlite+aiosqlite:///./custom.db",
            sources=[],
            email_service=mock_email_service,
        )

        assert worker.db_uri == "sqlite+aiosqlite:///./custom.db"
        assert worker.sources == []
        mock_create_engine.assert_called_once()


@pytest.mark.asyncio
class TestUsageReconcilerWorkerRunOnce:
    """Test run_once execution"""

    @patch("src.worker.usage_reconciler.ApplicationConfig")
    @patch("src.worker.usage_reconciler.create_async_engine")
    async def test_run_once_totals_customers(
        self, mock_create_engine, mock_app_config, mock_email_service
    ):
        """
        Given: Three customers, one of which fails and one that disappeared
        When: run_once is called
        Then: The failing customer is counted and reported to operations,
              and the others are totalled
        """
        # Arrange
        mock_app_config.RECONCILIATION_ENABLED = True
        mock_app_config.OPERATIONS_ALERT_EMAIL = "ops@example.com"
        mock_create_engine.return_value = MagicMock()
        worker = UsageReconcilerWorker(
            db_uri="sqlite+aiosqlite:///:memory:", sources=[], email_service=mock_email_service
        )
        worker._list_customer_ids = AsyncMock(return_value=[1, 2, 3, 4])
        worker.reconcile_customer = AsyncMock(
            side_effect=[
                (make_log(1, changes=["c1", "c2"]), 1),
                RuntimeError("database gone"),
                None,
                (make_log(4, changes=["c3"], errors=["e1"]), 2),
            ]
        )

        # Act
        result = await worker.run_once(today=date(2024, 3, 14))

        # Assert
        assert result.customers_processed == 2
        assert result.customers_failed == 1
        assert result.changes_made == 3
        assert result.errors_found == 2
        assert result.notifications_sent == 4
        to_address, subject, body = mock_email_service.send.await_args.args
        assert to_address == "ops@example.com"
        assert subject == "[Billing Alert]: Customer 2 - Errors found while reconciling subscriptions"
        assert "database gone" in body
        assert worker.reconcile_customer.await_count == 4
        worker.reconcile_customer.assert_any_await(2, date(2024, 3, 14))

    @patch("src.worker.usage_reconciler.ApplicationConfig")
    @patch("src.worker.usage_reconciler.create_async_engine")
    async def test_run_once_syncs_catalog_first_when_enabled(
        self, mock_create_engine, mock_app_config, mock_email_service
    ):
        mock_app_config.RECONCILIATION_ENABLED = True
        mock_app_config.CATALOG_SYNC_ENABLED = True
        mock_create_engine.return_value = MagicMock()
        worker = UsageReconcilerWorker(
            db_uri="sqlite+aiosqlite:///:memory:",
            sources=[],
            email_service=mock_email_service,
            catalog=MagicMock(),
        )
        worker.sync_catalog = AsyncMock()
        worker._list_customer_ids = AsyncMock(return_value=[])

        await worker.run_once(today=date(2024, 3, 14))

        worker.sync_catalog.assert_awaited_once()

    @patch("src.worker.usage_reconciler.ApplicationConfig")
    @patch("src.worker.usage_reconciler.create_async_engine")
    async def test_run_once_skips_when_disabled(
        self, mock_create_engine, mock_app_config, mock_email_service
    ):
        mock_app_config.RECONCILIATION_ENABLED = False
        mock_create_engine.return_value = MagicMock()
        worker = UsageReconcilerWorker(
            db_uri="sqlite+aiosqlite:///:memory:", sources=[], email_service=mock_email_service
        )
        worker._list_customer_ids = AsyncMock()

        result = await worker.run_once()

        assert result.customers_processed == 0
        assert result.execution_time_ms == 0
        worker._list_customer_ids.assert_not_awaited()


@pytest.mark.asyncio
class TestUsageReconcilerWorkerShutdown:

    @patch("src.worker.usage_reconciler.create_async_engine")
    async def test_shutdown_disposes_engine(self, mock_create_engine, mock_email_service):
        mock_engine = MagicMock()
        mock_engine.dispose = AsyncMock()
        mock_create_engine.return_value = mock_engine
        worker = UsageReconcilerWorker(
            db_uri="sqlite+aiosqlite:///:memory:", sources=[], email_service=mock_email_service
        )

        await worker.shutdown()

        mock_engine.dispose.assert_awaited_once()
