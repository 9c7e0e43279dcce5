"""Unit tests for OverdueSweepWorker

Tests cover:
- Worker initialization with configuration
- run_once execution and disabled flag
- Error propagation from the use case
- Shutdown and cleanup
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

from aeroclub_billing.worker.overdue_sweeper import OverdueSweepWorker
from aeroclub_billing.app.use_cases.billing.dtos import OverdueSweepResultDTO


@pytest.fixture
def sample_sweep_result():
    return OverdueSweepResultDTO(
        invoices_checked=4,
        invoices_marked_overdue=3,
        conflicts=1,
        sweep_time=datetime.utcnow(),
        execution_time_ms=12,
    )


def mock_session_factory(mock_sessionmaker):
    mock_session = MagicMock()
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=False)
    mock_sessionmaker.return_value = MagicMock(return_value=mock_session)
    return mock_session


class TestOverdueSweepWorkerInit:
    @patch("aeroclub_billing.worker.overdue_sweeper.ApplicationConfig")
    @patch("aeroclub_billing.worker.overdue_sweeper.create_async_engine")
    def test_initializes_with_default_config(self, mock_create_engine, mock_app_config):
        mock_app_config.DB_URI = "postgresql+asyncpg://default@localhost/db"

        worker = OverdueSweepWorker()

        assert worker.db_uri == "postgresql+asyncpg://default@localhost/db"
        mock_create_engine.assert_called_once()

    @patch("aeroclub_billing.worker.overdue_sweeper.create_async_engine")
    def test_initializes_with_custom_db_uri(self, mock_create_engine):
        worker = OverdueSweepWorker(db_uri="sqlite+aiosqlite:///custom.db")

        assert worker.db_uri == "sqlite+aiosqlite:///custom.db"


@pytest.mark.asyncio
class TestOverdueSweepWorkerRunOnce:
    @patch("aeroclub_billing.worker.overdue_sweeper.ApplicationConfig")
    @patch("aeroclub_billing.worker.overdue_sweeper.MarkOverdueInvoices")
    @patch("aeroclub_billing.worker.overdue_sweeper.create_async_engine")
    @patch("aeroclub_billing.worker.overdue_sweeper.sessionmaker")
    async def test_run_once_executes_sweep(
        self, mock_sessionmaker, mock_create_engine, mock_use_case_class, mock_app_config, sample_sweep_result
    ):
        mock_app_config.OVERDUE_SWEEP_ENABLED = True
        mock_session_factory(mock_sessionmaker)

        mock_result = MagicMock()
        mock_result.is_err.return_value = False
        mock_result.value = sample_sweep_result
        mock_use_case_class.return_value.execute = AsyncMock(return_value=mock_result)

        worker = OverdueSweepWorker()
        result = await worker.run_once()

        assert result.invoices_marked_overdue == 3
        assert result.conflicts == 1
        mock_use_case_class.return_value.execute.assert_called_once()

    @patch("aeroclub_billing.worker.overdue_sweeper.ApplicationConfig")
    @patch("aeroclub_billing.worker.overdue_sweeper.MarkOverdueInvoices")
    @patch("aeroclub_billing.worker.overdue_sweeper.create_async_engine")
    async def test_run_once_skips_when_disabled(
        self, mock_create_engine, mock_use_case_class, mock_app_config
    ):
        mock_app_config.OVERDUE_SWEEP_ENABLED = False

        worker = OverdueSweepWorker()
        result = await worker.run_once()

        assert result.invoices_checked == 0
        assert result.execution_time_ms == 0
        mock_use_case_class.assert_not_called()

    @patch("aeroclub_billing.worker.overdue_sweeper.ApplicationConfig")
    @patch("aeroclub_billing.worker.overdue_sweeper.MarkOverdueInvoices")
    @patch("aeroclub_billing.worker.overdue_sweeper.create_async_engine")
    @patch("aeroclub_billing.worker.overdue_sweeper.sessionmaker")
    async def test_run_once_raises_on_use_case_error(
        self, mock_sessionmaker, mock_create_engine, mock_use_case_class, mock_app_config
    ):
        mock_app_config.OVERDUE_SWEEP_ENABLED = True
        mock_session_factory(mock_sessionmaker)

        mock_result = MagicMock()
        mock_result.is_err.return_value = True
        mock_result.error.message = "Database connection failed"
        mock_use_case_class.return_value.execute = AsyncMock(return_value=mock_result)

        worker = OverdueSweepWorker()
        with pytest.raises(RuntimeError, match="Overdue sweep failed"):
            await worker.run_once()


@pytest.mark.asyncio
class TestOverdueSweepWorkerShutdown:
    @patch("aeroclub_billing.worker.overdue_sweeper.create_async_engine")
    async def test_shutdown_disposes_engine(self, mock_create_engine):
        mock_engine = MagicMock()
        mock_engine.dispose = AsyncMock()
        mock_create_engine.return_value = mock_engine

        worker = OverdueSweepWorker()
        await worker.shutdown()

        mock_engine.dispose.assert_called_once()
