"""Overdue Invoice Sweep Background Worker

Periodically moves pending invoices past their due date to overdue.
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from aeroclub_billing.adapter.repositories.invoice_repository import SqlAlchemyInvoiceRepository
from aeroclub_billing.adapter.repositories.payment_repository import SqlAlchemyPaymentRepository
from aeroclub_billing.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from aeroclub_billing.app.use_cases.billing import MarkOverdueInvoices, OverdueSweepResultDTO

logger = logging.getLogger(__name__)


class OverdueSweepWorker:
    """
    Background worker for the overdue sweep

    Usage:
        # Run once
        worker = OverdueSweepWorker()
        result = await worker.run_once()

        # Run continuously
        worker = OverdueSweepWorker()
        await worker.run_forever(interval_seconds=3600)  # Hourly
    """

    def __init__(self, db_uri: Optional[str] = None):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("OverdueSweepWorker initialized")

    async def run_once(self) -> OverdueSweepResultDTO:
        """
        Run the sweep once

        Returns:
            OverdueSweepResultDTO with sweep results
        """
        if not ApplicationConfig.OVERDUE_SWEEP_ENABLED:
            logger.info("Overdue sweep is disabled, skipping")
            return OverdueSweepResultDTO(
                invoices_checked=0,
                invoices_marked_overdue=0,
                conflicts=0,
                sweep_time=datetime.utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = MarkOverdueInvoices(
                uow=SqlAlchemyUnitOfWork(session),
                invoice_repo=SqlAlchemyInvoiceRepository(session),
                payment_repo=SqlAlchemyPaymentRepository(session),
            )

            result = await use_case.execute()

            if result.is_err():
                logger.error(f"Overdue sweep failed: {result.error.message}")
                raise RuntimeError(f"Overdue sweep failed: {result.error.message}")

            return result.value

    async def run_forever(self, interval_seconds: int = 3600):
        """
        Run the sweep continuously at the specified interval

        Args:
            interval_seconds: Seconds between runs (default: 1 hour)
        """
        logger.info(f"Starting continuous overdue sweep with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Overdue sweep cycle complete. "
                    f"Checked {result.invoices_checked} invoices, "
                    f"marked {result.invoices_marked_overdue} overdue "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Overdue sweep cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("OverdueSweepWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        python -m aeroclub_billing.worker.overdue_sweeper --once
        python -m aeroclub_billing.worker.overdue_sweeper --interval 600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Overdue Invoice Sweep Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.OVERDUE_SWEEP_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    worker = OverdueSweepWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Overdue sweep complete:")
            print(f"  Invoices checked: {result.invoices_checked}")
            print(f"  Marked overdue: {result.invoices_marked_overdue}")
            print(f"  Conflicts: {result.conflicts}")
            print(f"  Execution time: {result.execution_time_ms}ms")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
