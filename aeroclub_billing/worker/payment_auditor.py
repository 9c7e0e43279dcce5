"""Payment Audit Background Worker

Periodically checks payments against invoices and the credit ledger and
alerts on any discrepancy.
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
from aeroclub_billing.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from aeroclub_billing.adapter.services.notification_service import create_notification_service
from aeroclub_billing.app.services.notification_service import NotificationService
from aeroclub_billing.app.use_cases.billing import AuditPayments, PaymentAuditResultDTO

logger = logging.getLogger(__name__)


class PaymentAuditWorker:
    """
    Background worker for the payment audit

    Features:
    - Read-only: never changes payments, invoices or balances
    - Sends discrepancies through the notification service
    - Can run once or continuously (default: daily)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            notification_service: Alert channel (defaults to logging, plus
                                  webhook if PAYMENT_AUDIT_WEBHOOK is set)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        self.notification_service = notification_service or create_notification_service(
            ApplicationConfig.PAYMENT_AUDIT_WEBHOOK
        )

        logger.info("PaymentAuditWorker initialized")

    async def run_once(self) -> PaymentAuditResultDTO:
        """
        Run the audit once

        Returns:
            PaymentAuditResultDTO with audit results
        """
        if not ApplicationConfig.PAYMENT_AUDIT_ENABLED:
            logger.info("Payment audit is disabled, skipping")
            return PaymentAuditResultDTO(
                invoices_checked=0,
                credit_payments_checked=0,
                discrepancies_found=0,
                discrepancies=[],
                audit_time=datetime.utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = AuditPayments(
                invoice_repo=SqlAlchemyInvoiceRepository(session),
                payment_repo=SqlAlchemyPaymentRepository(session),
                transaction_repo=SqlAlchemyCreditTransactionRepository(session),
            )

            result = await use_case.execute()

            if result.is_err():
                logger.error(f"Payment audit failed: {result.error.message}")
                raise RuntimeError(f"Payment audit failed: {result.error.message}")

            response = result.value

        if response.discrepancies_found > 0:
            logger.error(f"ALERT: {response.discrepancies_found} payment discrepancies found!")
            sent = await self.notification_service.send_discrepancy_alert(response.discrepancies)
            if not sent:
                logger.warning("Failed to deliver payment audit alert")

        return response

    async def run_forever(self, interval_seconds: int = 86400):
        """
        Run the audit continuously at the specified interval

        Args:
            interval_seconds: Seconds between runs (default: 24 hours)
        """
        logger.info(f"Starting continuous payment audit with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Payment audit cycle complete. "
                    f"Checked {result.invoices_checked} invoices, "
                    f"found {result.discrepancies_found} discrepancies "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Payment audit cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("PaymentAuditWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        python -m aeroclub_billing.worker.payment_auditor --once
        python -m aeroclub_billing.worker.payment_auditor --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Payment Audit Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.PAYMENT_AUDIT_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    worker = PaymentAuditWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Payment audit complete:")
            print(f"  Invoices checked: {result.invoices_checked}")
            print(f"  Credit payments checked: {result.credit_payments_checked}")
            print(f"  Discrepancies found: {result.discrepancies_found}")
            print(f"  Execution time: {result.execution_time_ms}ms")
            for d in result.discrepancies:
                print(f"  - {d.kind}: {d.description}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
