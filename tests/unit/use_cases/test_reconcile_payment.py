"""Unit tests for ReconcilePayment use case

Tests cover:
- Credit + instrument split payment (paid in full)
- Already settled, missing payment method, invalid amounts
- Concurrent change detected at write time
- Atomicity: any write failure rolls everything back
- Commit timeout is indeterminate and the late commit outcome is logged
- Idempotent replay of a committed attempt
- Attempt state machine and error context
"""

import asyncio
import itertools
import logging
import pytest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from aeroclub_billing.app.use_cases.billing.reconcile_payment import (
    ReconcilePayment,
    ReconciliationState,
)
from aeroclub_billing.app.use_cases.billing.dtos import ReconcileCommandDTO, RemainderDTO
from aeroclub_billing.domain.invoice import Invoice, InvoiceStatus
from aeroclub_billing.domain.member_account import MemberAccount
from aeroclub_billing.domain.payment import Payment, PaymentMethod


class PaymentStore:
    """In-memory payments table behind the mocked repository"""

    def __init__(self, existing=None):
        self.rows = list(existing or [])
        self.ids = itertools.count(100)

    async def get_by_invoice_id(self, invoice_id):
        return [p for p in self.rows if p.invoice_id == invoice_id]

    async def create(self, payment):
        payment.id = next(self.ids)
        self.rows.append(payment)
        return payment


def make_invoice(total="299.00", status=InvoiceStatus.PENDING):
    return Invoice(
        id=1,
        invoice_number="INV-2024-000001",
        user_id="member_42",
        total_amount=Decimal(total),
        due_date=date.today(),
        status=status,
        version=1,
    )


def make_account(balance="100.00", version=1):
    return MemberAccount(
        id=7,
        user_id="member_42",
        credit_balance=Decimal(balance),
        version=version,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )


def make_payment(amount, method=PaymentMethod.EFTPOS, payment_id=1, invoice_id=1, attempt_key=None):
    return Payment(
        id=payment_id,
        invoice_id=invoice_id,
        user_id="member_42",
        amount=Decimal(amount),
        payment_method=method,
        receipt_number=f"RCPT-2024-{payment_id:06d}",
        payment_date=datetime.utcnow(),
        created_by="staff_3",
        attempt_key=attempt_key,
    )


def make_command(credit="0", remainder=None, **kwargs):
    return ReconcileCommandDTO(
        invoice_id=1,
        user_id="member_42",
        credit_to_apply=Decimal(credit),
        remainder=remainder,
        recorded_by="staff_3",
        **kwargs,
    )


@pytest.fixture
def store():
    return PaymentStore()


@pytest.fixture
def mock_invoice_repo():
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=make_invoice())
    repo.update_status = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def mock_payment_repo(store):
    receipts = itertools.count(1)
    repo = MagicMock()
    repo.get_by_attempt_key = AsyncMock(return_value=[])
    repo.get_by_invoice_id = AsyncMock(side_effect=store.get_by_invoice_id)
    repo.create = AsyncMock(side_effect=store.create)
    repo.generate_receipt_number = AsyncMock(
        side_effect=lambda: f"RCPT-2024-{next(receipts):06d}"
    )
    return repo


@pytest.fixture
def mock_account_repo():
    repo = MagicMock()
    repo.get_by_user_id = AsyncMock(return_value=make_account())
    repo.update_balance = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def mock_transaction_repo():
    repo = MagicMock()
    repo.create = AsyncMock(side_effect=lambda txn: txn)
    return repo


@pytest.fixture
def reconcile(mock_uow, mock_invoice_repo, mock_payment_repo, mock_account_repo, mock_transaction_repo):
    return ReconcilePayment(
        uow=mock_uow,
        invoice_repo=mock_invoice_repo,
        payment_repo=mock_payment_repo,
        account_repo=mock_account_repo,
        transaction_repo=mock_transaction_repo,
        commit_timeout=1.0,
    )


@pytest.mark.asyncio
class TestReconcileSuccess:
    async def test_credit_plus_eftpos_pays_in_full(
        self, reconcile, mock_uow, mock_invoice_repo, mock_account_repo, mock_transaction_repo, store
    ):
        """
        Given: Invoice 299.00, member credit 100.00
        When: 100.00 credit and 199.00 EFTPOS are applied
        Then: Two payments, credit 0.00, invoice paid, one commit
        """
        command = make_command(
            credit="100.00",
            remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("199.00")),
            notes="Dual flight",
        )

        result = await reconcile.execute(command)

        assert result.is_ok()
        response = result.value
        assert [(p.payment_method, p.amount) for p in response.payments] == [
            ("credit", Decimal("100.00")),
            ("eftpos", Decimal("199.00")),
        ]
        assert response.payments[0].notes == "Credit payment: Dual flight"
        assert response.credit_balance == Decimal("0.00")
        assert response.invoice_status == "paid"
        assert response.remaining_balance == Decimal("0.00")
        assert response.state == "completed"
        assert response.replayed is False
        assert reconcile.state == ReconciliationState.COMPLETED

        mock_account_repo.update_balance.assert_called_once_with(7, 1, Decimal("0.00"))
        debit = mock_transaction_repo.create.call_args[0][0]
        assert debit.payment_id == response.payments[0].payment_id
        invoice_id, version, status, paid_date = mock_invoice_repo.update_status.call_args[0]
        assert (invoice_id, version, status) == (1, 1, InvoiceStatus.PAID)
        assert paid_date is not None
        mock_uow.commit.assert_called_once()
        mock_uow.rollback.assert_not_called()
        assert len(store.rows) == 2

    async def test_instrument_covers_rest_after_earlier_payment(
        self, reconcile, mock_invoice_repo, mock_account_repo, store
    ):
        store.rows.append(make_payment("99.00", PaymentMethod.CASH))
        command = make_command(
            remainder=RemainderDTO(method=PaymentMethod.BANK_TRANSFER, amount=Decimal("200.00")),
        )

        result = await reconcile.execute(command)

        assert result.is_ok()
        assert result.value.invoice_status == "paid"
        assert result.value.credit_balance == Decimal("100.00")
        mock_account_repo.update_balance.assert_not_called()

    async def test_credit_only(self, reconcile, mock_invoice_repo, mock_account_repo):
        mock_invoice_repo.get_by_id = AsyncMock(return_value=make_invoice(total="80.00"))
        command = make_command(
            credit="80.00",
            remainder=RemainderDTO(method=PaymentMethod.CASH, amount=Decimal("5.00")),
        )

        result = await reconcile.execute(command)

        assert result.is_ok()
        assert len(result.value.payments) == 1
        assert result.value.payments[0].payment_method == "credit"
        assert result.value.credit_balance == Decimal("20.00")

    async def test_member_without_account_pays_by_instrument(self, reconcile, mock_account_repo):
        mock_account_repo.get_by_user_id = AsyncMock(return_value=None)
        command = make_command(
            remainder=RemainderDTO(method=PaymentMethod.VOUCHER, amount=Decimal("299.00")),
        )

        result = await reconcile.execute(command)

        assert result.is_ok()
        assert result.value.credit_balance is None
        assert result.value.invoice_status == "paid"


@pytest.mark.asyncio
class TestReconcileValidation:
    async def test_already_settled(self, reconcile, mock_uow, mock_payment_repo, store, mock_invoice_repo):
        """
        Given: Invoice 150.00 with 150.00 already paid
        When: Any reconciliation is attempted
        Then: ALREADY_SETTLED and nothing is written
        """
        mock_invoice_repo.get_by_id = AsyncMock(return_value=make_invoice(total="150.00"))
        store.rows.append(make_payment("150.00"))

        result = await reconcile.execute(
            make_command(remainder=RemainderDTO(method=PaymentMethod.CASH, amount=Decimal("1.00")))
        )

        assert result.is_err()
        assert result.error.code == "ALREADY_SETTLED"
        assert result.error.details["state"] == "rejected"
        mock_payment_repo.create.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_payment_method_required(self, reconcile, mock_invoice_repo, mock_account_repo, mock_payment_repo):
        """
        Given: Invoice 200.00, credit 50.00
        When: 50.00 credit is applied with no remainder
        Then: PAYMENT_METHOD_REQUIRED, no debit
        """
        mock_invoice_repo.get_by_id = AsyncMock(return_value=make_invoice(total="200.00"))
        mock_account_repo.get_by_user_id = AsyncMock(return_value=make_account("50.00"))

        result = await reconcile.execute(make_command(credit="50.00"))

        assert result.is_err()
        assert result.error.code == "PAYMENT_METHOD_REQUIRED"
        assert result.error.details["remaining_balance"] == "200.00"
        mock_account_repo.update_balance.assert_not_called()
        mock_payment_repo.create.assert_not_called()

    @pytest.mark.parametrize("credit", ["-1.00", "100.01", "300.00"])
    async def test_invalid_credit_amount(self, reconcile, mock_payment_repo, credit):
        result = await reconcile.execute(
            make_command(
                credit=credit,
                remainder=RemainderDTO(method=PaymentMethod.CASH, amount=Decimal("199.00")),
            )
        )

        assert result.is_err()
        assert result.error.code == "INVALID_CREDIT_AMOUNT"
        mock_payment_repo.create.assert_not_called()

    async def test_credit_capped_by_remaining(self, reconcile, mock_invoice_repo, mock_account_repo):
        mock_invoice_repo.get_by_id = AsyncMock(return_value=make_invoice(total="60.00"))
        mock_account_repo.get_by_user_id = AsyncMock(return_value=make_account("500.00"))

        result = await reconcile.execute(make_command(credit="60.01"))

        assert result.is_err()
        assert result.error.code == "INVALID_CREDIT_AMOUNT"

    async def test_remainder_must_match(self, reconcile, mock_payment_repo):
        result = await reconcile.execute(
            make_command(
                credit="100.00",
                remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("198.99")),
            )
        )

        assert result.is_err()
        assert result.error.code == "INVALID_AMOUNT"
        assert result.error.details["remainder_method"] == "eftpos"
        assert result.error.details["remainder_amount"] == "198.99"
        mock_payment_repo.create.assert_not_called()

    async def test_invoice_not_found(self, reconcile, mock_invoice_repo):
        mock_invoice_repo.get_by_id = AsyncMock(return_value=None)

        result = await reconcile.execute(make_command(credit="10.00"))

        assert result.is_err()
        assert result.error.code == "INVOICE_NOT_FOUND"
        assert result.error.details["invoice_id"] == 1
        assert result.error.details["credit_to_apply"] == "10.00"

    def test_remainder_cannot_be_credit(self):
        with pytest.raises(ValidationError):
            RemainderDTO(method=PaymentMethod.CREDIT, amount=Decimal("10.00"))


@pytest.mark.asyncio
class TestReconcileConcurrency:
    async def test_invoice_version_conflict(self, reconcile, mock_uow, mock_invoice_repo):
        """
        Given: Another attempt updated the invoice after it was read
        When: The status write is version-checked
        Then: CONFLICT and the whole attempt is rolled back
        """
        mock_invoice_repo.update_status = AsyncMock(return_value=False)

        result = await reconcile.execute(
            make_command(remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("299.00")))
        )

        assert result.is_err()
        assert result.error.code == "CONFLICT"
        assert result.error.details["state"] == "rolled_back"
        mock_uow.rollback.assert_called_once()
        mock_uow.commit.assert_not_called()

    async def test_payment_committed_between_read_and_write(
        self, reconcile, mock_uow, mock_payment_repo, store
    ):
        """
        Given: A full payment lands after validation read the invoice
        When: The recorder re-reads payments before writing
        Then: The overpayment surfaces as CONFLICT
        """
        concurrent = make_payment("299.00", payment_id=50)
        mock_payment_repo.get_by_invoice_id = AsyncMock(side_effect=[[], [concurrent]])

        result = await reconcile.execute(
            make_command(remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("299.00")))
        )

        assert result.is_err()
        assert result.error.code == "CONFLICT"
        assert "OVERPAYMENT_REJECTED" in result.error.reason
        mock_payment_repo.create.assert_not_called()
        mock_uow.rollback.assert_called_once()
        mock_uow.commit.assert_not_called()

    async def test_credit_spent_concurrently(self, reconcile, mock_uow, mock_account_repo):
        mock_account_repo.get_by_user_id = AsyncMock(
            side_effect=[make_account("100.00"), make_account("20.00", version=2)]
        )

        result = await reconcile.execute(
            make_command(
                credit="100.00",
                remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("199.00")),
            )
        )

        assert result.is_err()
        assert result.error.code == "CONFLICT"
        mock_account_repo.update_balance.assert_not_called()
        mock_uow.rollback.assert_called_once()

    async def test_unique_violation_is_conflict(self, reconcile, mock_uow, mock_payment_repo):
        mock_payment_repo.create = AsyncMock(
            side_effect=IntegrityError("INSERT INTO payments", {}, Exception("UNIQUE constraint failed"))
        )

        result = await reconcile.execute(
            make_command(remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("299.00")))
        )

        assert result.is_err()
        assert result.error.code == "CONFLICT"
        mock_uow.rollback.assert_called_once()


@pytest.mark.asyncio
class TestReconcileAtomicity:
    async def test_remainder_insert_failure_rolls_back_debit(
        self, reconcile, mock_uow, mock_payment_repo, store
    ):
        """
        Given: Credit payment and debit succeed
        When: Writing the remainder payment fails
        Then: COMMIT_FAILED, rollback, nothing committed
        """
        calls = {"n": 0}

        async def failing_create(payment):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("disk full")
            return await store.create(payment)

        mock_payment_repo.create = AsyncMock(side_effect=failing_create)

        result = await reconcile.execute(
            make_command(
                credit="100.00",
                remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("199.00")),
            )
        )

        assert result.is_err()
        assert result.error.code == "COMMIT_FAILED"
        assert result.error.reason == "disk full"
        assert result.error.details["state"] == "rolled_back"
        assert reconcile.state == ReconciliationState.ROLLED_BACK
        mock_uow.rollback.assert_called_once()
        mock_uow.commit.assert_not_called()

    async def test_commit_failure(self, reconcile, mock_uow):
        mock_uow.commit = AsyncMock(side_effect=RuntimeError("connection reset"))

        result = await reconcile.execute(
            make_command(remainder=RemainderDTO(method=PaymentMethod.CASH, amount=Decimal("299.00")))
        )

        assert result.is_err()
        assert result.error.code == "COMMIT_FAILED"
        mock_uow.rollback.assert_called_once()

    async def test_commit_timeout_hands_over_pending_commit(
        self, mock_uow, mock_invoice_repo, mock_payment_repo, mock_account_repo, mock_transaction_repo,
        caplog,
    ):
        release = asyncio.Event()

        async def slow_failing_commit():
            await release.wait()
            raise RuntimeError("connection lost")

        mock_uow.commit = AsyncMock(side_effect=slow_failing_commit)
        reconcile = ReconcilePayment(
            mock_uow, mock_invoice_repo, mock_payment_repo, mock_account_repo, mock_transaction_repo,
            commit_timeout=0.01,
        )
        caplog.set_level(logging.INFO, logger="aeroclub_billing.app.use_cases.billing.reconcile_payment")

        result = await reconcile.execute(
            make_command(remainder=RemainderDTO(method=PaymentMethod.CASH, amount=Decimal("299.00")))
        )

        assert result.error.code == "INDETERMINATE"
        pending = mock_uow.pending_commit
        assert not pending.done()

        release.set()
        await asyncio.wait([pending])
        await asyncio.sleep(0)

        assert "Timed-out commit for invoice 1 failed: connection lost" in caplog.text

    async def test_commit_timeout_is_indeterminate(
        self, mock_uow, mock_invoice_repo, mock_payment_repo, mock_account_repo, mock_transaction_repo
    ):
        release = asyncio.Event()

        async def slow_commit():
            await release.wait()

        mock_uow.commit = AsyncMock(side_effect=slow_commit)
        reconcile = ReconcilePayment(
            mock_uow, mock_invoice_repo, mock_payment_repo, mock_account_repo, mock_transaction_repo,
            commit_timeout=0.01,
        )

        result = await reconcile.execute(
            make_command(remainder=RemainderDTO(method=PaymentMethod.CASH, amount=Decimal("299.00")))
        )

        assert result.is_err()
        assert result.error.code == "INDETERMINATE"
        assert result.error.details["state"] == "committing"
        assert reconcile.state == ReconciliationState.COMMITTING
        mock_uow.rollback.assert_not_called()

        release.set()
        await asyncio.sleep(0)


@pytest.mark.asyncio
class TestReconcileIdempotency:
    async def test_replays_committed_attempt(
        self, reconcile, mock_uow, mock_invoice_repo, mock_payment_repo, store
    ):
        earlier = [
            make_payment("100.00", PaymentMethod.CREDIT, payment_id=11, attempt_key="checkout:7:1"),
            make_payment("199.00", PaymentMethod.EFTPOS, payment_id=12, attempt_key="checkout:7:1"),
        ]
        store.rows.extend(earlier)
        mock_payment_repo.get_by_attempt_key = AsyncMock(return_value=list(reversed(earlier)))
        mock_invoice_repo.get_by_id = AsyncMock(return_value=make_invoice(status=InvoiceStatus.PAID))

        result = await reconcile.execute(
            make_command(
                credit="100.00",
                remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("199.00")),
                idempotency_key="checkout:7:1",
            )
        )

        assert result.is_ok()
        assert result.value.replayed is True
        assert [p.payment_id for p in result.value.payments] == [11, 12]
        assert result.value.invoice_status == "paid"
        assert result.value.remaining_balance == Decimal("0.00")
        mock_payment_repo.create.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_key_from_another_invoice(self, reconcile, mock_payment_repo):
        mock_payment_repo.get_by_attempt_key = AsyncMock(
            return_value=[make_payment("10.00", invoice_id=2, attempt_key="k")]
        )

        result = await reconcile.execute(make_command(credit="10.00", idempotency_key="k"))

        assert result.is_err()
        assert result.error.code == "IDEMPOTENCY_KEY_REUSED"
        mock_payment_repo.create.assert_not_called()

    async def test_key_from_another_member(self, reconcile, mock_uow, mock_payment_repo, store):
        earlier = [make_payment("299.00", PaymentMethod.EFTPOS, payment_id=11, attempt_key="checkout:7:1")]
        store.rows.extend(earlier)
        mock_payment_repo.get_by_attempt_key = AsyncMock(return_value=earlier)

        result = await reconcile.execute(
            ReconcileCommandDTO(
                invoice_id=1,
                user_id="member_99",
                remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("299.00")),
                recorded_by="staff_3",
                idempotency_key="checkout:7:1",
            )
        )

        assert result.is_err()
        assert result.error.code == "IDEMPOTENCY_KEY_REUSED"
        assert result.error.details["user_id"] == "member_99"
        assert result.error.details["state"] == "rejected"
        mock_payment_repo.create.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_attempt_key_written_on_payments(self, reconcile, store):
        result = await reconcile.execute(
            make_command(
                credit="100.00",
                remainder=RemainderDTO(method=PaymentMethod.EFTPOS, amount=Decimal("199.00")),
                idempotency_key="checkout:7:2",
            )
        )

        assert result.is_ok()
        assert {p.attempt_key for p in store.rows} == {"checkout:7:2"}
