"""Integration tests for Billing API endpoints"""

import pytest
from decimal import Decimal
from httpx import AsyncClient


class TestInvoiceAPI:
    """Invoice creation and balance lookups"""

    @pytest.mark.asyncio
    async def test_create_invoice(self, client: AsyncClient):
        payload = {
            "user_id": "member_42",
            "booking_id": "booking_7",
            "flight_charges": [{"description": "ZK-ABC Dual", "rate": "230.00", "units": "1.20"}],
            "additional_charges": [{"description": "Landing fee NZAA", "amount": "23.00"}],
        }

        response = await client.post("/billing/invoices", json=payload)

        assert response.status_code == 201
        data = response.json()
        assert data["invoice_number"].startswith("INV-")
        assert Decimal(data["total_amount"]) == Decimal("299.00")
        assert data["status"] == "pending"
        assert [line["charge_type"] for line in data["line_items"]] == ["flight", "additional"]

    @pytest.mark.asyncio
    async def test_create_invoice_negative_rate(self, client: AsyncClient):
        payload = {
            "user_id": "member_42",
            "flight_charges": [{"description": "ZK-ABC Dual", "rate": "-1.00", "units": "1.00"}],
        }

        response = await client.post("/billing/invoices", json=payload)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_balance_not_found(self, client: AsyncClient):
        response = await client.get("/billing/invoices/9999/balance")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "INVOICE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestReconcileAPI:
    """POST /billing/invoices/{id}/reconcile"""

    @pytest.mark.asyncio
    async def test_split_payment(self, client: AsyncClient, seed):
        invoice = await seed.invoice("299.00")
        await seed.account("100.00")

        response = await client.post(
            f"/billing/invoices/{invoice.id}/reconcile",
            json={
                "user_id": "member_42",
                "credit_to_apply": "100.00",
                "remainder": {"method": "eftpos", "amount": "199.00"},
                "recorded_by": "staff_3",
                "idempotency_key": "checkout:booking_7:1",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["invoice_status"] == "paid"
        assert data["state"] == "completed"
        assert Decimal(data["credit_balance"]) == Decimal("0.00")
        assert Decimal(data["remaining_balance"]) == Decimal("0.00")
        assert [p["payment_method"] for p in data["payments"]] == ["credit", "eftpos"]

        balance = await client.get(f"/billing/invoices/{invoice.id}/balance")
        assert balance.status_code == 200
        assert Decimal(balance.json()["amount_paid"]) == Decimal("299.00")
        assert balance.json()["status"] == "paid"

        payments = await client.get(f"/billing/invoices/{invoice.id}/payments")
        assert payments.json()["total"] == 2

        credits = await client.get("/billing/credits/member_42")
        assert credits.status_code == 200
        assert Decimal(credits.json()["credit_balance"]) == Decimal("0.00")
        assert credits.json()["recent_transactions"][0]["transaction_type"] == "debit"

    @pytest.mark.asyncio
    async def test_replayed_with_same_key(self, client: AsyncClient, seed):
        invoice = await seed.invoice("80.00")
        payload = {
            "user_id": "member_42",
            "remainder": {"method": "cash", "amount": "80.00"},
            "recorded_by": "staff_3",
            "idempotency_key": "desk:80:1",
        }

        first = await client.post(f"/billing/invoices/{invoice.id}/reconcile", json=payload)
        second = await client.post(f"/billing/invoices/{invoice.id}/reconcile", json=payload)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["replayed"] is True
        assert second.json()["payments"][0]["payment_id"] == first.json()["payments"][0]["payment_id"]

        payments = await client.get(f"/billing/invoices/{invoice.id}/payments")
        assert payments.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_payment_method_required(self, client: AsyncClient, seed):
        invoice = await seed.invoice("200.00")
        await seed.account("50.00")

        response = await client.post(
            f"/billing/invoices/{invoice.id}/reconcile",
            json={"user_id": "member_42", "credit_to_apply": "50.00", "recorded_by": "staff_3"},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "PAYMENT_METHOD_REQUIRED"
        assert error["details"]["state"] == "rejected"
        assert error["details"]["invoice_id"] == invoice.id

    @pytest.mark.asyncio
    async def test_already_settled(self, client: AsyncClient, seed):
        invoice = await seed.invoice("40.00")
        payload = {
            "user_id": "member_42",
            "remainder": {"method": "cash", "amount": "40.00"},
            "recorded_by": "staff_3",
        }
        await client.post(f"/billing/invoices/{invoice.id}/reconcile", json=payload)

        response = await client.post(f"/billing/invoices/{invoice.id}/reconcile", json=payload)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "ALREADY_SETTLED"

    @pytest.mark.asyncio
    async def test_credit_as_remainder_rejected(self, client: AsyncClient, seed):
        invoice = await seed.invoice("20.00")

        response = await client.post(
            f"/billing/invoices/{invoice.id}/reconcile",
            json={
                "user_id": "member_42",
                "remainder": {"method": "credit", "amount": "20.00"},
                "recorded_by": "staff_3",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestReverseAndCreditAPI:
    """Payment reversal and credit lookups"""

    @pytest.mark.asyncio
    async def test_reverse_payment(self, client: AsyncClient, seed):
        invoice = await seed.invoice("60.00")
        paid = await client.post(
            f"/billing/invoices/{invoice.id}/reconcile",
            json={
                "user_id": "member_42",
                "remainder": {"method": "cash", "amount": "60.00"},
                "recorded_by": "staff_3",
            },
        )
        payment_id = paid.json()["payments"][0]["payment_id"]

        response = await client.post(
            f"/billing/payments/{payment_id}/reverse", json={"recorded_by": "staff_9"}
        )
        again = await client.post(
            f"/billing/payments/{payment_id}/reverse", json={"recorded_by": "staff_9"}
        )

        assert response.status_code == 200
        assert Decimal(response.json()["reversal"]["amount"]) == Decimal("-60.00")
        assert response.json()["reversal"]["reverses_payment_id"] == payment_id
        assert response.json()["invoice_status"] == "pending"
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "ALREADY_REVERSED"

    @pytest.mark.asyncio
    async def test_reverse_unknown_payment(self, client: AsyncClient):
        response = await client.post(
            "/billing/payments/9999/reverse", json={"recorded_by": "staff_9"}
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PAYMENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_credit_account_not_found(self, client: AsyncClient):
        response = await client.get("/billing/credits/nobody")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ACCOUNT_NOT_FOUND"
