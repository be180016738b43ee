"""Tests for /payments routes."""

from datetime import date
from decimal import Decimal

import pytest

from core.errors import NotFoundError
from core.models import PaymentPage, PaymentSummary

WORKSPACE_ID = 1


@pytest.fixture
def payment_summary(_payment):
    return PaymentSummary(
        **_payment.model_dump(),
        invoice_sequence=7,
        invoice_number="INV-0007",
        client_name="Jane Doe",
        business_id=10,
    )


class TestListPayments:
    """Workspace-wide payment list."""

    def test_list_with_filters(self, client, services, payment_summary):
        services["payment"].list.return_value = PaymentPage(
            items=[payment_summary], page=1, limit=20, total_count=1, total_amount=Decimal("100"),
        )

        response = client.get("/payments?date_from=2025-03-01&date_to=2025-03-31&business_id=10")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_amount"] == 100.0
        assert data["items"][0]["invoice_number"] == "INV-0007"

        ws, query = services["payment"].list.call_args.args
        assert ws == WORKSPACE_ID
        assert query.date_from == date(2025, 3, 1)
        assert query.business_id == 10

    def test_inverted_date_range_rejected(self, client, services):
        response = client.get("/payments?date_from=2025-04-01&date_to=2025-03-01")

        assert response.status_code == 400
        services["payment"].list.assert_not_called()


class TestSinglePayment:
    """Lookup and receipt."""

    def test_get(self, client, services, payment_summary):
        services["payment"].find.return_value = payment_summary

        response = client.get("/payments/40")

        assert response.json()["data"]["client_name"] == "Jane Doe"
        services["payment"].find.assert_called_once_with(WORKSPACE_ID, 40)

    def test_get_missing_is_404(self, client, services):
        services["payment"].find.side_effect = NotFoundError("Payment", 41)

        response = client.get("/payments/41")

        assert response.status_code == 404

    def test_receipt_pdf(self, client, services):
        document = {"invoice": {"invoiceNumber": "INV-0007"}, "payment": {"id": "40"}}
        services["payment"].receipt_document.return_value = document
        services["pdf"].render_receipt.return_value = b"%PDF-receipt"

        response = client.get("/payments/40/receipt")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="receipt-INV-0007-40.pdf"' in response.headers["content-disposition"]
        services["pdf"].render_receipt.assert_called_once_with(document)
