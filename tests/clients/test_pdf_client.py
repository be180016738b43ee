"""Tests for PdfServiceClient."""

import json

import pytest
import requests
import responses

from clients.pdf_client import PdfServiceClient
from core.errors import ExternalServiceError

PDF_URL = "https://pdf.internal.test"


@pytest.fixture
def client():
    return PdfServiceClient(url=PDF_URL + "/", api_key="pdf-key")


class TestInit:
    """Fail-fast configuration."""

    def test_trailing_slash_stripped(self, client):
        """Base URL is normalized."""
        assert client.base_url == PDF_URL

    @pytest.mark.parametrize("kwargs,field", [
        ({"url": "", "api_key": "k"}, "url"),
        ({"url": PDF_URL, "api_key": ""}, "api_key"),
    ])
    def test_rejects_empty(self, kwargs, field):
        """Missing url or key raises ValueError."""
        with pytest.raises(ValueError, match=field):
            PdfServiceClient(**kwargs)


class TestRender:
    """Rendering through the service."""

    @responses.activate
    def test_render_invoice(self, client):
        """Invoice documents POST to /generate-invoice with the service key."""
        responses.add(responses.POST, f"{PDF_URL}/generate-invoice", body=b"%PDF-1.7", status=200)

        content = client.render_invoice({"invoice": {"invoiceNumber": "INV-0001"}})

        assert content == b"%PDF-1.7"
        request = responses.calls[0].request
        assert request.headers["X-PDF-Service-Key"] == "pdf-key"
        assert json.loads(request.body) == {"invoice": {"invoiceNumber": "INV-0001"}}

    @responses.activate
    def test_render_receipt(self, client):
        """Receipts POST to /generate-receipt."""
        responses.add(responses.POST, f"{PDF_URL}/generate-receipt", body=b"%PDF-receipt", status=200)

        assert client.render_receipt({"payment": {"id": "1"}}) == b"%PDF-receipt"

    @responses.activate
    def test_error_status_raises(self, client):
        """Non-200 responses become ExternalServiceError."""
        responses.add(responses.POST, f"{PDF_URL}/generate-invoice", body="bad key", status=401)

        with pytest.raises(ExternalServiceError) as exc_info:
            client.render_invoice({})

        assert exc_info.value.status_code == 502
        assert "bad key" not in str(exc_info.value)

    @responses.activate
    def test_connection_failure_raises(self, client):
        """Network errors become ExternalServiceError."""
        responses.add(
            responses.POST, f"{PDF_URL}/generate-receipt",
            body=requests.exceptions.ConnectionError("refused"),
        )

        with pytest.raises(ExternalServiceError):
            client.render_receipt({})
