"""
PDF renderer client.

The renderer is an internal HTTP service that turns invoice and receipt
document payloads into PDF bytes. Requests are authenticated with a shared
key in the X-PDF-Service-Key header.
"""

import logging
from typing import Any

import requests

from core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "PDF service"


class PdfServiceClient:
    """
    Render documents through the PDF service.

    Usage:
        pdf = PdfServiceClient(**get_pdf_service_config())
        content = pdf.render_invoice(build_invoice_document(invoice))
    """

    def __init__(self, url: str, api_key: str, timeout: int = 30):
        """
        Args:
            url: Base URL of the renderer (trailing slash optional)
            api_key: Shared secret for X-PDF-Service-Key
            timeout: Request timeout in seconds

        Raises:
            ValueError: If url or api_key is empty
        """
        if not url:
            raise ValueError("url is required")
        if not api_key:
            raise ValueError("api_key is required")

        self.base_url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _render(self, path: str, document: dict[str, Any]) -> bytes:
        try:
            response = requests.post(
                f"{self.base_url}{path}",
                json=document,
                headers={"X-PDF-Service-Key": self.api_key},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"PDF service connection failed on {path}: {e}")
            raise ExternalServiceError(SERVICE_NAME)

        if response.status_code != 200:
            logger.error(f"PDF service error on {path}: {response.status_code} {response.text[:500]}")
            raise ExternalServiceError(SERVICE_NAME)

        return response.content

    def render_invoice(self, document: dict[str, Any]) -> bytes:
        """PDF bytes of an invoice document."""
        return self._render("/generate-invoice", document)

    def render_receipt(self, document: dict[str, Any]) -> bytes:
        """PDF bytes of a payment receipt document."""
        return self._render("/generate-receipt", document)
