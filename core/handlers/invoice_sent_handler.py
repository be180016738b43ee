"""
Handler for InvoiceSent events.

On send, queues delivery of the invoice PDF by email. The worker renders
the document, so the request that sent the invoice never waits on it.
"""

import logging
from typing import Callable

from core.events import InvoiceSent
from core.jobs import EMAIL_INVOICE_QUEUE

logger = logging.getLogger(__name__)


def handle_invoice_sent(job_queue) -> Callable:
    """
    Factory that returns an InvoiceSent handler.

    Args:
        job_queue: JobQueue instance

    Returns:
        Handler callable that enqueues an email-invoice job
    """

    def handler(event: InvoiceSent):
        invoice = event.invoice
        recipient = event.email or invoice.client_email
        if not recipient:
            logger.info(f"Invoice {invoice.id} sent without email delivery (no recipient)")
            return

        job_queue.enqueue(EMAIL_INVOICE_QUEUE, {
            "workspace_id": invoice.workspace_id,
            "invoice_id": invoice.id,
            "sequence": invoice.sequence,
            "email": recipient,
            "subject": event.subject,
            "message": event.message,
            # Only the job of the first send may roll the invoice back to DRAFT
            "transitioned": event.transitioned,
        })

    return handler
