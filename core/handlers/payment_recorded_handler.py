"""
Handler for PaymentRecorded events.

When the payer asked for a receipt, queues a receipt email.
"""

import logging
from typing import Callable

from core.events import PaymentRecorded
from core.jobs import EMAIL_RECEIPT_QUEUE

logger = logging.getLogger(__name__)


def handle_payment_recorded(job_queue) -> Callable:
    """
    Factory that returns a PaymentRecorded handler.

    Args:
        job_queue: JobQueue instance

    Returns:
        Handler callable that enqueues an email-receipt job
    """

    def handler(event: PaymentRecorded):
        if not event.send_receipt:
            return

        recipient = event.receipt_email or event.invoice.client_email
        if not recipient:
            logger.warning(f"Receipt for payment {event.payment.id} requested but no email is known")
            return

        job_queue.enqueue(EMAIL_RECEIPT_QUEUE, {
            "workspace_id": event.workspace_id,
            "invoice_id": event.invoice.id,
            "sequence": event.invoice.sequence,
            "payment_id": event.payment.id,
            "email": recipient,
            "subject": event.receipt_subject,
            "message": event.receipt_message,
        })

    return handler
