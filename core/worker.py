"""
Celery worker: email delivery of invoices and receipts, overdue sweep.

Tasks consume the queues filled by the event handlers. Celery retries a
failed delivery with backoff; once retries run out the job is copied to the
dead-letter queue, and an invoice that the job itself moved to SENT goes
back to DRAFT so the owner can see it never reached the client.

Run with the invoicing-worker script (worker and beat in one process).
"""

import html
import logging
from dataclasses import dataclass

from celery import Task

from clients.email_client import Attachment, EmailGatewayClient, OutgoingEmail
from clients.pdf_client import PdfServiceClient
from core.config import BillingConfig
from core.documents import build_invoice_document
from core.errors import NotFoundError
from core.jobs import (
    DEAD_LETTER_QUEUE,
    DELIVER_INVOICE_TASK,
    DELIVER_RECEIPT_TASK,
    EMAIL_INVOICE_QUEUE,
    EMAIL_RECEIPT_QUEUE,
    MAINTENANCE_QUEUE,
    MARK_OVERDUE_TASK,
    STORE_DEAD_LETTER_TASK,
    celery_app,
)
from core.lifecycle import InvoiceStatus
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def message_html(message: str) -> str:
    """Plain text message → minimal HTML email body."""
    paragraphs = "".join(f"<p>{html.escape(line)}</p>" for line in message.split("\n"))
    return (
        '<div style="font-family: Arial; max-width: 600px;">'
        f'<div style="margin: 20px 0;">{paragraphs}</div>'
        '<p style="color: #999;">Please find the document attached.</p>'
        "</div>"
    )


@dataclass
class WorkerContext:
    """Services and clients shared by the tasks of one worker process."""

    invoices: InvoiceService
    payments: PaymentService
    pdf: PdfServiceClient
    email: EmailGatewayClient


_context: WorkerContext | None = None


def configure_worker(context: WorkerContext, config: BillingConfig | None = None) -> None:
    """Install the context the tasks run against and the retry budget."""
    global _context
    config = config or BillingConfig()
    _context = context
    for task in (deliver_invoice_task, deliver_receipt_task):
        task.max_retries = config.job_max_attempts - 1


def get_context() -> WorkerContext:
    if _context is None:
        raise RuntimeError("Worker context not configured; call configure_worker() first")
    return _context


# =============================================================================
# JOBS
# =============================================================================


def deliver_invoice(context: WorkerContext, payload: dict) -> None:
    """Render the invoice PDF and email it to the client."""
    invoice = context.invoices.get(payload["workspace_id"], payload["sequence"])
    content = context.pdf.render_invoice(build_invoice_document(invoice))

    message = payload.get("message") or (
        f"Hello {invoice.client.name},\n"
        f"Please find invoice {invoice.invoice_number} for "
        f"{invoice.total:.2f} {invoice.currency} attached."
    )
    context.email.send(OutgoingEmail(
        to=payload["email"],
        subject=payload.get("subject") or f"Invoice {invoice.invoice_number} from {invoice.business.name}",
        text=message,
        html=message_html(message),
        sender_name=invoice.business.name,
        reply_to=invoice.business.email,
        attachments=[Attachment(f"invoice-{invoice.invoice_number}.pdf", content)],
    ))
    logger.info(f"Invoice {invoice.id} emailed (workspace {invoice.workspace_id})")


def deliver_receipt(context: WorkerContext, payload: dict) -> None:
    """Render the payment receipt PDF and email it to the client."""
    document = context.payments.receipt_document(payload["workspace_id"], payload["payment_id"])
    content = context.pdf.render_receipt(document)
    number = document["invoice"]["invoiceNumber"]

    message = payload.get("message") or (
        f"Thank you for your payment of {document['payment']['amount']:.2f} "
        f"{document['invoice']['currency']} towards invoice {number}."
    )
    context.email.send(OutgoingEmail(
        to=payload["email"],
        subject=payload.get("subject") or f"Payment receipt - Invoice {number}",
        text=message,
        html=message_html(message),
        sender_name=document["company"]["name"],
        attachments=[Attachment(f"receipt-{number}-{payload['payment_id']}.pdf", content)],
    ))
    logger.info(f"Receipt for payment {payload['payment_id']} emailed (workspace {payload['workspace_id']})")


def invoice_undeliverable(context: WorkerContext, payload: dict) -> None:
    """
    Delivery given up on.

    Only the job of the send that moved the invoice out of DRAFT may move it
    back; a failed re-send leaves the invoice as it is.
    """
    if not payload.get("transitioned"):
        return
    invoice = context.invoices.get_invoice(payload["workspace_id"], payload["sequence"])
    if invoice.status == InvoiceStatus.SENT:
        context.invoices.revert_to_draft(payload["workspace_id"], payload["sequence"])


def _deliver(deliver, payload: dict) -> None:
    try:
        deliver(get_context(), payload)
    except NotFoundError as e:
        # Invoice or payment deleted since the job was queued
        logger.warning(f"Job dropped: {e}")


# =============================================================================
# TASKS
# =============================================================================


class DeliveryTask(Task):
    """Email delivery: retried with backoff, dead-lettered when retries run out."""

    autoretry_for = (Exception,)
    max_retries = 2  # job_max_attempts - 1, see configure_worker()
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        if self.request.retries >= self.max_retries:
            self._dead_letter(exc, task_id, args, einfo)
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_exhausted(self, payload: dict) -> None:
        """Runs once after the last attempt of a job failed."""

    def _dead_letter(self, exc, task_id, args, einfo) -> None:
        message = {
            "task_id": task_id,
            "task_name": self.name,
            "args": list(args),
            "failed_at": now_utc().isoformat(),
            "retries": self.request.retries,
            "exception": {
                "type": type(exc).__name__,
                "message": str(exc),
                "traceback": str(einfo) if einfo else None,
            },
        }
        try:
            celery_app.send_task(
                STORE_DEAD_LETTER_TASK,
                args=[message],
                queue=DEAD_LETTER_QUEUE,
                routing_key=DEAD_LETTER_QUEUE,
            )
            logger.error(f"Job {task_id} ({self.name}) dead-lettered after {self.request.retries} retries: {exc}")
        except Exception:
            logger.critical(f"Could not dead-letter job {task_id} ({self.name})", exc_info=True)

        if args:
            try:
                self.on_exhausted(args[0])
            except Exception:
                logger.exception(f"Dead-letter handling failed for job {task_id}")


class InvoiceDeliveryTask(DeliveryTask):

    def on_exhausted(self, payload: dict) -> None:
        invoice_undeliverable(get_context(), payload)


@celery_app.task(name=DELIVER_INVOICE_TASK, base=InvoiceDeliveryTask)
def deliver_invoice_task(payload: dict) -> None:
    _deliver(deliver_invoice, payload)


@celery_app.task(name=DELIVER_RECEIPT_TASK, base=DeliveryTask)
def deliver_receipt_task(payload: dict) -> None:
    _deliver(deliver_receipt, payload)


@celery_app.task(name=MARK_OVERDUE_TASK)
def mark_overdue_task() -> int:
    """Periodic: past-due open invoices become OVERDUE."""
    return get_context().invoices.mark_overdue_invoices()


@celery_app.task(name=STORE_DEAD_LETTER_TASK)
def store_dead_letter(message: dict) -> None:
    """Drain a dead letter into the log (only run when a worker consumes the dead-letter queue)."""
    logger.error(
        f"Dead letter: job {message.get('task_id')} ({message.get('task_name')})",
        extra={"dead_letter": message},
    )


def main() -> None:
    """Entry point: secrets from Vault, then worker and beat until interrupted."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from clients.postgres_client import PostgresClient
    from clients.vault_client import (
        get_database_url, get_email_config, get_pdf_service_config, get_valkey_url, preload_secrets,
    )
    from core.bootstrap import build_services
    from core.jobs import JobQueue, configure_celery

    preload_secrets(("database", "valkey", "pdf", "email"))
    config = BillingConfig()
    configure_celery(get_valkey_url(), config)
    postgres = PostgresClient(get_database_url())
    services = build_services(postgres, JobQueue(celery_app), config)

    configure_worker(WorkerContext(
        invoices=services["invoice"],
        payments=services["payment"],
        pdf=PdfServiceClient(**get_pdf_service_config(), timeout=config.pdf_timeout_seconds),
        email=EmailGatewayClient(**get_email_config()),
    ), config)

    try:
        celery_app.worker_main([
            "worker",
            "--beat",
            "--pool=threads",
            "--loglevel=INFO",
            "-Q", ",".join((EMAIL_INVOICE_QUEUE, EMAIL_RECEIPT_QUEUE, MAINTENANCE_QUEUE)),
        ])
    finally:
        postgres.close()


if __name__ == "__main__":
    main()
