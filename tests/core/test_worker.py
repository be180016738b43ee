"""Tests for the Celery worker tasks with mocked clients."""

from unittest.mock import Mock, PropertyMock, patch

import pytest

from clients.email_client import Attachment, EmailGatewayClient, EmailGatewayError
from clients.pdf_client import PdfServiceClient
from core import worker as worker_module
from core.config import BillingConfig
from core.errors import NotFoundError
from core.jobs import DEAD_LETTER_QUEUE, STORE_DEAD_LETTER_TASK, celery_app
from core.lifecycle import InvoiceStatus
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from core.worker import (
    DeliveryTask,
    InvoiceDeliveryTask,
    WorkerContext,
    configure_worker,
    deliver_invoice,
    deliver_invoice_task,
    deliver_receipt,
    deliver_receipt_task,
    get_context,
    invoice_undeliverable,
    mark_overdue_task,
    message_html,
)


@pytest.fixture
def invoices(_invoice_detail):
    mock = Mock(spec=InvoiceService)
    mock.get.return_value = _invoice_detail
    return mock


@pytest.fixture
def payments():
    return Mock(spec=PaymentService)


@pytest.fixture
def pdf():
    mock = Mock(spec=PdfServiceClient)
    mock.render_invoice.return_value = b"%PDF-invoice"
    mock.render_receipt.return_value = b"%PDF-receipt"
    return mock


@pytest.fixture
def email():
    return Mock(spec=EmailGatewayClient)


@pytest.fixture
def context(invoices, payments, pdf, email, monkeypatch):
    """Worker context installed for the tasks of this test only."""
    ctx = WorkerContext(invoices=invoices, payments=payments, pdf=pdf, email=email)
    monkeypatch.setattr(worker_module, "_context", ctx)
    return ctx


def exhausted(task, retries: int = 2):
    """Patch the task's request so the current attempt is its last."""
    request = Mock()
    request.retries = retries
    return patch.object(type(task), "request", new_callable=PropertyMock, return_value=request)


INVOICE_PAYLOAD = {
    "workspace_id": 1, "invoice_id": 30, "sequence": 7,
    "email": "jane@doe.test", "subject": None, "message": None, "transitioned": True,
}


class TestMessageHtml:

    def test_lines_become_paragraphs(self):
        """Each line is its own escaped paragraph."""
        html = message_html("Hello\n<b>you</b>")

        assert "<p>Hello</p>" in html
        assert "<p>&lt;b&gt;you&lt;/b&gt;</p>" in html


class TestDeliverInvoice:

    def test_renders_and_emails_pdf(self, context, pdf, email):
        """Invoice PDF is attached under its number."""
        deliver_invoice(context, INVOICE_PAYLOAD)

        pdf.render_invoice.assert_called_once()
        sent = email.send.call_args.args[0]
        assert sent.to == "jane@doe.test"
        assert sent.subject == "Invoice INV-0007 from Acme Studio"
        assert sent.attachments == [Attachment("invoice-INV-0007.pdf", b"%PDF-invoice")]

    def test_replies_go_to_business(self, context, email):
        """The business name and address identify the sender."""
        deliver_invoice(context, INVOICE_PAYLOAD)

        sent = email.send.call_args.args[0]
        assert sent.sender_name == "Acme Studio"
        assert sent.reply_to == "billing@acme.test"

    def test_custom_subject_and_message(self, context, email):
        """Subject and message from the send request are used as given."""
        deliver_invoice(context, {**INVOICE_PAYLOAD, "subject": "March invoice", "message": "See attached"})

        sent = email.send.call_args.args[0]
        assert sent.subject == "March invoice"
        assert sent.text == "See attached"


class TestDeliverReceipt:

    def test_renders_and_emails_receipt(self, context, payments, email):
        """Receipt PDF is named after invoice and payment."""
        payments.receipt_document.return_value = {
            "invoice": {"invoiceNumber": "INV-0007", "currency": "USD"},
            "payment": {"amount": 100.0},
            "company": {"name": "Acme Studio"},
        }

        deliver_receipt(context, {"workspace_id": 1, "payment_id": 40, "email": "jane@doe.test"})

        payments.receipt_document.assert_called_once_with(1, 40)
        sent = email.send.call_args.args[0]
        assert sent.subject == "Payment receipt - Invoice INV-0007"
        assert sent.attachments == [Attachment("receipt-INV-0007-40.pdf", b"%PDF-receipt")]
        assert "100.00 USD" in sent.text


class TestInvoiceUndeliverable:

    def test_first_send_reverts_to_draft(self, context, invoices, _invoice):
        """The job that sent the invoice takes it back to DRAFT."""
        invoices.get_invoice.return_value = _invoice.model_copy(update={"status": InvoiceStatus.SENT})

        invoice_undeliverable(context, INVOICE_PAYLOAD)

        invoices.revert_to_draft.assert_called_once_with(1, 7)

    def test_failed_resend_keeps_sent(self, context, invoices, _invoice):
        """Re-delivering an invoice the client already received changes nothing."""
        invoices.get_invoice.return_value = _invoice.model_copy(update={"status": InvoiceStatus.SENT})

        invoice_undeliverable(context, {**INVOICE_PAYLOAD, "transitioned": False})

        invoices.revert_to_draft.assert_not_called()

    def test_viewed_invoice_kept(self, context, invoices, _invoice):
        """An invoice the client already viewed is not reverted."""
        invoices.get_invoice.return_value = _invoice.model_copy(update={"status": InvoiceStatus.VIEWED})

        invoice_undeliverable(context, INVOICE_PAYLOAD)

        invoices.revert_to_draft.assert_not_called()


class TestDeliveryTask:
    """Retry policy and dead-lettering."""

    def test_retry_configuration(self):
        task = DeliveryTask()

        assert task.autoretry_for == (Exception,)
        assert task.retry_backoff is True
        assert task.retry_backoff_max == 600
        assert task.retry_jitter is True

    def test_configure_worker_sets_retry_budget(self, context, monkeypatch):
        """job_max_attempts counts the first attempt."""
        monkeypatch.setattr(deliver_invoice_task, "max_retries", DeliveryTask.max_retries)
        monkeypatch.setattr(deliver_receipt_task, "max_retries", DeliveryTask.max_retries)

        configure_worker(context, BillingConfig(job_max_attempts=5))

        assert get_context() is context
        assert deliver_invoice_task.max_retries == 4
        assert deliver_receipt_task.max_retries == 4

    def test_missing_context(self, monkeypatch):
        monkeypatch.setattr(worker_module, "_context", None)

        with pytest.raises(RuntimeError):
            get_context()

    def test_last_failure_dead_letters(self):
        task = DeliveryTask()
        task.name = "invoicing.deliver_receipt"
        task.max_retries = 2
        payload = {"workspace_id": 1, "payment_id": 40}

        with exhausted(task), patch.object(celery_app, "send_task") as send_task:
            task.on_failure(EmailGatewayError("down"), "task-1", (payload,), {}, None)

        send_task.assert_called_once()
        assert send_task.call_args.args[0] == STORE_DEAD_LETTER_TASK
        assert send_task.call_args.kwargs["queue"] == DEAD_LETTER_QUEUE
        message = send_task.call_args.kwargs["args"][0]
        assert message["task_id"] == "task-1"
        assert message["task_name"] == "invoicing.deliver_receipt"
        assert message["args"] == [payload]
        assert message["exception"]["type"] == "EmailGatewayError"

    def test_earlier_failure_not_dead_lettered(self):
        task = DeliveryTask()
        task.max_retries = 2

        with exhausted(task, retries=1), patch.object(celery_app, "send_task") as send_task:
            task.on_failure(EmailGatewayError("down"), "task-1", ({},), {}, None)

        send_task.assert_not_called()

    def test_exhausted_invoice_reverts_first_send(self, context, invoices, _invoice):
        invoices.get_invoice.return_value = _invoice.model_copy(update={"status": InvoiceStatus.SENT})
        task = InvoiceDeliveryTask()
        task.max_retries = 2

        with exhausted(task), patch.object(celery_app, "send_task"):
            task.on_failure(EmailGatewayError("down"), "task-1", (INVOICE_PAYLOAD,), {}, None)

        invoices.revert_to_draft.assert_called_once_with(1, 7)

    def test_exhausted_resend_leaves_invoice_sent(self, context, invoices, _invoice):
        invoices.get_invoice.return_value = _invoice.model_copy(update={"status": InvoiceStatus.SENT})
        task = InvoiceDeliveryTask()
        task.max_retries = 2

        with exhausted(task), patch.object(celery_app, "send_task"):
            task.on_failure(
                EmailGatewayError("down"), "task-1", ({**INVOICE_PAYLOAD, "transitioned": False},), {}, None
            )

        invoices.revert_to_draft.assert_not_called()

    def test_broker_down_still_runs_fallback(self, context, invoices, _invoice):
        """A dead letter that cannot be published does not skip the DRAFT revert."""
        invoices.get_invoice.return_value = _invoice.model_copy(update={"status": InvoiceStatus.SENT})
        task = InvoiceDeliveryTask()
        task.max_retries = 2

        with exhausted(task), patch.object(celery_app, "send_task", side_effect=ConnectionError("no broker")):
            task.on_failure(EmailGatewayError("down"), "task-1", (INVOICE_PAYLOAD,), {}, None)

        invoices.revert_to_draft.assert_called_once_with(1, 7)


class TestTasks:

    def test_invoice_task_delivers(self, context, email):
        deliver_invoice_task(INVOICE_PAYLOAD)

        assert email.send.call_args.args[0].to == "jane@doe.test"

    def test_deleted_invoice_dropped(self, context, invoices, email):
        """A job whose invoice is gone finishes without retrying."""
        invoices.get.side_effect = NotFoundError("Invoice", 7)

        deliver_invoice_task(INVOICE_PAYLOAD)

        email.send.assert_not_called()

    def test_deleted_payment_dropped(self, context, payments, email):
        payments.receipt_document.side_effect = NotFoundError("Payment", 40)

        deliver_receipt_task({"workspace_id": 1, "payment_id": 40, "email": "x@y.test"})

        email.send.assert_not_called()

    def test_mark_overdue(self, context, invoices):
        invoices.mark_overdue_invoices.return_value = 3

        assert mark_overdue_task() == 3
