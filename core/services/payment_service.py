"""
Payment ledger service.

Payments are the only thing that moves an invoice's balance. Each write locks
the invoice row, changes the ledger, and recomputes the invoice in the same
transaction, so the balance always equals total minus active payments.
"""

import logging
from typing import Any

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.documents import build_receipt_document
from core.errors import InvalidTransitionError, NotFoundError
from core.event_bus import EventBus
from core.events import PaymentRecorded
from core.models import (
    Invoice, Payment, PaymentCreate, PaymentListQuery, PaymentPage, PaymentSummary, PaymentUpdate,
)
from core.repository import page_offset
from core.services.invoice_service import InvoiceService
from utils.money import ZERO
from utils.timezone import now_utc, utc_day_range

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {"amount", "payment_method", "transaction_id", "details", "paid_at"}


class PaymentService:
    """Service for payment operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        invoice_service: InvoiceService,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.invoices = invoice_service

    def _lock_payment(self, tx, invoice: Invoice, payment_id: int) -> Payment:
        row = tx.execute_single(
            """
            SELECT * FROM payments
            WHERE id = %s AND invoice_id = %s AND workspace_id = %s AND deleted_at IS NULL
            FOR UPDATE
            """,
            (payment_id, invoice.id, invoice.workspace_id)
        )
        if row is None:
            raise NotFoundError("Payment", payment_id)
        return Payment.model_validate(row)

    def add(self, workspace_id: int, invoice_sequence: int, data: PaymentCreate) -> Payment:
        """
        Record a payment and recompute the invoice.

        Overpayment is allowed; the balance goes negative and the invoice is
        PAID.

        Raises:
            NotFoundError: Invoice not in this workspace
            InvalidTransitionError: Invoice has no items or nothing left to pay
        """
        with self.postgres.transaction() as tx:
            invoice = self.invoices.lock(tx, workspace_id, invoice_sequence)

            if self.invoices.item_count(tx, invoice.id) == 0:
                raise InvalidTransitionError(
                    "Cannot record a payment on an invoice without items",
                    code="INVOICE_HAS_NO_ITEMS",
                )
            if invoice.total <= ZERO:
                raise InvalidTransitionError(
                    "Invoice total is zero; nothing is owed",
                    code="INVOICE_NOTHING_OWED",
                )
            if invoice.balance <= ZERO:
                raise InvalidTransitionError(
                    "Invoice has no outstanding balance",
                    code="INVOICE_ALREADY_PAID",
                )

            row = tx.execute_returning(
                """
                INSERT INTO payments (
                    workspace_id, invoice_id, amount, payment_method, transaction_id, details, paid_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    workspace_id, invoice.id, data.amount, data.payment_method,
                    data.transaction_id, data.details, data.paid_at or now_utc(),
                )
            )[0]
            payment = Payment.model_validate(row)
            updated = self.invoices.recompute(tx, invoice)

            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="payment",
                entity_id=payment.id,
                action=AuditAction.CREATE,
                changes={"created": payment.model_dump(mode="json")},
            )

        logger.info(
            f"Payment {payment.id} of {payment.amount} recorded on invoice {invoice.id} "
            f"(balance {updated.balance})"
        )
        self.event_bus.publish(PaymentRecorded.create(
            payment=payment,
            invoice=updated,
            send_receipt=data.send_receipt,
            receipt_email=data.receipt_email,
            receipt_subject=data.receipt_subject,
            receipt_message=data.receipt_message,
        ))
        self.invoices.publish_status_change(invoice, updated)
        return payment

    def update(
        self, workspace_id: int, invoice_sequence: int, payment_id: int, data: PaymentUpdate
    ) -> Payment:
        """
        Correct a payment and recompute the invoice.

        Lowering the amount can reopen a PAID invoice.
        """
        updates = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if k in _UPDATABLE_COLUMNS and (v is not None or k in {"transaction_id", "details"})
        }

        with self.postgres.transaction() as tx:
            invoice = self.invoices.lock(tx, workspace_id, invoice_sequence)
            current = self._lock_payment(tx, invoice, payment_id)
            if not updates:
                return current

            set_parts = [f"{field} = %s" for field in updates]
            row = tx.execute_returning(
                f"""
                UPDATE payments
                SET {', '.join(set_parts)}, updated_at = now()
                WHERE id = %s
                RETURNING *
                """,
                (*updates.values(), current.id)
            )[0]
            payment = Payment.model_validate(row)
            updated = self.invoices.recompute(tx, invoice)

            changes = compute_changes(current, payment)
            if changes:
                self.audit.log_change(
                    tx,
                    workspace_id=workspace_id,
                    entity_type="payment",
                    entity_id=current.id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                )

        self.invoices.publish_status_change(invoice, updated)
        return payment

    def delete(self, workspace_id: int, invoice_sequence: int, payment_id: int) -> Invoice:
        """
        Soft delete a payment and recompute the invoice.

        Returns:
            The invoice after recomputation (possibly reopened)
        """
        with self.postgres.transaction() as tx:
            invoice = self.invoices.lock(tx, workspace_id, invoice_sequence)
            current = self._lock_payment(tx, invoice, payment_id)

            tx.execute(
                "UPDATE payments SET deleted_at = now(), updated_at = now() WHERE id = %s",
                (current.id,)
            )
            updated = self.invoices.recompute(tx, invoice)

            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="payment",
                entity_id=current.id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
            )

        logger.info(f"Payment {current.id} removed from invoice {invoice.id} (balance {updated.balance})")
        return updated

    def get(self, workspace_id: int, invoice_sequence: int, payment_id: int) -> Payment:
        """Get one active payment of an invoice."""
        invoice = self.invoices.get_invoice(workspace_id, invoice_sequence)
        row = self.postgres.execute_single(
            """
            SELECT * FROM payments
            WHERE id = %s AND invoice_id = %s AND workspace_id = %s AND deleted_at IS NULL
            """,
            (payment_id, invoice.id, workspace_id)
        )
        if row is None:
            raise NotFoundError("Payment", payment_id)
        return Payment.model_validate(row)

    def find(self, workspace_id: int, payment_id: int) -> PaymentSummary:
        """
        Get an active payment by id across the workspace.

        Raises:
            NotFoundError: If missing, deleted, or in another workspace
        """
        row = self.postgres.execute_single(
            """
            SELECT p.*, i.sequence AS invoice_sequence, i.invoice_number,
                   c.name AS client_name, i.business_id
            FROM payments p
            JOIN invoices i ON i.id = p.invoice_id
            JOIN clients c ON c.id = i.client_id
            WHERE p.id = %s AND p.workspace_id = %s
              AND p.deleted_at IS NULL AND i.deleted_at IS NULL
            """,
            (payment_id, workspace_id)
        )
        if row is None:
            raise NotFoundError("Payment", payment_id)
        return PaymentSummary.model_validate(row)

    def receipt_document(self, workspace_id: int, payment_id: int) -> dict[str, Any]:
        """Payload the PDF renderer turns into a payment receipt."""
        payment = self.find(workspace_id, payment_id)
        invoice = self.invoices.get(workspace_id, payment.invoice_sequence)
        return build_receipt_document(invoice, payment)

    def list_for_invoice(self, workspace_id: int, invoice_sequence: int) -> list[Payment]:
        """Active payments of an invoice, oldest first."""
        invoice = self.invoices.get_invoice(workspace_id, invoice_sequence)
        rows = self.postgres.execute(
            """
            SELECT * FROM payments
            WHERE invoice_id = %s AND workspace_id = %s AND deleted_at IS NULL
            ORDER BY paid_at ASC, id ASC
            """,
            (invoice.id, workspace_id)
        )
        return [Payment.model_validate(row) for row in rows]

    def list(self, workspace_id: int, query: PaymentListQuery) -> PaymentPage:
        """
        Workspace-wide payment history, newest first.

        Date filters are inclusive UTC days. total_amount sums the whole
        filtered set, not just the page.
        """
        clauses = ["p.workspace_id = %s", "p.deleted_at IS NULL", "i.deleted_at IS NULL"]
        params: list[Any] = [workspace_id]
        if query.business_id is not None:
            clauses.append("i.business_id = %s")
            params.append(query.business_id)
        paid_from, paid_before = utc_day_range(query.date_from, query.date_to)
        if paid_from is not None:
            clauses.append("p.paid_at >= %s")
            params.append(paid_from)
        if paid_before is not None:
            clauses.append("p.paid_at < %s")
            params.append(paid_before)
        if query.search:
            clauses.append(
                "(i.invoice_number ILIKE %s OR c.name ILIKE %s OR p.payment_method ILIKE %s OR p.transaction_id ILIKE %s)"
            )
            params.extend([f"%{query.search}%"] * 4)

        from_clause = f"""
            FROM payments p
            JOIN invoices i ON i.id = p.invoice_id
            JOIN clients c ON c.id = i.client_id
            WHERE {' AND '.join(clauses)}
        """
        totals = self.postgres.execute_single(
            f"SELECT COUNT(*) AS count, COALESCE(SUM(p.amount), 0) AS amount {from_clause}",
            tuple(params)
        )
        rows = self.postgres.execute(
            f"""
            SELECT p.*, i.sequence AS invoice_sequence, i.invoice_number,
                   c.name AS client_name, i.business_id
            {from_clause}
            ORDER BY p.paid_at DESC, p.id DESC
            LIMIT %s OFFSET %s
            """,
            (*params, query.limit, page_offset(query.page, query.limit))
        )

        return PaymentPage(
            items=[PaymentSummary.model_validate(row) for row in rows],
            page=query.page,
            limit=query.limit,
            total_count=totals["count"] if totals else 0,
            total_amount=totals["amount"] if totals else ZERO,
        )
