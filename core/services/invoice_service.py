"""
Invoice service: creation, editing, lifecycle actions and recomputation.

Every mutation runs in one transaction that ends with recompute(), so an
invoice is never observable with item totals and invoice totals out of step.
Events are published only after the transaction has committed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from clients.postgres_client import PostgresClient
from core import lifecycle
from core.audit import AuditAction, AuditEntry, AuditLogger, compute_changes
from core.calculator import (
    PricedLine, compute_invoice_totals, compute_item_total, normalize_item_tax, priced_line,
)
from core.config import BillingConfig
from core.documents import build_invoice_document
from core.errors import ConflictError, EntityValidationError, NotFoundError
from core.event_bus import EventBus
from core.events import InvoiceCreated, InvoicePaid, InvoiceSent
from core.lifecycle import InvoiceStatus, LifecycleState, OPEN_STATUSES, OVERDUE_CANDIDATES
from core.models import (
    Business, Client, Invoice, InvoiceCreate, InvoiceDetail, InvoiceItem, InvoiceItemCreate,
    InvoiceListQuery, InvoicePage, InvoiceStats, InvoiceSummary, InvoiceUpdate, Payment,
    SendInvoiceRequest, TaxMode, TotalTax, discount_columns, tax_policy_columns,
)
from core.numbering import suggest_invoice_number
from core.repository import page_offset, require_scoped
from core.sequence import SequenceKind, next_sequence
from core.services.catalog_service import CatalogService
from core.services.client_service import ClientService
from utils.money import ZERO
from utils.timezone import now_utc, today_utc

logger = logging.getLogger(__name__)

# Plain columns copied from InvoiceUpdate as-is
_UPDATABLE_COLUMNS = {
    "invoice_number", "issue_date", "due_date", "currency", "purchase_order",
    "client_email", "client_phone", "client_address", "notes", "terms",
}
_REQUIRED_COLUMNS = {"invoice_number", "issue_date", "currency"}


class InvoiceService:
    """Service for invoice operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        client_service: ClientService,
        catalog_service: CatalogService,
        config: BillingConfig | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.client_service = client_service
        self.catalog_service = catalog_service
        self.config = config or BillingConfig()

    # =========================================================================
    # TRANSACTION BUILDING BLOCKS (shared with item and payment services)
    # =========================================================================

    def lock(self, tx, workspace_id: int, sequence: int) -> Invoice:
        """
        Load and row-lock a live invoice by sequence.

        Raises:
            NotFoundError: If missing, deleted, or in another workspace
        """
        return Invoice.model_validate(
            require_scoped(tx, "invoices", workspace_id, sequence, for_update=True)
        )

    def item_count(self, tx, invoice_id: int) -> int:
        return tx.execute_scalar(
            "SELECT COUNT(*) FROM invoice_items WHERE invoice_id = %s AND deleted_at IS NULL",
            (invoice_id,)
        ) or 0

    def payment_count(self, tx, invoice_id: int) -> int:
        return tx.execute_scalar(
            "SELECT COUNT(*) FROM payments WHERE invoice_id = %s AND deleted_at IS NULL",
            (invoice_id,)
        ) or 0

    def resolve_catalog_item(self, tx, invoice: Invoice, catalog_item_id: int) -> int:
        """
        Validate an item's catalog reference against the invoice's business.

        Raises:
            EntityValidationError: Unknown item, other workspace, or other business
        """
        row = tx.execute_single(
            """
            SELECT id FROM catalog_items
            WHERE id = %s AND workspace_id = %s AND business_id = %s AND deleted_at IS NULL
            """,
            (catalog_item_id, invoice.workspace_id, invoice.business_id)
        )
        if row is None:
            raise EntityValidationError(
                f"Catalog item {catalog_item_id} does not belong to the invoice's business"
            )
        return row["id"]

    def insert_item(self, tx, invoice: Invoice, data: InvoiceItemCreate) -> InvoiceItem:
        """
        Insert one item with its tax fields normalised to the invoice policy.

        Does not recompute the invoice; callers do that once at the end.
        """
        catalog_item_id = None
        if data.catalog_item_id is not None:
            catalog_item_id = self.resolve_catalog_item(tx, invoice, data.catalog_item_id)
        elif data.save_to_catalog:
            catalog_item_id = self.catalog_service.find_or_create_for_item(
                tx, invoice.workspace_id, invoice.business_id, data
            ).id

        tax_policy = invoice.tax_policy
        tax, vat_enabled = normalize_item_tax(tax_policy, data.tax, data.vat_enabled)
        discount_type, discount = discount_columns(data.discount)
        total = compute_item_total(
            PricedLine(
                quantity=data.quantity,
                unit_price=data.unit_price,
                discount=data.discount,
                tax=tax,
                vat_enabled=vat_enabled,
            ),
            tax_policy,
        )

        row = tx.execute_returning(
            """
            INSERT INTO invoice_items (
                invoice_id, catalog_item_id, name, description,
                quantity, quantity_unit, unit_price,
                discount, discount_type, tax, vat_enabled, total
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s, %s, %s
            )
            RETURNING *
            """,
            (
                invoice.id, catalog_item_id, data.name, data.description,
                data.quantity, data.quantity_unit.value, data.unit_price,
                discount, discount_type, tax, vat_enabled, total,
            )
        )[0]
        return InvoiceItem.model_validate(row)

    def recompute(self, tx, invoice: Invoice, now: datetime | None = None) -> Invoice:
        """
        Recompute item totals, invoice totals, balance and payment status.

        Reads live items and active payments inside the transaction, runs the
        pure calculator and lifecycle.settle(), and persists the result.
        Running it twice on the same state changes nothing.

        Returns:
            The invoice as persisted after recomputation
        """
        now = now or now_utc()
        tax_policy = invoice.tax_policy

        item_rows = tx.execute(
            "SELECT * FROM invoice_items WHERE invoice_id = %s AND deleted_at IS NULL ORDER BY id",
            (invoice.id,)
        )
        items = [InvoiceItem.model_validate(row) for row in item_rows]
        lines = [priced_line(item) for item in items]

        for item, line in zip(items, lines):
            expected = compute_item_total(line, tax_policy)
            if item.total != expected:
                tx.execute(
                    "UPDATE invoice_items SET total = %s, updated_at = %s WHERE id = %s",
                    (expected, now, item.id)
                )

        payments = tx.execute(
            "SELECT amount FROM payments WHERE invoice_id = %s AND deleted_at IS NULL",
            (invoice.id,)
        )
        totals = compute_invoice_totals(
            lines, invoice.discount_policy, tax_policy, [p["amount"] for p in payments]
        )
        state = lifecycle.settle(invoice.lifecycle_state, totals.total, totals.balance, now)

        row = tx.execute_returning(
            """
            UPDATE invoices
            SET subtotal = %s, total_tax = %s, total = %s, balance = %s,
                status = %s, paid_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (
                totals.subtotal, totals.total_tax, totals.total, totals.balance,
                state.status.value, state.paid_at, now, invoice.id,
            )
        )[0]
        return Invoice.model_validate(row)

    def publish_status_change(self, before: Invoice, after: Invoice) -> None:
        """Publish InvoicePaid when a committed change settled the invoice."""
        if after.status == InvoiceStatus.PAID and before.status != InvoiceStatus.PAID:
            logger.info(f"Invoice {after.id} paid (workspace {after.workspace_id})")
            self.event_bus.publish(InvoicePaid.create(invoice=after))

    def _persist_state(self, tx, invoice: Invoice, state: LifecycleState) -> Invoice:
        row = tx.execute_returning(
            """
            UPDATE invoices
            SET status = %s, sent_at = %s, viewed_at = %s, paid_at = %s, updated_at = now()
            WHERE id = %s
            RETURNING *
            """,
            (state.status.value, state.sent_at, state.viewed_at, state.paid_at, invoice.id)
        )[0]
        updated = Invoice.model_validate(row)

        changes = compute_changes(
            invoice.model_dump(mode="json", include={"status", "sent_at", "viewed_at", "paid_at"}),
            updated.model_dump(mode="json", include={"status", "sent_at", "viewed_at", "paid_at"}),
        )
        if changes:
            self.audit.log_change(
                tx,
                workspace_id=invoice.workspace_id,
                entity_type="invoice",
                entity_id=invoice.id,
                action=AuditAction.UPDATE,
                changes=changes,
            )
        return updated

    def _ensure_number_available(
        self, tx, workspace_id: int, business_id: int, invoice_number: str, exclude_id: int | None = None
    ) -> None:
        taken = tx.execute_scalar(
            """
            SELECT EXISTS (
                SELECT 1 FROM invoices
                WHERE workspace_id = %s AND business_id = %s AND invoice_number = %s
                  AND deleted_at IS NULL AND id IS DISTINCT FROM %s
            )
            """,
            (workspace_id, business_id, invoice_number, exclude_id)
        )
        if taken:
            raise ConflictError(
                f"Invoice number {invoice_number} is already used by this business",
                code="INVOICE_NUMBER_TAKEN",
            )

    def _suggest_number(self, db, workspace_id: int, business_id: int | None) -> str:
        prefix = db.execute_scalar(
            "SELECT invoice_number_prefix FROM workspaces WHERE id = %s",
            (workspace_id,)
        ) or "INV-"

        params: list = [workspace_id]
        business_clause = ""
        if business_id is not None:
            business_clause = "AND business_id = %s"
            params.append(business_id)

        last = db.execute_scalar(
            f"""
            SELECT invoice_number FROM invoices
            WHERE workspace_id = %s {business_clause} AND deleted_at IS NULL
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            tuple(params)
        )
        return suggest_invoice_number(last, prefix, self.config.invoice_number_width)

    # =========================================================================
    # READS
    # =========================================================================

    def get_invoice(self, workspace_id: int, sequence: int) -> Invoice:
        """
        Get the bare invoice by sequence.

        Raises:
            NotFoundError: If missing, deleted, or in another workspace
        """
        return Invoice.model_validate(require_scoped(self.postgres, "invoices", workspace_id, sequence))

    def get(self, workspace_id: int, sequence: int) -> InvoiceDetail:
        """
        Get an invoice with its items, payments, client and business.

        Raises:
            NotFoundError: If missing, deleted, or in another workspace
        """
        invoice = self.get_invoice(workspace_id, sequence)

        items = self.postgres.execute(
            "SELECT * FROM invoice_items WHERE invoice_id = %s AND deleted_at IS NULL ORDER BY id",
            (invoice.id,)
        )
        payments = self.postgres.execute(
            """
            SELECT * FROM payments
            WHERE invoice_id = %s AND deleted_at IS NULL
            ORDER BY paid_at ASC, id ASC
            """,
            (invoice.id,)
        )
        # Counterparts are fetched even if soft-deleted later; the invoice still shows them
        client = self.postgres.execute_single(
            "SELECT * FROM clients WHERE id = %s AND workspace_id = %s",
            (invoice.client_id, workspace_id)
        )
        business = self.postgres.execute_single(
            "SELECT * FROM businesses WHERE id = %s AND workspace_id = %s",
            (invoice.business_id, workspace_id)
        )

        return InvoiceDetail(
            **invoice.model_dump(),
            items=[InvoiceItem.model_validate(row) for row in items],
            payments=[Payment.model_validate(row) for row in payments],
            client=Client.model_validate(client),
            business=Business.model_validate(business),
        )

    def list(self, workspace_id: int, query: InvoiceListQuery) -> InvoicePage:
        """
        Page through invoices, newest sequence first, with workspace stats.

        Search matches the invoice number, client name or business name.
        """
        clauses = ["i.workspace_id = %s", "i.deleted_at IS NULL"]
        params: list[Any] = [workspace_id]
        if query.status is not None:
            clauses.append("i.status = %s")
            params.append(query.status.value)
        if query.client_id is not None:
            clauses.append("i.client_id = %s")
            params.append(query.client_id)
        if query.business_id is not None:
            clauses.append("i.business_id = %s")
            params.append(query.business_id)
        if query.search:
            clauses.append(
                "(i.invoice_number ILIKE %s OR c.name ILIKE %s OR c.business_name ILIKE %s OR b.name ILIKE %s)"
            )
            params.extend([f"%{query.search}%"] * 4)

        from_clause = f"""
            FROM invoices i
            JOIN clients c ON c.id = i.client_id
            JOIN businesses b ON b.id = i.business_id
            WHERE {' AND '.join(clauses)}
        """
        total_count = self.postgres.execute_scalar(f"SELECT COUNT(*) {from_clause}", tuple(params))
        rows = self.postgres.execute(
            f"""
            SELECT i.*, c.name AS client_name, b.name AS business_name
            {from_clause}
            ORDER BY i.sequence DESC
            LIMIT %s OFFSET %s
            """,
            (*params, query.limit, page_offset(query.page, query.limit))
        )

        return InvoicePage(
            items=[InvoiceSummary.model_validate(row) for row in rows],
            page=query.page,
            limit=query.limit,
            total_count=total_count or 0,
            stats=self.stats(workspace_id),
        )

    def stats(self, workspace_id: int) -> InvoiceStats:
        """Counts by status, payments received, total invoiced and outstanding."""
        rows = self.postgres.execute(
            """
            SELECT status, COUNT(*) AS count,
                   COALESCE(SUM(total), 0) AS total,
                   COALESCE(SUM(balance), 0) AS balance
            FROM invoices
            WHERE workspace_id = %s AND deleted_at IS NULL
            GROUP BY status
            """,
            (workspace_id,)
        )
        revenue = self.postgres.execute_scalar(
            """
            SELECT COALESCE(SUM(p.amount), 0)
            FROM payments p
            JOIN invoices i ON i.id = p.invoice_id
            WHERE p.workspace_id = %s AND p.deleted_at IS NULL AND i.deleted_at IS NULL
            """,
            (workspace_id,)
        )

        by_status = {status: 0 for status in InvoiceStatus}
        total_invoiced = ZERO
        outstanding = ZERO
        for row in rows:
            status = InvoiceStatus(row["status"])
            by_status[status] = row["count"]
            total_invoiced += row["total"]
            if status in OPEN_STATUSES:
                outstanding += row["balance"]

        return InvoiceStats(
            total=sum(by_status.values()),
            by_status=by_status,
            revenue=revenue or ZERO,
            total_invoiced=total_invoiced,
            outstanding=outstanding,
        )

    def next_number(self, workspace_id: int, business_id: int | None = None) -> str:
        """Suggested number for the next invoice (display only, not reserved)."""
        return self._suggest_number(self.postgres, workspace_id, business_id)

    def document(self, workspace_id: int, sequence: int) -> dict[str, Any]:
        """Payload the PDF renderer turns into the invoice document."""
        return build_invoice_document(self.get(workspace_id, sequence))

    def history(self, workspace_id: int, sequence: int) -> list[AuditEntry]:
        """Audit entries of the invoice itself, oldest first."""
        invoice = self.get_invoice(workspace_id, sequence)
        return self.audit.history(workspace_id, "invoice", invoice.id)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create(self, workspace_id: int, data: InvoiceCreate) -> InvoiceDetail:
        """
        Create a DRAFT invoice, optionally with items and a new client.

        Tax policy, notes and terms default from the business; contact fields
        default from the client.

        Raises:
            NotFoundError: Business or client not in this workspace
            ConflictError: Invoice number already used by the business
            EntityValidationError: Catalog reference from another business
        """
        with self.postgres.transaction() as tx:
            # Serialises concurrent creations in this workspace
            sequence = next_sequence(tx, workspace_id, SequenceKind.INVOICE)

            business = Business.model_validate(
                require_scoped(tx, "businesses", workspace_id, data.business_id, column="id")
            )
            if data.new_client is not None:
                client = self.client_service.create_in(tx, workspace_id, data.new_client)
            else:
                client = Client.model_validate(
                    require_scoped(tx, "clients", workspace_id, data.client_id, column="id")
                )

            invoice_number = data.invoice_number or self._suggest_number(tx, workspace_id, business.id)
            self._ensure_number_available(tx, workspace_id, business.id, invoice_number)

            tax_policy = data.tax if data.tax is not None else business.default_tax_policy
            tax_mode, tax_name, tax_percentage = tax_policy_columns(tax_policy)
            discount_type, discount = discount_columns(data.discount)

            row = tx.execute_returning(
                """
                INSERT INTO invoices (
                    workspace_id, business_id, client_id, sequence, invoice_number, status,
                    issue_date, due_date, currency, purchase_order,
                    client_email, client_phone, client_address, notes, terms,
                    discount, discount_type, tax_mode, tax_name, tax_percentage,
                    subtotal, total_tax, total, balance
                ) VALUES (
                    %s, %s, %s, %s, %s, %s,
                    %s, %s, %s, %s,
                    %s, %s, %s, %s, %s,
                    %s, %s, %s, %s, %s,
                    0, 0, 0, 0
                )
                RETURNING *
                """,
                (
                    workspace_id, business.id, client.id, sequence, invoice_number,
                    InvoiceStatus.DRAFT.value,
                    data.issue_date, data.due_date, data.currency.upper(), data.purchase_order,
                    data.client_email or client.email,
                    data.client_phone or client.phone,
                    data.client_address or client.address,
                    data.notes if data.notes is not None else business.default_notes,
                    data.terms if data.terms is not None else business.default_terms,
                    discount, discount_type, tax_mode, tax_name, tax_percentage,
                )
            )[0]
            invoice = Invoice.model_validate(row)

            for item in data.items:
                self.insert_item(tx, invoice, item)

            invoice = self.recompute(tx, invoice)

            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="invoice",
                entity_id=invoice.id,
                action=AuditAction.CREATE,
                changes={"created": invoice.model_dump(mode="json")},
            )

        logger.info(f"Invoice {invoice.id} (#{sequence}) created in workspace {workspace_id}")
        self.event_bus.publish(InvoiceCreated.create(invoice=invoice))
        return self.get(workspace_id, sequence)

    def update(self, workspace_id: int, sequence: int, data: InvoiceUpdate) -> InvoiceDetail:
        """
        Update a DRAFT invoice and recompute it.

        Switching tax mode normalises every item's tax fields: NONE clears
        them, BY_TOTAL turns VAT on for all items, BY_PRODUCT keeps item
        percentages.

        Raises:
            InvalidTransitionError: Invoice is no longer a draft
            NotFoundError: Invoice or new client not in this workspace
            ConflictError: New invoice number already used
            EntityValidationError: Due date before issue date
        """
        fields = data.model_dump(exclude_unset=True)

        with self.postgres.transaction() as tx:
            current = self.lock(tx, workspace_id, sequence)
            lifecycle.ensure_editable(current.status)

            updates: dict[str, Any] = {}
            for field in _UPDATABLE_COLUMNS & fields.keys():
                value = fields[field]
                if value is None and field in _REQUIRED_COLUMNS:
                    continue
                updates[field] = value.upper() if field == "currency" else value

            if fields.get("client_id") is not None:
                client = require_scoped(tx, "clients", workspace_id, fields["client_id"], column="id")
                updates["client_id"] = client["id"]

            if "invoice_number" in updates and updates["invoice_number"] != current.invoice_number:
                self._ensure_number_available(
                    tx, workspace_id, current.business_id, updates["invoice_number"], exclude_id=current.id
                )

            issue_date: date = updates.get("issue_date", current.issue_date)
            due_date: date | None = updates.get("due_date", current.due_date)
            if due_date is not None and due_date < issue_date:
                raise EntityValidationError("due_date cannot be before issue_date")

            if data.discount is not None:
                updates["discount_type"], updates["discount"] = discount_columns(data.discount)

            new_policy = None
            if data.tax is not None:
                new_policy = data.tax
                updates["tax_mode"], updates["tax_name"], updates["tax_percentage"] = tax_policy_columns(new_policy)

            if updates:
                set_parts = [f"{field} = %s" for field in updates]
                row = tx.execute_returning(
                    f"""
                    UPDATE invoices
                    SET {', '.join(set_parts)}, updated_at = now()
                    WHERE id = %s
                    RETURNING *
                    """,
                    (*updates.values(), current.id)
                )[0]
                invoice = Invoice.model_validate(row)
            else:
                invoice = current

            if new_policy is not None and TaxMode(new_policy.mode) != current.tax_mode:
                self._normalize_item_taxes(tx, invoice, entering_total=isinstance(new_policy, TotalTax))

            updated = self.recompute(tx, invoice)

            changes = compute_changes(current, updated)
            if changes:
                self.audit.log_change(
                    tx,
                    workspace_id=workspace_id,
                    entity_type="invoice",
                    entity_id=current.id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                )

        self.publish_status_change(current, updated)
        return self.get(workspace_id, sequence)

    def _normalize_item_taxes(self, tx, invoice: Invoice, entering_total: bool) -> None:
        rows = tx.execute(
            "SELECT id, tax, vat_enabled FROM invoice_items WHERE invoice_id = %s AND deleted_at IS NULL",
            (invoice.id,)
        )
        policy = invoice.tax_policy
        for row in rows:
            vat_enabled = True if entering_total else row["vat_enabled"]
            tax, vat_enabled = normalize_item_tax(policy, row["tax"], vat_enabled)
            tx.execute(
                "UPDATE invoice_items SET tax = %s, vat_enabled = %s, updated_at = now() WHERE id = %s",
                (tax, vat_enabled, row["id"])
            )

    def delete(self, workspace_id: int, sequence: int) -> None:
        """
        Soft delete a DRAFT invoice without payments, with its items.

        Raises:
            InvalidTransitionError: Not a draft, or payments recorded
        """
        with self.postgres.transaction() as tx:
            current = self.lock(tx, workspace_id, sequence)
            lifecycle.ensure_deletable(current.status, self.payment_count(tx, current.id))

            tx.execute(
                "UPDATE invoice_items SET deleted_at = now(), updated_at = now() WHERE invoice_id = %s AND deleted_at IS NULL",
                (current.id,)
            )
            tx.execute(
                "UPDATE invoices SET deleted_at = now(), updated_at = now() WHERE id = %s",
                (current.id,)
            )
            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="invoice",
                entity_id=current.id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
            )

        logger.info(f"Invoice {current.id} deleted in workspace {workspace_id}")

    def send(self, workspace_id: int, sequence: int, request: SendInvoiceRequest | None = None) -> Invoice:
        """
        Mark the invoice SENT and hand email delivery to the worker.

        Sending an already-sent invoice keeps its status; with an email
        request it is delivered again.

        Raises:
            InvalidTransitionError: Invoice has no items
        """
        request = request or SendInvoiceRequest()

        with self.postgres.transaction() as tx:
            current = self.lock(tx, workspace_id, sequence)
            state = lifecycle.send(current.lifecycle_state, self.item_count(tx, current.id), now_utc())
            updated = current if state == current.lifecycle_state else self._persist_state(tx, current, state)

        transitioned = updated is not current
        if transitioned:
            logger.info(f"Invoice {current.id} sent (workspace {workspace_id})")
        if transitioned or request.email:
            self.event_bus.publish(InvoiceSent.create(
                invoice=updated,
                email=request.email,
                subject=request.subject,
                message=request.message,
                transitioned=transitioned,
            ))
        return updated

    def revert_to_draft(self, workspace_id: int, sequence: int) -> Invoice:
        """SENT → DRAFT after delivery of the invoice failed for good."""
        with self.postgres.transaction() as tx:
            current = self.lock(tx, workspace_id, sequence)
            state = lifecycle.revert_to_draft(current.lifecycle_state)
            updated = self._persist_state(tx, current, state)

        logger.warning(f"Invoice {current.id} reverted to DRAFT after failed delivery")
        return updated

    def mark_viewed(self, workspace_id: int, sequence: int) -> Invoice:
        """Record the client's view of the invoice."""
        with self.postgres.transaction() as tx:
            current = self.lock(tx, workspace_id, sequence)
            state = lifecycle.mark_viewed(current.lifecycle_state, now_utc())
            if state == current.lifecycle_state:
                return current
            return self._persist_state(tx, current, state)

    def mark_paid(self, workspace_id: int, sequence: int, payment_method: str = "Marked as paid") -> Invoice:
        """
        Explicitly settle the invoice.

        Any outstanding balance is recorded as one settling payment so the
        ledger agrees with the PAID status.

        Raises:
            InvalidTransitionError: Already paid, or no items
        """
        now = now_utc()

        with self.postgres.transaction() as tx:
            current = self.lock(tx, workspace_id, sequence)
            state = lifecycle.mark_paid(current.lifecycle_state, self.item_count(tx, current.id), now)

            if current.balance > 0:
                payment = tx.execute_returning(
                    """
                    INSERT INTO payments (workspace_id, invoice_id, amount, payment_method, paid_at)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING *
                    """,
                    (workspace_id, current.id, current.balance, payment_method, now)
                )[0]
                self.audit.log_change(
                    tx,
                    workspace_id=workspace_id,
                    entity_type="payment",
                    entity_id=payment["id"],
                    action=AuditAction.CREATE,
                    changes={"created": Payment.model_validate(payment).model_dump(mode="json")},
                )

            updated = self.recompute(tx, current, now)
            if updated.status != InvoiceStatus.PAID:
                updated = self._persist_state(tx, updated, state)

        self.publish_status_change(current, updated)
        return updated

    def mark_overdue_invoices(self, today: date | None = None) -> int:
        """
        Sweep every workspace: SENT/VIEWED invoices due before today → OVERDUE.

        Returns:
            Number of invoices marked
        """
        today = today or today_utc()
        candidates = tuple(status.value for status in OVERDUE_CANDIDATES)

        rows = self.postgres.execute_returning(
            """
            UPDATE invoices
            SET status = %s, updated_at = now()
            WHERE status IN %s AND due_date < %s AND deleted_at IS NULL
            RETURNING id
            """,
            (InvoiceStatus.OVERDUE.value, candidates, today)
        )
        if rows:
            logger.info(f"Marked {len(rows)} invoice(s) overdue")
        return len(rows)
