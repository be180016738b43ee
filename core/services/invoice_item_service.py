"""Invoice item service: adding, editing and removing lines on draft invoices."""

import logging

from clients.postgres_client import PostgresClient
from core import lifecycle
from core.audit import AuditLogger, AuditAction, compute_changes
from core.errors import NotFoundError
from core.models import InvoiceDetail, InvoiceItem, InvoiceItemCreate, InvoiceItemUpdate, discount_columns
from core.calculator import normalize_item_tax
from core.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {"name", "description", "quantity", "unit_price"}


class InvoiceItemService:
    """
    Service for invoice item operations.

    Items can only change while their invoice is a DRAFT, and each change
    recomputes the invoice in the same transaction.
    """

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, invoice_service: InvoiceService):
        self.postgres = postgres
        self.audit = audit
        self.invoices = invoice_service

    def _lock_item(self, tx, invoice_id: int, item_id: int) -> InvoiceItem:
        row = tx.execute_single(
            """
            SELECT * FROM invoice_items
            WHERE id = %s AND invoice_id = %s AND deleted_at IS NULL
            FOR UPDATE
            """,
            (item_id, invoice_id)
        )
        if row is None:
            raise NotFoundError("Invoice item", item_id)
        return InvoiceItem.model_validate(row)

    def add(self, workspace_id: int, invoice_sequence: int, data: InvoiceItemCreate) -> InvoiceDetail:
        """
        Add an item to a draft invoice.

        Raises:
            NotFoundError: Invoice not in this workspace
            InvalidTransitionError: Invoice is no longer a draft
            EntityValidationError: Catalog item from another business
        """
        with self.postgres.transaction() as tx:
            invoice = self.invoices.lock(tx, workspace_id, invoice_sequence)
            lifecycle.ensure_editable(invoice.status)

            item = self.invoices.insert_item(tx, invoice, data)
            self.invoices.recompute(tx, invoice)

            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="invoice_item",
                entity_id=item.id,
                action=AuditAction.CREATE,
                changes={"created": item.model_dump(mode="json")},
            )

        return self.invoices.get(workspace_id, invoice_sequence)

    def update(
        self, workspace_id: int, invoice_sequence: int, item_id: int, data: InvoiceItemUpdate
    ) -> InvoiceDetail:
        """
        Update an item of a draft invoice.

        Tax fields are normalised to the invoice's tax policy before saving.

        Raises:
            NotFoundError: Invoice or item not found (or item of another invoice)
            InvalidTransitionError: Invoice is no longer a draft
        """
        fields = data.model_dump(exclude_unset=True)

        with self.postgres.transaction() as tx:
            invoice = self.invoices.lock(tx, workspace_id, invoice_sequence)
            lifecycle.ensure_editable(invoice.status)
            current = self._lock_item(tx, invoice.id, item_id)

            updates = {
                k: v for k, v in fields.items()
                if k in _UPDATABLE_COLUMNS and v is not None
            }
            if "description" in fields:
                updates["description"] = fields["description"]
            if data.quantity_unit is not None:
                updates["quantity_unit"] = data.quantity_unit.value
            if data.discount is not None:
                updates["discount_type"], updates["discount"] = discount_columns(data.discount)
            if data.catalog_item_id is not None:
                updates["catalog_item_id"] = self.invoices.resolve_catalog_item(tx, invoice, data.catalog_item_id)

            tax = data.tax if data.tax is not None else current.tax
            vat_enabled = data.vat_enabled if data.vat_enabled is not None else current.vat_enabled
            updates["tax"], updates["vat_enabled"] = normalize_item_tax(invoice.tax_policy, tax, vat_enabled)

            set_parts = [f"{field} = %s" for field in updates]
            row = tx.execute_returning(
                f"""
                UPDATE invoice_items
                SET {', '.join(set_parts)}, updated_at = now()
                WHERE id = %s
                RETURNING *
                """,
                (*updates.values(), current.id)
            )[0]
            updated = InvoiceItem.model_validate(row)

            # Item total is refreshed by recompute
            self.invoices.recompute(tx, invoice)

            changes = compute_changes(current, updated)
            changes.pop("total", None)
            if changes:
                self.audit.log_change(
                    tx,
                    workspace_id=workspace_id,
                    entity_type="invoice_item",
                    entity_id=current.id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                )

        return self.invoices.get(workspace_id, invoice_sequence)

    def delete(self, workspace_id: int, invoice_sequence: int, item_id: int) -> InvoiceDetail:
        """Soft delete an item of a draft invoice and recompute."""
        with self.postgres.transaction() as tx:
            invoice = self.invoices.lock(tx, workspace_id, invoice_sequence)
            lifecycle.ensure_editable(invoice.status)
            current = self._lock_item(tx, invoice.id, item_id)

            tx.execute(
                "UPDATE invoice_items SET deleted_at = now(), updated_at = now() WHERE id = %s",
                (current.id,)
            )
            self.invoices.recompute(tx, invoice)

            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="invoice_item",
                entity_id=current.id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
            )

        return self.invoices.get(workspace_id, invoice_sequence)
