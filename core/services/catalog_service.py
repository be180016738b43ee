"""
Catalog service for reusable products and services.

Catalog items belong to one business. Once any invoice item references a
catalog item (even a since-deleted invoice item), its business is locked and
it can no longer be deleted.
"""

import logging

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.errors import ConflictError, EntityValidationError
from core.models import CatalogItem, CatalogItemCreate, CatalogItemUpdate
from core.repository import page_offset, require_scoped
from core.sequence import SequenceKind, next_sequence

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {
    "business_id", "name", "description", "unit_price", "quantity_unit",
}


class CatalogService:
    """Service for catalog operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def _is_referenced(self, tx, catalog_item_id: int) -> bool:
        return bool(tx.execute_scalar(
            "SELECT EXISTS (SELECT 1 FROM invoice_items WHERE catalog_item_id = %s)",
            (catalog_item_id,)
        ))

    def create_in(self, tx, workspace_id: int, data: CatalogItemCreate) -> CatalogItem:
        """Create a catalog item inside an open transaction."""
        # Business must be live and ours; reported as a validation problem
        business = tx.execute_single(
            "SELECT id FROM businesses WHERE id = %s AND workspace_id = %s AND deleted_at IS NULL",
            (data.business_id, workspace_id)
        )
        if business is None:
            raise EntityValidationError(f"Business {data.business_id} not found in this workspace")

        sequence = next_sequence(tx, workspace_id, SequenceKind.CATALOG_ITEM)
        row = tx.execute_returning(
            """
            INSERT INTO catalog_items (
                workspace_id, business_id, sequence, name, description, unit_price, quantity_unit
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                workspace_id, data.business_id, sequence, data.name, data.description,
                data.unit_price, data.quantity_unit.value,
            )
        )[0]
        item = CatalogItem.model_validate(row)

        self.audit.log_change(
            tx,
            workspace_id=workspace_id,
            entity_type="catalog_item",
            entity_id=item.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)},
        )
        return item

    def create(self, workspace_id: int, data: CatalogItemCreate) -> CatalogItem:
        """Create a catalog item with the next catalog sequence."""
        with self.postgres.transaction() as tx:
            return self.create_in(tx, workspace_id, data)

    def find_or_create_for_item(self, tx, workspace_id: int, business_id: int, item) -> CatalogItem:
        """
        Catalog entry matching an invoice item by name within the business.

        Creates one from the item's name, description, price and unit when no
        live entry with that name exists.
        """
        row = tx.execute_single(
            """
            SELECT * FROM catalog_items
            WHERE workspace_id = %s AND business_id = %s AND lower(name) = lower(%s)
              AND deleted_at IS NULL
            ORDER BY sequence ASC
            LIMIT 1
            """,
            (workspace_id, business_id, item.name)
        )
        if row is not None:
            return CatalogItem.model_validate(row)

        return self.create_in(tx, workspace_id, CatalogItemCreate(
            business_id=business_id,
            name=item.name,
            description=item.description,
            unit_price=item.unit_price,
            quantity_unit=item.quantity_unit,
        ))

    def get(self, workspace_id: int, sequence: int) -> CatalogItem:
        """
        Get catalog item by sequence.

        Raises:
            NotFoundError: If missing, deleted, or in another workspace
        """
        return CatalogItem.model_validate(require_scoped(self.postgres, "catalog_items", workspace_id, sequence))

    def list(
        self,
        workspace_id: int,
        business_id: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[CatalogItem], int]:
        """
        List live catalog items ordered by name.

        Returns:
            (page of items, total matching count)
        """
        clauses = ["workspace_id = %s", "deleted_at IS NULL"]
        params: list = [workspace_id]
        if business_id is not None:
            clauses.append("business_id = %s")
            params.append(business_id)
        if search:
            clauses.append("(name ILIKE %s OR description ILIKE %s)")
            params.extend([f"%{search}%", f"%{search}%"])

        where = "WHERE " + " AND ".join(clauses)
        total = self.postgres.execute_scalar(f"SELECT COUNT(*) FROM catalog_items {where}", tuple(params))
        rows = self.postgres.execute(
            f"""
            SELECT * FROM catalog_items {where}
            ORDER BY name ASC, sequence ASC
            LIMIT %s OFFSET %s
            """,
            (*params, limit, page_offset(page, limit))
        )
        return [CatalogItem.model_validate(row) for row in rows], total or 0

    def update(self, workspace_id: int, sequence: int, data: CatalogItemUpdate) -> CatalogItem:
        """
        Update catalog item fields.

        Raises:
            NotFoundError: If missing or in another workspace
            EntityValidationError: If the new business is not in this workspace
            ConflictError: Changing the business of a referenced item
        """
        updates = {
            k: v for k, v in data.model_dump(exclude_none=True).items()
            if k in _UPDATABLE_COLUMNS
        }
        if "quantity_unit" in updates and hasattr(updates["quantity_unit"], "value"):
            updates["quantity_unit"] = updates["quantity_unit"].value

        with self.postgres.transaction() as tx:
            current = CatalogItem.model_validate(
                require_scoped(tx, "catalog_items", workspace_id, sequence, for_update=True)
            )
            if not updates:
                return current

            new_business = updates.get("business_id")
            if new_business is not None and new_business != current.business_id:
                if self._is_referenced(tx, current.id):
                    raise ConflictError(
                        "Cannot change the business of a catalog item used in invoices",
                        code="CATALOG_ITEM_IN_USE",
                    )
                business = tx.execute_single(
                    "SELECT id FROM businesses WHERE id = %s AND workspace_id = %s AND deleted_at IS NULL",
                    (new_business, workspace_id)
                )
                if business is None:
                    raise EntityValidationError(f"Business {new_business} not found in this workspace")

            set_parts = [f"{field} = %s" for field in updates]
            row = tx.execute_returning(
                f"""
                UPDATE catalog_items
                SET {', '.join(set_parts)}, updated_at = now()
                WHERE id = %s
                RETURNING *
                """,
                (*updates.values(), current.id)
            )[0]
            updated = CatalogItem.model_validate(row)

            changes = compute_changes(current, updated)
            if changes:
                self.audit.log_change(
                    tx,
                    workspace_id=workspace_id,
                    entity_type="catalog_item",
                    entity_id=current.id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                )

        return updated

    def delete(self, workspace_id: int, sequence: int) -> None:
        """
        Soft delete a catalog item.

        Raises:
            ConflictError: If any invoice item references it
        """
        with self.postgres.transaction() as tx:
            current = CatalogItem.model_validate(
                require_scoped(tx, "catalog_items", workspace_id, sequence, for_update=True)
            )
            if self._is_referenced(tx, current.id):
                raise ConflictError(
                    "Cannot delete a catalog item used in invoices",
                    code="CATALOG_ITEM_IN_USE",
                )

            tx.execute(
                "UPDATE catalog_items SET deleted_at = now(), updated_at = now() WHERE id = %s",
                (current.id,)
            )
            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="catalog_item",
                entity_id=current.id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
            )
