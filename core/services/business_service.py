"""
Business service: the sellers that issue invoices within a workspace.

The first business of a workspace becomes its default; afterwards the
default only moves through set_default().
"""

import logging

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.errors import ConflictError
from core.models import Business, BusinessCreate, BusinessUpdate, tax_policy_columns
from core.repository import require_scoped
from core.sequence import SequenceKind, next_sequence

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {
    "name", "email", "phone", "address", "tax_id", "logo_url",
    "default_notes", "default_terms",
}


class BusinessService:
    """Service for business operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def create(self, workspace_id: int, data: BusinessCreate) -> Business:
        """
        Create a business with the next business sequence.

        Returns:
            Created business (default if it is the workspace's first)
        """
        tax_mode, tax_name, tax_percentage = tax_policy_columns(data.default_tax)

        with self.postgres.transaction() as tx:
            sequence = next_sequence(tx, workspace_id, SequenceKind.BUSINESS)
            has_default = tx.execute_scalar(
                """
                SELECT EXISTS (
                    SELECT 1 FROM businesses
                    WHERE workspace_id = %s AND is_default AND deleted_at IS NULL
                )
                """,
                (workspace_id,)
            )

            row = tx.execute_returning(
                """
                INSERT INTO businesses (
                    workspace_id, sequence, name, email, phone, address, tax_id, logo_url,
                    is_default, default_tax_mode, default_tax_name, default_tax_percentage,
                    default_notes, default_terms
                ) VALUES (
                    %s, %s, %s, %s, %s, %s, %s, %s,
                    %s, %s, %s, %s,
                    %s, %s
                )
                RETURNING *
                """,
                (
                    workspace_id, sequence, data.name, data.email, data.phone, data.address,
                    data.tax_id, data.logo_url,
                    not has_default, tax_mode, tax_name, tax_percentage,
                    data.default_notes, data.default_terms,
                )
            )[0]
            business = Business.model_validate(row)

            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="business",
                entity_id=business.id,
                action=AuditAction.CREATE,
                changes={"created": data.model_dump(mode="json", exclude_none=True)},
            )

        return business

    def get(self, workspace_id: int, sequence: int) -> Business:
        """
        Get business by sequence.

        Raises:
            NotFoundError: If missing, deleted, or in another workspace
        """
        return Business.model_validate(require_scoped(self.postgres, "businesses", workspace_id, sequence))

    def get_by_id(self, workspace_id: int, business_id: int) -> Business:
        """Get business by internal id (same NotFound rules as get)."""
        return Business.model_validate(
            require_scoped(self.postgres, "businesses", workspace_id, business_id, column="id")
        )

    def list(self, workspace_id: int, search: str | None = None) -> list[Business]:
        """
        List live businesses, default first, then by name.

        Args:
            search: Case-insensitive match on name, email or tax id
        """
        params: list = [workspace_id]
        search_clause = ""
        if search:
            search_clause = "AND (name ILIKE %s OR email ILIKE %s OR tax_id ILIKE %s)"
            pattern = f"%{search}%"
            params.extend([pattern, pattern, pattern])

        rows = self.postgres.execute(
            f"""
            SELECT * FROM businesses
            WHERE workspace_id = %s AND deleted_at IS NULL {search_clause}
            ORDER BY is_default DESC, name ASC
            """,
            tuple(params)
        )
        return [Business.model_validate(row) for row in rows]

    def update(self, workspace_id: int, sequence: int, data: BusinessUpdate) -> Business:
        """Update business fields; default_tax replaces all three tax columns."""
        # Unset fields are left alone; explicit nulls clear optional columns
        updates = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if k in _UPDATABLE_COLUMNS and (v is not None or k != "name")
        }
        if data.default_tax is not None:
            mode, name, percentage = tax_policy_columns(data.default_tax)
            updates.update(default_tax_mode=mode, default_tax_name=name, default_tax_percentage=percentage)

        with self.postgres.transaction() as tx:
            current = Business.model_validate(
                require_scoped(tx, "businesses", workspace_id, sequence, for_update=True)
            )
            if not updates:
                return current

            set_parts = [f"{field} = %s" for field in updates]
            row = tx.execute_returning(
                f"""
                UPDATE businesses
                SET {', '.join(set_parts)}, updated_at = now()
                WHERE id = %s
                RETURNING *
                """,
                (*updates.values(), current.id)
            )[0]
            updated = Business.model_validate(row)

            changes = compute_changes(current, updated)
            if changes:
                self.audit.log_change(
                    tx,
                    workspace_id=workspace_id,
                    entity_type="business",
                    entity_id=current.id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                )

        return updated

    def set_default(self, workspace_id: int, sequence: int) -> Business:
        """Make this business the workspace default, unsetting the previous one."""
        with self.postgres.transaction() as tx:
            current = Business.model_validate(
                require_scoped(tx, "businesses", workspace_id, sequence, for_update=True)
            )
            if current.is_default:
                return current

            tx.execute(
                """
                UPDATE businesses SET is_default = false, updated_at = now()
                WHERE workspace_id = %s AND is_default AND deleted_at IS NULL
                """,
                (workspace_id,)
            )
            row = tx.execute_returning(
                "UPDATE businesses SET is_default = true, updated_at = now() WHERE id = %s RETURNING *",
                (current.id,)
            )[0]

            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="business",
                entity_id=current.id,
                action=AuditAction.UPDATE,
                changes={"is_default": {"old": False, "new": True}},
            )

        return Business.model_validate(row)

    def delete(self, workspace_id: int, sequence: int) -> None:
        """
        Soft delete a business.

        Raises:
            NotFoundError: If missing or in another workspace
            ConflictError: While live invoices still reference it
        """
        with self.postgres.transaction() as tx:
            current = Business.model_validate(
                require_scoped(tx, "businesses", workspace_id, sequence, for_update=True)
            )
            in_use = tx.execute_scalar(
                "SELECT COUNT(*) FROM invoices WHERE business_id = %s AND deleted_at IS NULL",
                (current.id,)
            )
            if in_use:
                raise ConflictError(
                    f"Business {sequence} has {in_use} invoice(s) and cannot be deleted",
                    code="BUSINESS_IN_USE",
                )

            tx.execute(
                "UPDATE businesses SET deleted_at = now(), is_default = false, updated_at = now() WHERE id = %s",
                (current.id,)
            )
            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="business",
                entity_id=current.id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
            )

        logger.info(f"Business {current.id} deleted in workspace {workspace_id}")
