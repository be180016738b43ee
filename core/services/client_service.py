"""Client service: the buyers invoices are addressed to."""

import logging

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.errors import ConflictError
from core.models import Client, ClientCreate, ClientUpdate
from core.repository import page_offset, require_scoped
from core.sequence import SequenceKind, next_sequence

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {
    "name", "business_name", "email", "phone", "address", "tax_id", "notes",
}


class ClientService:
    """Service for client operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def create_in(self, tx, workspace_id: int, data: ClientCreate) -> Client:
        """
        Create a client inside an open transaction.

        Used directly by invoice creation when the client is created inline.
        """
        sequence = next_sequence(tx, workspace_id, SequenceKind.CLIENT)
        row = tx.execute_returning(
            """
            INSERT INTO clients (
                workspace_id, sequence, name, business_name, email, phone, address, tax_id, notes
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                workspace_id, sequence, data.name, data.business_name, data.email,
                data.phone, data.address, data.tax_id, data.notes,
            )
        )[0]
        client = Client.model_validate(row)

        self.audit.log_change(
            tx,
            workspace_id=workspace_id,
            entity_type="client",
            entity_id=client.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)},
        )
        return client

    def create(self, workspace_id: int, data: ClientCreate) -> Client:
        """Create a client with the next client sequence."""
        with self.postgres.transaction() as tx:
            return self.create_in(tx, workspace_id, data)

    def get(self, workspace_id: int, sequence: int) -> Client:
        """
        Get client by sequence.

        Raises:
            NotFoundError: If missing, deleted, or in another workspace
        """
        return Client.model_validate(require_scoped(self.postgres, "clients", workspace_id, sequence))

    def list(
        self,
        workspace_id: int,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Client], int]:
        """
        List live clients ordered by name.

        Args:
            search: Case-insensitive match on name, business name, email or phone

        Returns:
            (page of clients, total matching count)
        """
        params: list = [workspace_id]
        search_clause = ""
        if search:
            search_clause = (
                "AND (name ILIKE %s OR business_name ILIKE %s OR email ILIKE %s OR phone ILIKE %s)"
            )
            pattern = f"%{search}%"
            params.extend([pattern] * 4)

        where = f"WHERE workspace_id = %s AND deleted_at IS NULL {search_clause}"
        total = self.postgres.execute_scalar(f"SELECT COUNT(*) FROM clients {where}", tuple(params))
        rows = self.postgres.execute(
            f"""
            SELECT * FROM clients {where}
            ORDER BY name ASC, sequence ASC
            LIMIT %s OFFSET %s
            """,
            (*params, limit, page_offset(page, limit))
        )
        return [Client.model_validate(row) for row in rows], total or 0

    def update(self, workspace_id: int, sequence: int, data: ClientUpdate) -> Client:
        """
        Update client fields.

        Existing invoices keep the contact details they were issued with.
        """
        updates = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if k in _UPDATABLE_COLUMNS and (v is not None or k != "name")
        }

        with self.postgres.transaction() as tx:
            current = Client.model_validate(
                require_scoped(tx, "clients", workspace_id, sequence, for_update=True)
            )
            if not updates:
                return current

            set_parts = [f"{field} = %s" for field in updates]
            row = tx.execute_returning(
                f"""
                UPDATE clients
                SET {', '.join(set_parts)}, updated_at = now()
                WHERE id = %s
                RETURNING *
                """,
                (*updates.values(), current.id)
            )[0]
            updated = Client.model_validate(row)

            changes = compute_changes(current, updated)
            if changes:
                self.audit.log_change(
                    tx,
                    workspace_id=workspace_id,
                    entity_type="client",
                    entity_id=current.id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                )

        return updated

    def delete(self, workspace_id: int, sequence: int) -> None:
        """
        Soft delete a client.

        Raises:
            ConflictError: While live invoices are addressed to it
        """
        with self.postgres.transaction() as tx:
            current = Client.model_validate(
                require_scoped(tx, "clients", workspace_id, sequence, for_update=True)
            )
            in_use = tx.execute_scalar(
                "SELECT COUNT(*) FROM invoices WHERE client_id = %s AND deleted_at IS NULL",
                (current.id,)
            )
            if in_use:
                raise ConflictError(
                    f"Client {sequence} has {in_use} invoice(s) and cannot be deleted",
                    code="CLIENT_IN_USE",
                )

            tx.execute(
                "UPDATE clients SET deleted_at = now(), updated_at = now() WHERE id = %s",
                (current.id,)
            )
            self.audit.log_change(
                tx,
                workspace_id=workspace_id,
                entity_type="client",
                entity_id=current.id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
            )
