"""
Append-only audit trail of tenant entity changes.

Entries are written through the caller's transaction, so a rolled-back
change leaves nothing behind. Reads are always workspace-scoped.

Changes format by action:
- create: {"created": <snapshot>}
- update: {"<field>": {"old": ..., "new": ...}, ...}
- delete: {"deleted": <snapshot>}
"""

from datetime import datetime
from enum import Enum
from typing import Any

from psycopg2.extras import Json
from pydantic import BaseModel

from clients.postgres_client import PostgresClient

ENTITY_TYPES = frozenset({
    "workspace", "business", "client", "catalog_item", "invoice", "invoice_item", "payment",
})

IGNORED_FIELDS = frozenset({"updated_at"})


class AuditAction(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AuditEntry(BaseModel):
    id: int
    workspace_id: int | None
    entity_type: str
    entity_id: int
    action: AuditAction
    changes: dict[str, Any]
    created_at: datetime


def snapshot(entity: BaseModel | dict[str, Any]) -> dict[str, Any]:
    """JSON-safe dict of a model (Decimals and dates become strings)."""
    if isinstance(entity, BaseModel):
        return entity.model_dump(mode="json")
    return dict(entity)


def compute_changes(
    old: BaseModel | dict[str, Any],
    new: BaseModel | dict[str, Any],
    ignore: frozenset[str] | set[str] = IGNORED_FIELDS,
) -> dict[str, dict[str, Any]]:
    """
    Field-level diff of two states of one entity.

    A key present on one side only counts as changed, with None on the
    other side. Returns {} when nothing outside ignore differs.
    """
    before, after = snapshot(old), snapshot(new)
    return {
        key: {"old": before.get(key), "new": after.get(key)}
        for key in sorted(before.keys() | after.keys())
        if key not in ignore and before.get(key) != after.get(key)
    }


class AuditLogger:
    """
    Usage:
        audit = AuditLogger(postgres)

        with postgres.transaction() as tx:
            ...
            changes = compute_changes(current, updated)
            if changes:
                audit.log_change(tx, workspace_id, "invoice", invoice.id, AuditAction.UPDATE, changes)

        timeline = audit.history(workspace_id, "invoice", invoice.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        tx,
        workspace_id: int,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        changes: dict[str, Any],
    ) -> None:
        """
        Append one entry inside tx.

        Raises:
            ValueError: Unknown entity_type
        """
        if entity_type not in ENTITY_TYPES:
            raise ValueError(f"Unknown audit entity type '{entity_type}'")
        tx.execute(
            """
            INSERT INTO audit_log (workspace_id, entity_type, entity_id, action, changes)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (workspace_id, entity_type, entity_id, action.value, Json(changes))
        )

    def history(self, workspace_id: int, entity_type: str, entity_id: int) -> list[AuditEntry]:
        """Entries of one entity in one workspace, oldest first."""
        rows = self.postgres.execute(
            """
            SELECT id, workspace_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE workspace_id = %s AND entity_type = %s AND entity_id = %s
            ORDER BY created_at ASC, id ASC
            """,
            (workspace_id, entity_type, entity_id)
        )
        return [AuditEntry.model_validate(row) for row in rows]
