"""
Per-workspace sequence numbers.

Every root entity (business, client, catalog item, invoice) gets a sequence
that is unique within its workspace and kind, starts at 1, and is never
reused, not even after a soft delete. Sequences are the external identity of
an entity; the primary key stays internal.
"""

from enum import Enum

from core.errors import NotFoundError


class SequenceKind(str, Enum):
    """Entity kinds that carry a sequence, valued by table name."""

    BUSINESS = "businesses"
    CLIENT = "clients"
    CATALOG_ITEM = "catalog_items"
    INVOICE = "invoices"


def next_sequence(tx, workspace_id: int, kind: SequenceKind) -> int:
    """
    Next sequence for a new entity, inside the transaction that inserts it.

    Locks the workspace row first, so concurrent creations in the same
    workspace queue up behind each other until the first one commits.
    Soft-deleted rows count toward the maximum.

    Args:
        tx: Open Transaction from PostgresClient.transaction()
        workspace_id: Tenant to number within
        kind: Which entity table

    Returns:
        max(sequence) + 1, or 1 for the first entity

    Raises:
        NotFoundError: If the workspace does not exist
    """
    locked = tx.execute_scalar(
        "SELECT id FROM workspaces WHERE id = %s AND deleted_at IS NULL FOR UPDATE",
        (workspace_id,)
    )
    if locked is None:
        raise NotFoundError("Workspace", workspace_id)

    # Table name comes from the enum, never from input
    current = tx.execute_scalar(
        f"SELECT MAX(sequence) FROM {SequenceKind(kind).value} WHERE workspace_id = %s",
        (workspace_id,)
    )
    return (current or 0) + 1
