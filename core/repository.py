"""
Tenant-scoped row access shared by the services.

Every lookup filters by workspace_id, and a row that exists in another
workspace is reported exactly like a row that does not exist.
"""

from typing import Any

from core.errors import NotFoundError

# Tables looked up through these helpers, with the label used in errors
_SCOPED_TABLES = {
    "businesses": "Business",
    "clients": "Client",
    "catalog_items": "Catalog item",
    "invoices": "Invoice",
    "payments": "Payment",
}
_LOOKUP_COLUMNS = {"id", "sequence"}


def fetch_scoped(
    db,
    table: str,
    workspace_id: int,
    value: Any,
    column: str = "sequence",
    for_update: bool = False,
) -> dict[str, Any] | None:
    """
    Fetch one live row of a tenant table by id or sequence.

    Args:
        db: PostgresClient or open Transaction
        table: One of the tenant tables
        workspace_id: Caller's workspace
        value: Id or sequence to match
        column: "sequence" (external identity) or "id"
        for_update: Lock the row until the transaction ends

    Returns:
        Row dict, or None if absent, deleted, or in another workspace
    """
    if table not in _SCOPED_TABLES or column not in _LOOKUP_COLUMNS:
        raise ValueError(f"Unsupported scoped lookup {table}.{column}")

    query = (
        f"SELECT * FROM {table} "
        f"WHERE workspace_id = %s AND {column} = %s AND deleted_at IS NULL"
    )
    if for_update:
        query += " FOR UPDATE"
    return db.execute_single(query, (workspace_id, value))


def require_scoped(
    db,
    table: str,
    workspace_id: int,
    value: Any,
    column: str = "sequence",
    for_update: bool = False,
) -> dict[str, Any]:
    """fetch_scoped, raising NotFoundError when nothing matches."""
    row = fetch_scoped(db, table, workspace_id, value, column=column, for_update=for_update)
    if row is None:
        raise NotFoundError(_SCOPED_TABLES[table], value)
    return row


def page_offset(page: int, limit: int) -> int:
    """Row offset of a 1-based page."""
    return (page - 1) * limit
