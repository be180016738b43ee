"""
Workspace service: tenant resolution, settings, subscription mirror and gates.

A workspace is created the first time an authenticated subject shows up.
Subscription fields are only ever written from billing provider events.
"""

import logging

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.errors import BusinessRequiredError, NotFoundError, SubscriptionRequiredError
from core.event_bus import EventBus
from core.events import SubscriptionChanged
from core.models import SubscriptionStatus, SubscriptionUpdate, Workspace, WorkspaceUpdate

logger = logging.getLogger(__name__)


class WorkspaceService:
    """Service for workspace operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger, event_bus: EventBus):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus

    def resolve(self, external_subject: str) -> Workspace:
        """
        Workspace of an authenticated subject, created on first access.

        Concurrent first requests of the same subject converge on one row.
        """
        with self.postgres.transaction() as tx:
            row = tx.execute_single(
                """
                INSERT INTO workspaces (external_subject)
                VALUES (%s)
                ON CONFLICT (external_subject) DO NOTHING
                RETURNING *
                """,
                (external_subject,)
            )
            if row is not None:
                self.audit.log_change(
                    tx,
                    workspace_id=row["id"],
                    entity_type="workspace",
                    entity_id=row["id"],
                    action=AuditAction.CREATE,
                    changes={"created": {"external_subject": external_subject}},
                )
                logger.info(f"Workspace {row['id']} created for new subject")
            else:
                row = tx.execute_single(
                    "SELECT * FROM workspaces WHERE external_subject = %s",
                    (external_subject,)
                )

        workspace = Workspace.model_validate(row)
        if workspace.deleted_at is not None:
            raise NotFoundError("Workspace", external_subject)
        return workspace

    def get(self, workspace_id: int) -> Workspace:
        """
        Get a live workspace.

        Raises:
            NotFoundError: If missing or deleted
        """
        row = self.postgres.execute_single(
            "SELECT * FROM workspaces WHERE id = %s AND deleted_at IS NULL",
            (workspace_id,)
        )
        if row is None:
            raise NotFoundError("Workspace", workspace_id)
        return Workspace.model_validate(row)

    def update_settings(self, workspace_id: int, data: WorkspaceUpdate) -> Workspace:
        """Update name and invoice number prefix."""
        updates = data.model_dump(exclude_none=True)

        with self.postgres.transaction() as tx:
            current_row = tx.execute_single(
                "SELECT * FROM workspaces WHERE id = %s AND deleted_at IS NULL FOR UPDATE",
                (workspace_id,)
            )
            if current_row is None:
                raise NotFoundError("Workspace", workspace_id)
            current = Workspace.model_validate(current_row)
            if not updates:
                return current

            set_parts = [f"{field} = %s" for field in updates]
            row = tx.execute_returning(
                f"""
                UPDATE workspaces
                SET {', '.join(set_parts)}, updated_at = now()
                WHERE id = %s
                RETURNING *
                """,
                (*updates.values(), workspace_id)
            )[0]
            updated = Workspace.model_validate(row)

            changes = compute_changes(current, updated)
            if changes:
                self.audit.log_change(
                    tx,
                    workspace_id=workspace_id,
                    entity_type="workspace",
                    entity_id=workspace_id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                )

        return updated

    def link_billing_customer(self, workspace_id: int, billing_customer_id: str) -> Workspace:
        """Remember which billing provider customer pays for this workspace."""
        row = self.postgres.execute_single(
            """
            UPDATE workspaces
            SET billing_customer_id = %s, updated_at = now()
            WHERE id = %s AND deleted_at IS NULL
            RETURNING *
            """,
            (billing_customer_id, workspace_id)
        )
        if row is None:
            raise NotFoundError("Workspace", workspace_id)
        return Workspace.model_validate(row)

    def apply_subscription_event(self, update: SubscriptionUpdate) -> Workspace | None:
        """
        Mirror a billing provider subscription snapshot onto its workspace.

        Returns:
            Updated workspace, or None if no workspace uses that billing
            customer (events for unknown customers are ignored)
        """
        with self.postgres.transaction() as tx:
            current_row = tx.execute_single(
                """
                SELECT * FROM workspaces
                WHERE billing_customer_id = %s AND deleted_at IS NULL
                FOR UPDATE
                """,
                (update.billing_customer_id,)
            )
            if current_row is None:
                logger.warning("Subscription event for unknown billing customer ignored")
                return None
            current = Workspace.model_validate(current_row)
            status = update.status or current.subscription_status or SubscriptionStatus.INCOMPLETE

            row = tx.execute_returning(
                """
                UPDATE workspaces
                SET subscription_status = %s,
                    subscription_plan = COALESCE(%s, subscription_plan),
                    subscription_period_end = COALESCE(%s, subscription_period_end),
                    updated_at = now()
                WHERE id = %s
                RETURNING *
                """,
                (status.value, update.plan, update.period_end, current.id)
            )[0]
            updated = Workspace.model_validate(row)

            changes = compute_changes(current, updated)
            if changes:
                self.audit.log_change(
                    tx,
                    workspace_id=current.id,
                    entity_type="workspace",
                    entity_id=current.id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                )

        old_status = current.subscription_status.value if current.subscription_status else None
        if old_status != status.value:
            logger.info(f"Workspace {current.id} subscription {old_status} -> {status.value}")
            self.event_bus.publish(SubscriptionChanged.create(current.id, old_status, status.value))

        return updated

    def cancel_subscription(self, billing_customer_id: str) -> Workspace | None:
        """Subscription deleted at the provider."""
        return self.apply_subscription_event(SubscriptionUpdate(
            billing_customer_id=billing_customer_id,
            status=SubscriptionStatus.CANCELED,
        ))

    def has_business(self, workspace_id: int) -> bool:
        """Whether at least one live business exists."""
        return bool(self.postgres.execute_scalar(
            """
            SELECT EXISTS (
                SELECT 1 FROM businesses WHERE workspace_id = %s AND deleted_at IS NULL
            )
            """,
            (workspace_id,)
        ))

    def require_business(self, workspace_id: int) -> None:
        """
        Gate for client/catalog/invoice operations.

        Raises:
            BusinessRequiredError: If the workspace has no business yet
        """
        if not self.has_business(workspace_id):
            raise BusinessRequiredError()

    def is_subscription_active(self, workspace_id: int) -> bool:
        """ACTIVE or TRIALING; anything else leaves the workspace read-only."""
        return self.get(workspace_id).has_active_subscription

    def require_active_subscription(self, workspace_id: int) -> Workspace:
        """
        Gate for write operations.

        Raises:
            SubscriptionRequiredError: Unless status is ACTIVE or TRIALING
        """
        workspace = self.get(workspace_id)
        if not workspace.has_active_subscription:
            status = workspace.subscription_status.value if workspace.subscription_status else None
            raise SubscriptionRequiredError(status=status)
        return workspace
