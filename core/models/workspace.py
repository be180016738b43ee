"""Workspace (tenant) domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SubscriptionStatus(str, Enum):
    """Subscription status mirrored from the billing provider."""

    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    UNPAID = "UNPAID"
    INCOMPLETE = "INCOMPLETE"
    INCOMPLETE_EXPIRED = "INCOMPLETE_EXPIRED"
    CANCELED = "CANCELED"


ACTIVE_SUBSCRIPTION_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


class WorkspaceUpdate(BaseModel):
    """Workspace settings the owner can change."""

    name: str | None = Field(None, min_length=1, max_length=255)
    invoice_number_prefix: str | None = Field(None, min_length=1, max_length=20)


class SubscriptionUpdate(BaseModel):
    """
    Subscription snapshot carried by a billing provider event.

    status None keeps the stored status (INCOMPLETE if there is none yet).
    """

    billing_customer_id: str
    status: SubscriptionStatus | None = None
    plan: str | None = None
    period_end: datetime | None = None


class Workspace(BaseModel):
    """Full workspace entity as stored."""

    id: int
    external_subject: str
    name: str | None
    invoice_number_prefix: str
    subscription_plan: str | None
    subscription_status: SubscriptionStatus | None
    subscription_period_end: datetime | None
    billing_customer_id: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def has_active_subscription(self) -> bool:
        """Whether writes are allowed."""
        return self.subscription_status in ACTIVE_SUBSCRIPTION_STATUSES
