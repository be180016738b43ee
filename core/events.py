"""
Domain events for invoicing.

Immutable event objects that represent state changes in the billing domain.
A service publishes what happened after its transaction commits; handlers
react (enqueue emails, log) without the service knowing who's listening.

Events carry the committed domain objects so handlers don't need to
re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class BillingEvent:
    """Base class for all billing domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)
    workspace_id: int


# =============================================================================
# INVOICE EVENTS
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class InvoiceEvent(BillingEvent):
    """Events related to invoice lifecycle."""
    invoice: Any = None  # Invoice, Any to avoid circular import


@dataclass(frozen=True, kw_only=True)
class InvoiceCreated(InvoiceEvent):
    """A new invoice was created in DRAFT status."""

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceCreated":
        return cls(workspace_id=invoice.workspace_id, invoice=invoice)


@dataclass(frozen=True, kw_only=True)
class InvoiceSent(InvoiceEvent):
    """
    Invoice sent to the client, or re-sent with a delivery request.

    transitioned is True only when this send moved the invoice out of DRAFT.
    """
    email: str | None = None
    subject: str | None = None
    message: str | None = None
    transitioned: bool = False

    @classmethod
    def create(
        cls,
        invoice: Any,
        email: str | None = None,
        subject: str | None = None,
        message: str | None = None,
        transitioned: bool = False,
    ) -> "InvoiceSent":
        return cls(
            workspace_id=invoice.workspace_id,
            invoice=invoice,
            email=email,
            subject=subject,
            message=message,
            transitioned=transitioned,
        )


@dataclass(frozen=True, kw_only=True)
class InvoicePaid(InvoiceEvent):
    """Invoice reached PAID, by payment or explicit action."""

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(workspace_id=invoice.workspace_id, invoice=invoice)


# =============================================================================
# PAYMENT EVENTS
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class PaymentRecorded(BillingEvent):
    """A payment was added to an invoice's ledger."""
    payment: Any = None
    invoice: Any = None
    send_receipt: bool = False
    receipt_email: str | None = None
    receipt_subject: str | None = None
    receipt_message: str | None = None

    @classmethod
    def create(
        cls,
        payment: Any,
        invoice: Any,
        send_receipt: bool = False,
        receipt_email: str | None = None,
        receipt_subject: str | None = None,
        receipt_message: str | None = None,
    ) -> "PaymentRecorded":
        return cls(
            workspace_id=invoice.workspace_id,
            payment=payment,
            invoice=invoice,
            send_receipt=send_receipt,
            receipt_email=receipt_email,
            receipt_subject=receipt_subject,
            receipt_message=receipt_message,
        )


# =============================================================================
# WORKSPACE EVENTS
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class SubscriptionChanged(BillingEvent):
    """Billing provider changed a workspace's subscription status."""
    old_status: str | None = None
    new_status: str | None = None

    @classmethod
    def create(cls, workspace_id: int, old_status: str | None, new_status: str | None) -> "SubscriptionChanged":
        return cls(workspace_id=workspace_id, old_status=old_status, new_status=new_status)
