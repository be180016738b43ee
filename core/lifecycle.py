"""
Invoice lifecycle state machine.

    DRAFT ──send──▶ SENT ──view──▶ VIEWED
      │               │               │
      └──────── mark paid / balance ≤ 0 ──────▶ PAID
                      │               │
                      └── due date passes ──▶ OVERDUE

Transitions are pure functions over LifecycleState; the services persist the
result. PAID is terminal for explicit actions, but ledger corrections that
reopen the balance move the invoice back to its last open status.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from core.errors import InvalidTransitionError


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


OPEN_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.OVERDUE})
OVERDUE_CANDIDATES = frozenset({InvoiceStatus.SENT, InvoiceStatus.VIEWED})


@dataclass(frozen=True)
class LifecycleState:
    """Status plus the timestamps the transitions maintain."""

    status: InvoiceStatus
    sent_at: datetime | None = None
    viewed_at: datetime | None = None
    paid_at: datetime | None = None


def _require_items(item_count: int, action: str) -> None:
    if item_count < 1:
        raise InvalidTransitionError(
            f"Cannot {action} an invoice without items",
            code="INVOICE_HAS_NO_ITEMS",
        )


def send(state: LifecycleState, item_count: int, now: datetime) -> LifecycleState:
    """
    DRAFT → SENT.

    Re-sending an invoice that already went out is a no-op, so delivery
    retries never move the status backwards.
    """
    _require_items(item_count, "send")

    if state.status != InvoiceStatus.DRAFT:
        return state

    return replace(state, status=InvoiceStatus.SENT, sent_at=now)


def revert_to_draft(state: LifecycleState) -> LifecycleState:
    """SENT → DRAFT, for when delivery of a just-sent invoice failed."""
    if state.status != InvoiceStatus.SENT:
        raise InvalidTransitionError(
            f"Only SENT invoices can return to DRAFT (status is {state.status.value})"
        )
    return replace(state, status=InvoiceStatus.DRAFT, sent_at=None)


def mark_viewed(state: LifecycleState, now: datetime) -> LifecycleState:
    """Record that the client opened the invoice."""
    if state.status == InvoiceStatus.DRAFT:
        raise InvalidTransitionError("A draft invoice cannot be viewed by the client")

    viewed_at = state.viewed_at or now
    if state.status == InvoiceStatus.SENT:
        return replace(state, status=InvoiceStatus.VIEWED, viewed_at=viewed_at)
    return replace(state, viewed_at=viewed_at)


def mark_paid(state: LifecycleState, item_count: int, now: datetime) -> LifecycleState:
    """Any non-PAID status → PAID."""
    if state.status == InvoiceStatus.PAID:
        raise InvalidTransitionError("Invoice is already paid", code="INVOICE_ALREADY_PAID")
    _require_items(item_count, "mark as paid")
    return replace(state, status=InvoiceStatus.PAID, paid_at=now)


def reopened_status(state: LifecycleState) -> InvoiceStatus:
    """The open status a PAID invoice falls back to when its balance reopens."""
    if state.viewed_at is not None:
        return InvoiceStatus.VIEWED
    if state.sent_at is not None:
        return InvoiceStatus.SENT
    return InvoiceStatus.DRAFT


def settle(state: LifecycleState, total: Decimal, balance: Decimal, now: datetime) -> LifecycleState:
    """
    Align status with the ledger after a recompute.

    - total > 0 and balance <= 0: PAID (an existing paid_at is kept)
    - PAID with balance > 0: back to VIEWED/SENT/DRAFT, paid_at cleared
    - otherwise unchanged
    """
    if total > 0 and balance <= 0:
        if state.status == InvoiceStatus.PAID and state.paid_at is not None:
            return state
        return replace(state, status=InvoiceStatus.PAID, paid_at=state.paid_at or now)

    if state.status == InvoiceStatus.PAID and balance > 0:
        return replace(state, status=reopened_status(state), paid_at=None)

    return state


def is_overdue(status: InvoiceStatus, due_date: date | None, today: date) -> bool:
    """An open invoice whose due date is before today."""
    return status in OVERDUE_CANDIDATES and due_date is not None and due_date < today


def mark_overdue(state: LifecycleState, due_date: date | None, today: date) -> LifecycleState:
    """SENT/VIEWED → OVERDUE when past due, otherwise unchanged."""
    if is_overdue(state.status, due_date, today):
        return replace(state, status=InvoiceStatus.OVERDUE)
    return state


def ensure_editable(status: InvoiceStatus) -> None:
    """Invoice fields and items can only change while DRAFT."""
    if status != InvoiceStatus.DRAFT:
        raise InvalidTransitionError(
            f"Cannot modify an invoice in status {status.value}",
            code="INVOICE_ALREADY_SENT",
        )


def ensure_deletable(status: InvoiceStatus, payment_count: int) -> None:
    """Only DRAFT invoices without payments may be deleted."""
    if status != InvoiceStatus.DRAFT:
        raise InvalidTransitionError(
            f"Cannot delete an invoice in status {status.value}",
            code="INVOICE_ALREADY_SENT",
        )
    if payment_count > 0:
        raise InvalidTransitionError(
            "Cannot delete an invoice with recorded payments",
            code="INVOICE_HAS_PAYMENTS",
        )
