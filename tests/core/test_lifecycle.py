"""Tests for the invoice lifecycle state machine."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core import lifecycle
from core.errors import InvalidTransitionError
from core.lifecycle import InvoiceStatus, LifecycleState

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
EARLIER = datetime(2025, 2, 1, 9, 0, tzinfo=timezone.utc)


def state(status: InvoiceStatus, **kwargs) -> LifecycleState:
    return LifecycleState(status=status, **kwargs)


class TestSend:
    """Test DRAFT → SENT."""

    def test_draft_with_items_becomes_sent(self):
        """Sending a draft sets SENT and sent_at."""
        result = lifecycle.send(state(InvoiceStatus.DRAFT), item_count=1, now=NOW)

        assert result.status == InvoiceStatus.SENT
        assert result.sent_at == NOW

    def test_without_items_rejected(self):
        """An empty invoice cannot be sent."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.send(state(InvoiceStatus.DRAFT), item_count=0, now=NOW)

        assert exc_info.value.code == "INVOICE_HAS_NO_ITEMS"

    @pytest.mark.parametrize("status", [InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PAID, InvoiceStatus.OVERDUE])
    def test_resend_is_noop(self, status):
        """Sending an invoice that already left DRAFT keeps its state."""
        current = state(status, sent_at=EARLIER)

        assert lifecycle.send(current, item_count=2, now=NOW) == current


class TestRevertToDraft:
    """Test SENT → DRAFT after failed delivery."""

    def test_sent_reverts(self):
        """SENT returns to DRAFT and forgets sent_at."""
        result = lifecycle.revert_to_draft(state(InvoiceStatus.SENT, sent_at=EARLIER))

        assert result.status == InvoiceStatus.DRAFT
        assert result.sent_at is None

    def test_other_statuses_rejected(self):
        """Only SENT can revert."""
        with pytest.raises(InvalidTransitionError):
            lifecycle.revert_to_draft(state(InvoiceStatus.VIEWED, sent_at=EARLIER))


class TestMarkViewed:
    """Test the client view."""

    def test_sent_becomes_viewed(self):
        """First view of a SENT invoice moves it to VIEWED."""
        result = lifecycle.mark_viewed(state(InvoiceStatus.SENT, sent_at=EARLIER), NOW)

        assert result.status == InvoiceStatus.VIEWED
        assert result.viewed_at == NOW

    def test_draft_rejected(self):
        """A draft has not been sent, so it cannot be viewed."""
        with pytest.raises(InvalidTransitionError):
            lifecycle.mark_viewed(state(InvoiceStatus.DRAFT), NOW)

    def test_first_view_time_kept(self):
        """Viewing again keeps the first viewed_at."""
        current = state(InvoiceStatus.VIEWED, sent_at=EARLIER, viewed_at=EARLIER)

        assert lifecycle.mark_viewed(current, NOW) == current

    def test_paid_keeps_status(self):
        """Viewing a PAID invoice records the view without changing status."""
        result = lifecycle.mark_viewed(state(InvoiceStatus.PAID, sent_at=EARLIER, paid_at=EARLIER), NOW)

        assert result.status == InvoiceStatus.PAID
        assert result.viewed_at == NOW


class TestMarkPaid:
    """Test explicit settlement."""

    def test_open_invoice_becomes_paid(self):
        """Any unpaid status with items goes to PAID."""
        result = lifecycle.mark_paid(state(InvoiceStatus.OVERDUE, sent_at=EARLIER), item_count=1, now=NOW)

        assert result.status == InvoiceStatus.PAID
        assert result.paid_at == NOW

    def test_already_paid_rejected(self):
        """PAID cannot be paid again."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.mark_paid(state(InvoiceStatus.PAID, paid_at=EARLIER), item_count=1, now=NOW)

        assert exc_info.value.code == "INVOICE_ALREADY_PAID"

    def test_without_items_rejected(self):
        """An empty invoice cannot be marked paid."""
        with pytest.raises(InvalidTransitionError):
            lifecycle.mark_paid(state(InvoiceStatus.DRAFT), item_count=0, now=NOW)


class TestSettle:
    """Test status alignment with the ledger."""

    def test_zero_balance_pays(self):
        """total > 0 and balance <= 0 → PAID with paid_at."""
        result = lifecycle.settle(state(InvoiceStatus.SENT, sent_at=EARLIER), Decimal("270"), Decimal("0"), NOW)

        assert result.status == InvoiceStatus.PAID
        assert result.paid_at == NOW

    def test_paid_at_kept_when_already_paid(self):
        """Re-settling a paid invoice keeps its paid_at."""
        current = state(InvoiceStatus.PAID, paid_at=EARLIER)

        assert lifecycle.settle(current, Decimal("10"), Decimal("0"), NOW) == current

    def test_zero_total_never_auto_pays(self):
        """An empty invoice with zero balance stays where it is."""
        current = state(InvoiceStatus.DRAFT)

        assert lifecycle.settle(current, Decimal("0"), Decimal("0"), NOW) == current

    @pytest.mark.parametrize("sent_at,viewed_at,expected", [
        (EARLIER, EARLIER, InvoiceStatus.VIEWED),
        (EARLIER, None, InvoiceStatus.SENT),
        (None, None, InvoiceStatus.DRAFT),
    ])
    def test_reopened_balance_reverts(self, sent_at, viewed_at, expected):
        """PAID with a positive balance falls back to its last open status."""
        current = state(InvoiceStatus.PAID, sent_at=sent_at, viewed_at=viewed_at, paid_at=EARLIER)

        result = lifecycle.settle(current, Decimal("270"), Decimal("270"), NOW)

        assert result.status == expected
        assert result.paid_at is None

    def test_partial_payment_keeps_open_status(self):
        """A positive balance on an open invoice changes nothing."""
        current = state(InvoiceStatus.VIEWED, sent_at=EARLIER, viewed_at=EARLIER)

        assert lifecycle.settle(current, Decimal("100"), Decimal("40"), NOW) == current


class TestOverdue:
    """Test the overdue predicate and transition."""

    TODAY = date(2025, 3, 10)

    @pytest.mark.parametrize("status,due,expected", [
        (InvoiceStatus.SENT, date(2025, 3, 9), True),
        (InvoiceStatus.VIEWED, date(2025, 3, 1), True),
        (InvoiceStatus.SENT, date(2025, 3, 10), False),
        (InvoiceStatus.SENT, None, False),
        (InvoiceStatus.DRAFT, date(2025, 1, 1), False),
        (InvoiceStatus.PAID, date(2025, 1, 1), False),
    ])
    def test_is_overdue(self, status, due, expected):
        """Only SENT/VIEWED invoices due before today are overdue."""
        assert lifecycle.is_overdue(status, due, self.TODAY) is expected

    def test_mark_overdue(self):
        """Past-due SENT becomes OVERDUE."""
        result = lifecycle.mark_overdue(state(InvoiceStatus.SENT, sent_at=EARLIER), date(2025, 3, 1), self.TODAY)

        assert result.status == InvoiceStatus.OVERDUE


class TestGuards:
    """Test edit and delete guards."""

    def test_draft_editable(self):
        """DRAFT passes the edit guard."""
        lifecycle.ensure_editable(InvoiceStatus.DRAFT)

    def test_sent_not_editable(self):
        """Anything past DRAFT is locked."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.ensure_editable(InvoiceStatus.SENT)

        assert exc_info.value.code == "INVOICE_ALREADY_SENT"

    def test_draft_with_payments_not_deletable(self):
        """A draft with payments cannot be deleted."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.ensure_deletable(InvoiceStatus.DRAFT, payment_count=1)

        assert exc_info.value.code == "INVOICE_HAS_PAYMENTS"

    def test_paid_not_deletable(self):
        """Only drafts can be deleted."""
        with pytest.raises(InvalidTransitionError):
            lifecycle.ensure_deletable(InvoiceStatus.PAID, payment_count=0)
