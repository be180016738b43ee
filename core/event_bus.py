"""
Synchronous in-process dispatch of billing events.

Services publish after their transaction has committed, so a failing
handler is logged and skipped; it can no longer undo the write. A handler
subscribed to a base class (InvoiceEvent, BillingEvent) also receives every
subclass event.
"""

import logging
from collections import defaultdict
from typing import Callable, Type

from core.events import BillingEvent

logger = logging.getLogger(__name__)

Handler = Callable[[BillingEvent], None]


class EventBus:
    """
    Usage:
        bus = EventBus()
        bus.subscribe(InvoiceSent, handle_invoice_sent(job_queue))
        bus.publish(InvoiceSent.create(invoice, email="jane@doe.test"))
    """

    def __init__(self):
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_class: Type[BillingEvent], handler: Handler) -> Callable[[], None]:
        """
        Register handler for event_class and its subclasses.

        Returns:
            A function that removes this subscription again
        """
        if not (isinstance(event_class, type) and issubclass(event_class, BillingEvent)):
            raise TypeError(f"Can only subscribe to BillingEvent classes, got {event_class!r}")
        self._handlers[event_class].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event_class]:
                self._handlers[event_class].remove(handler)

        return unsubscribe

    def handlers_for(self, event: BillingEvent) -> list[Handler]:
        """Most specific class first, subscription order within a class."""
        return [
            handler
            for klass in type(event).__mro__
            if klass in self._handlers
            for handler in self._handlers[klass]
        ]

    def publish(self, event: BillingEvent) -> int:
        """
        Call every matching handler.

        Returns:
            How many handlers raised
        """
        failures = 0
        for handler in self.handlers_for(event):
            try:
                handler(event)
            except Exception:
                failures += 1
                logger.exception(
                    "Handler %s failed for %s (event_id=%s, workspace_id=%s)",
                    getattr(handler, "__name__", repr(handler)),
                    type(event).__name__,
                    event.event_id,
                    event.workspace_id,
                )
        return failures
