"""
Background jobs on Celery, with Valkey as the broker.

Event handlers enqueue by queue name; core.worker registers the task that
consumes each queue. Messages are JSON and acknowledged late, so a worker
that dies mid-delivery leaves the message on the broker to be redelivered.
Delivery is at-least-once; tasks must tolerate repeats.

Jobs whose retries are exhausted are copied to the dead-letter queue, which
the worker does not consume: they stay on the broker for inspection.
"""

import logging
from typing import Any

from celery import Celery
from kombu import Exchange, Queue

from core.config import BillingConfig

logger = logging.getLogger(__name__)

EMAIL_INVOICE_QUEUE = "email-invoice"
EMAIL_RECEIPT_QUEUE = "email-receipt"
MAINTENANCE_QUEUE = "maintenance"
DEAD_LETTER_QUEUE = "dead-letter"

DELIVER_INVOICE_TASK = "invoicing.deliver_invoice"
DELIVER_RECEIPT_TASK = "invoicing.deliver_receipt"
MARK_OVERDUE_TASK = "invoicing.mark_overdue"
STORE_DEAD_LETTER_TASK = "invoicing.store_dead_letter"

# Queue -> task that consumes it
TASK_NAMES = {
    EMAIL_INVOICE_QUEUE: DELIVER_INVOICE_TASK,
    EMAIL_RECEIPT_QUEUE: DELIVER_RECEIPT_TASK,
}

DEAD_LETTER_TTL_MS = 7 * 24 * 60 * 60 * 1000


def _queue(name: str, **queue_arguments) -> Queue:
    exchange = Exchange(name, type="direct", durable=True)
    return Queue(name, exchange, routing_key=name, durable=True, queue_arguments=queue_arguments or None)


celery_app = Celery("invoicing")

celery_app.conf.update(
    enable_utc=True,
    timezone="UTC",
    broker_connection_retry_on_startup=True,
    broker_transport_options={"visibility_timeout": 3600},
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_ignore_result=True,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_default_queue=MAINTENANCE_QUEUE,
    worker_prefetch_multiplier=1,
)

celery_app.conf.task_queues = [
    _queue(EMAIL_INVOICE_QUEUE),
    _queue(EMAIL_RECEIPT_QUEUE),
    _queue(MAINTENANCE_QUEUE),
    _queue(DEAD_LETTER_QUEUE, **{"x-message-ttl": DEAD_LETTER_TTL_MS}),
]


def configure_celery(broker_url: str, config: BillingConfig | None = None) -> Celery:
    """
    Point the app at the broker and schedule the overdue sweep.

    Called once per process, by the API at startup and by the worker.
    """
    config = config or BillingConfig()
    celery_app.conf.broker_url = broker_url
    celery_app.conf.beat_schedule = {
        "mark-overdue-invoices": {
            "task": MARK_OVERDUE_TASK,
            "schedule": float(config.overdue_sweep_interval_seconds),
            "options": {"queue": MAINTENANCE_QUEUE},
        },
    }
    return celery_app


class JobQueue:
    """
    Enqueue jobs by queue name.

    Usage:
        queue = JobQueue(celery_app)
        queue.enqueue(EMAIL_INVOICE_QUEUE, {"workspace_id": 1, "sequence": 7, "email": "a@b.test"})
    """

    def __init__(self, app: Celery = celery_app):
        self.app = app

    def enqueue(self, queue: str, payload: dict[str, Any]) -> str:
        """
        Publish a job for the task consuming queue.

        Returns:
            Task id of the published message

        Raises:
            KeyError: If no task consumes that queue
        """
        task_name = TASK_NAMES[queue]
        result = self.app.send_task(task_name, args=[payload], queue=queue, routing_key=queue)
        logger.info(f"Enqueued job {result.id} on {queue}")
        return result.id
