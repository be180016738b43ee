"""Tests for job dispatch over Celery."""

from unittest.mock import Mock

import pytest
from celery import Celery
from kombu import Queue

from core.config import BillingConfig
from core.jobs import (
    DEAD_LETTER_QUEUE,
    DEAD_LETTER_TTL_MS,
    DELIVER_INVOICE_TASK,
    DELIVER_RECEIPT_TASK,
    EMAIL_INVOICE_QUEUE,
    EMAIL_RECEIPT_QUEUE,
    MAINTENANCE_QUEUE,
    MARK_OVERDUE_TASK,
    JobQueue,
    celery_app,
    configure_celery,
)


@pytest.fixture
def app():
    mock = Mock(spec=Celery)
    mock.send_task.return_value.id = "task-1"
    return mock


@pytest.fixture
def queue(app):
    return JobQueue(app)


class TestEnqueue:

    def test_sends_to_consuming_task(self, queue, app):
        """Invoice jobs go to the delivery task, routed on their own queue."""
        task_id = queue.enqueue(EMAIL_INVOICE_QUEUE, {"workspace_id": 1, "sequence": 7})

        assert task_id == "task-1"
        app.send_task.assert_called_once_with(
            DELIVER_INVOICE_TASK,
            args=[{"workspace_id": 1, "sequence": 7}],
            queue=EMAIL_INVOICE_QUEUE,
            routing_key=EMAIL_INVOICE_QUEUE,
        )

    def test_receipts_routed_separately(self, queue, app):
        queue.enqueue(EMAIL_RECEIPT_QUEUE, {"workspace_id": 1, "payment_id": 40})

        assert app.send_task.call_args.args[0] == DELIVER_RECEIPT_TASK
        assert app.send_task.call_args.kwargs["queue"] == EMAIL_RECEIPT_QUEUE

    def test_unknown_queue(self, queue, app):
        """Only queues with a consuming task accept jobs."""
        with pytest.raises(KeyError):
            queue.enqueue("sms", {})

        app.send_task.assert_not_called()

    def test_defaults_to_module_app(self):
        assert JobQueue().app is celery_app


class TestCeleryApp:
    """Broker-independent app settings."""

    def test_json_only_and_late_acks(self):
        conf = celery_app.conf

        assert conf.task_serializer == "json"
        assert set(conf.accept_content) == {"json"}
        assert conf.task_acks_late is True
        assert conf.task_reject_on_worker_lost is True

    def test_queues_declared(self):
        queues = {q.name: q for q in celery_app.conf.task_queues}

        assert set(queues) == {EMAIL_INVOICE_QUEUE, EMAIL_RECEIPT_QUEUE, MAINTENANCE_QUEUE, DEAD_LETTER_QUEUE}
        assert all(isinstance(q, Queue) for q in queues.values())
        assert queues[EMAIL_INVOICE_QUEUE].routing_key == EMAIL_INVOICE_QUEUE
        assert queues[DEAD_LETTER_QUEUE].queue_arguments["x-message-ttl"] == DEAD_LETTER_TTL_MS


class TestConfigureCelery:

    def test_broker_and_overdue_schedule(self):
        """The sweep interval from config drives the beat schedule."""
        app = configure_celery("redis://valkey:6379/0", BillingConfig(overdue_sweep_interval_seconds=900))

        assert app is celery_app
        assert app.conf.broker_url == "redis://valkey:6379/0"
        entry = app.conf.beat_schedule["mark-overdue-invoices"]
        assert entry["task"] == MARK_OVERDUE_TASK
        assert entry["schedule"] == 900.0
        assert entry["options"] == {"queue": MAINTENANCE_QUEUE}
