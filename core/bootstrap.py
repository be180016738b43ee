"""
Service wiring shared by the HTTP app and the background worker.

Builds every service around one EventBus and subscribes the handlers that
turn domain events into background jobs.
"""

import logging

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger
from core.config import BillingConfig
from core.event_bus import EventBus
from core.events import InvoiceSent, PaymentRecorded
from core.handlers.invoice_sent_handler import handle_invoice_sent
from core.handlers.payment_recorded_handler import handle_payment_recorded
from core.jobs import JobQueue
from core.services.business_service import BusinessService
from core.services.catalog_service import CatalogService
from core.services.client_service import ClientService
from core.services.dashboard_service import DashboardService
from core.services.invoice_item_service import InvoiceItemService
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from core.services.workspace_service import WorkspaceService

logger = logging.getLogger(__name__)


def build_services(postgres: PostgresClient, job_queue: JobQueue, config: BillingConfig | None = None) -> dict:
    """
    Construct the service graph.

    Returns:
        Dict keyed by service name ("workspace", "invoice", ...) plus the
        shared "event_bus", "job_queue" and "config"
    """
    config = config or BillingConfig()
    event_bus = EventBus()
    audit = AuditLogger(postgres)

    client_service = ClientService(postgres, audit)
    catalog_service = CatalogService(postgres, audit)
    invoice_service = InvoiceService(postgres, audit, event_bus, client_service, catalog_service, config)

    event_bus.subscribe(InvoiceSent, handle_invoice_sent(job_queue))
    event_bus.subscribe(PaymentRecorded, handle_payment_recorded(job_queue))
    logger.info("Event handlers registered")

    return {
        "config": config,
        "event_bus": event_bus,
        "job_queue": job_queue,
        "workspace": WorkspaceService(postgres, audit, event_bus),
        "business": BusinessService(postgres, audit),
        "client": client_service,
        "catalog": catalog_service,
        "invoice": invoice_service,
        "invoice_item": InvoiceItemService(postgres, audit, invoice_service),
        "payment": PaymentService(postgres, audit, event_bus, invoice_service),
        "dashboard": DashboardService(postgres),
    }
