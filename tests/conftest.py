"""Shared test fixtures for the invoicing test suite."""

import os
from pathlib import Path
from uuid import uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

SCHEMA_PATH = Path(__file__).parent.parent / "schema.sql"

TENANT_TABLES = "audit_log, payments, invoice_items, invoices, catalog_items, clients, businesses, workspaces"


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """Session-scoped PostgresClient on TEST_DATABASE_URL with the schema applied."""
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL not set")

    from clients.postgres_client import PostgresClient

    client = PostgresClient(url)
    client.execute(SCHEMA_PATH.read_text())
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty every table before the test."""
    db.execute(f"TRUNCATE {TENANT_TABLES} RESTART IDENTITY CASCADE")
    return db


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def job_queue():
    """JobQueue over a mocked Celery app: enqueued jobs are recorded, not sent."""
    from unittest.mock import Mock
    from celery import Celery
    from core.jobs import JobQueue

    return JobQueue(Mock(spec=Celery))


@pytest.fixture
def services(clean_db, job_queue):
    """Fully wired services against the test database."""
    from core.bootstrap import build_services
    return build_services(clean_db, job_queue)


@pytest.fixture
def new_workspace(services):
    """Factory creating a fresh workspace with one default business."""
    from core.models import BusinessCreate

    def create(name: str = "Acme Studio"):
        workspace = services["workspace"].resolve(f"subject-{uuid4()}")
        business = services["business"].create(workspace.id, BusinessCreate(name=name, email="billing@acme.test"))
        return workspace, business

    return create


@pytest.fixture
def workspace(new_workspace):
    """Primary test workspace and its business."""
    return new_workspace()


@pytest.fixture
def workspace_b(new_workspace):
    """Second workspace for isolation tests."""
    return new_workspace("Other Co")


# =============================================================================
# IN-MEMORY MODEL FIXTURES (no DB needed)
# =============================================================================


@pytest.fixture
def _business():
    from core.models import Business
    from utils.timezone import now_utc

    now = now_utc()
    return Business(
        id=10, workspace_id=1, sequence=1, name="Acme Studio",
        email="billing@acme.test", phone="555-0100", address="1 Main St",
        tax_id="US-123", logo_url="https://cdn.acme.test/logo.png", is_default=True,
        default_tax_mode="NONE", default_tax_name=None, default_tax_percentage=None,
        default_notes=None, default_terms=None,
        created_at=now, updated_at=now,
    )


@pytest.fixture
def _client():
    from core.models import Client
    from utils.timezone import now_utc

    now = now_utc()
    return Client(
        id=20, workspace_id=1, sequence=1, name="Jane Doe", business_name="Doe Ltd",
        email="jane@doe.test", phone=None, address="2 Side St", tax_id=None, notes=None,
        created_at=now, updated_at=now,
    )


@pytest.fixture
def _invoice():
    """DRAFT invoice: one 220.00 BY_PRODUCT item, 100.00 paid."""
    from decimal import Decimal
    from datetime import date
    from core.models import Invoice
    from utils.timezone import now_utc

    now = now_utc()
    return Invoice(
        id=30, workspace_id=1, business_id=10, client_id=20, sequence=7,
        invoice_number="INV-0007", status="DRAFT",
        issue_date=date(2025, 3, 1), due_date=date(2025, 3, 31), currency="USD",
        purchase_order="PO-1", client_email="jane@doe.test", client_phone=None,
        client_address="2 Side St", notes="Thanks", terms="Net 30",
        discount=Decimal("0"), discount_type="NONE",
        tax_mode="BY_PRODUCT", tax_name=None, tax_percentage=None,
        subtotal=Decimal("220.00"), total_tax=Decimal("20.00"),
        total=Decimal("220.00"), balance=Decimal("120.00"),
        sent_at=None, viewed_at=None, paid_at=None,
        created_at=now, updated_at=now,
    )


@pytest.fixture
def _payment():
    from decimal import Decimal
    from datetime import datetime, timezone
    from core.models import Payment

    paid_at = datetime(2025, 3, 5, 10, 0, tzinfo=timezone.utc)
    return Payment(
        id=40, workspace_id=1, invoice_id=30, amount=Decimal("100.00"),
        payment_method="Bank transfer", transaction_id="TX-1", details="First half",
        paid_at=paid_at, created_at=paid_at, updated_at=paid_at,
    )


@pytest.fixture
def _invoice_detail(_invoice, _business, _client, _payment):
    from decimal import Decimal
    from core.models import InvoiceDetail, InvoiceItem
    from utils.timezone import now_utc

    now = now_utc()
    item = InvoiceItem(
        id=50, invoice_id=_invoice.id, catalog_item_id=None, name="Design",
        description="Logo work", quantity=Decimal("2"), quantity_unit="HOURS",
        unit_price=Decimal("100"), discount=Decimal("0"), discount_type="NONE",
        tax=Decimal("10"), vat_enabled=False, total=Decimal("220.00"),
        created_at=now, updated_at=now,
    )
    return InvoiceDetail(
        **_invoice.model_dump(),
        items=[item],
        payments=[_payment],
        client=_client,
        business=_business,
    )
