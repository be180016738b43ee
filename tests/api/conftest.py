"""API test fixtures: authenticated TestClient over mocked services."""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from auth.session import SessionManager
from auth.types import Session
from clients.pdf_client import PdfServiceClient
from core.config import BillingConfig
from core.jobs import JobQueue
from core.models import SubscriptionStatus, Workspace
from core.services.business_service import BusinessService
from core.services.catalog_service import CatalogService
from core.services.client_service import ClientService
from core.services.dashboard_service import DashboardService
from core.services.invoice_item_service import InvoiceItemService
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from core.services.workspace_service import WorkspaceService
from utils.timezone import now_utc

WORKSPACE_ID = 1
WEBHOOK_SECRET = "whsec_test"


# =============================================================================
# WORKSPACE
# =============================================================================


@pytest.fixture
def api_workspace():
    """The caller's workspace, subscribed."""
    now = now_utc()
    return Workspace(
        id=WORKSPACE_ID,
        external_subject="idp|alice",
        name="Alice",
        invoice_number_prefix="INV-",
        subscription_plan="pro",
        subscription_status=SubscriptionStatus.ACTIVE,
        subscription_period_end=None,
        billing_customer_id="cus_1",
        created_at=now,
        updated_at=now,
    )


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services(api_workspace):
    """Every service mocked against its real interface."""
    workspace = Mock(spec=WorkspaceService)
    workspace.resolve.return_value = api_workspace
    workspace.get.return_value = api_workspace

    return {
        "config": BillingConfig(),
        "job_queue": Mock(spec=JobQueue),
        "workspace": workspace,
        "business": Mock(spec=BusinessService),
        "client": Mock(spec=ClientService),
        "catalog": Mock(spec=CatalogService),
        "invoice": Mock(spec=InvoiceService),
        "invoice_item": Mock(spec=InvoiceItemService),
        "payment": Mock(spec=PaymentService),
        "dashboard": Mock(spec=DashboardService),
        "pdf": Mock(spec=PdfServiceClient),
        "billing_webhook_secret": WEBHOOK_SECRET,
    }


# =============================================================================
# AUTH FIXTURES
# =============================================================================


@pytest.fixture
def mock_session_manager():
    now = now_utc()
    mock = Mock(spec=SessionManager)
    mock.validate_session.return_value = Session(
        token="test-token",
        subject="idp|alice",
        created_at=now,
        expires_at=now + timedelta(hours=24),
        last_activity_at=now,
    )
    return mock


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(mock_session_manager, services):
    """The assembled app: middleware, error handlers and every router."""
    return create_app(services, mock_session_manager)


@pytest.fixture
def client(app):
    """Authenticated test client."""
    c = TestClient(app, raise_server_exceptions=False)
    c.cookies.set("session_token", "test-token")
    return c


@pytest.fixture
def unauthed_client(app):
    """Unauthenticated test client (no session cookie)."""
    return TestClient(app, raise_server_exceptions=False)
