"""FastAPI application assembly."""

import logging

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from api.base import ok
from api.businesses import create_businesses_router
from api.catalog import create_catalog_router
from api.clients import create_clients_router
from api.errors import register_error_handlers
from api.invoices import create_invoices_router
from api.middleware import RequestIDMiddleware
from api.payments import create_payments_router
from api.webhooks import create_webhooks_router
from api.workspace import create_workspace_router
from auth.config import AuthConfig
from auth.security_middleware import AuthMiddleware
from auth.session import SessionManager

logger = logging.getLogger(__name__)


def create_app(services: dict, session_manager: SessionManager, auth_config: AuthConfig | None = None) -> FastAPI:
    """
    Build the HTTP app around an already-wired service dict.

    Args:
        services: build_services() output plus "pdf" (PdfServiceClient) and
            "billing_webhook_secret"
        session_manager: Validates session tokens
        auth_config: Cookie name and session settings
    """
    auth_config = auth_config or AuthConfig()

    app = FastAPI(title="Invoicing API")
    # Added last runs first: request IDs exist before auth rejects anything
    app.add_middleware(
        AuthMiddleware,
        session_manager=session_manager,
        resolve_workspace=services["workspace"].resolve,
        cookie_name=auth_config.session_cookie_name,
    )
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_workspace_router(services))
    app.include_router(create_businesses_router(services))
    app.include_router(create_clients_router(services))
    app.include_router(create_catalog_router(services))
    app.include_router(create_invoices_router(services))
    app.include_router(create_payments_router(services))
    app.include_router(create_webhooks_router(services))

    @app.get("/health")
    async def health():
        return ok({"status": "ok"})

    @app.delete("/session")
    async def logout(request: Request):
        session_manager.revoke_session(request.state.session.token)
        response = JSONResponse(ok({"logged_out": True}))
        response.delete_cookie(auth_config.session_cookie_name)
        return response

    return app


def create_production_app() -> FastAPI:
    """ASGI factory: secrets from Vault, real Postgres and Valkey."""
    from clients.pdf_client import PdfServiceClient
    from clients.postgres_client import PostgresClient
    from clients.valkey_client import ValkeyClient
    from clients.vault_client import (
        get_billing_webhook_secret, get_database_url, get_pdf_service_config, get_valkey_url, preload_secrets,
    )
    from core.bootstrap import build_services
    from core.config import BillingConfig
    from core.jobs import JobQueue, celery_app, configure_celery

    preload_secrets(("database", "valkey", "pdf", "billing"))
    config = BillingConfig()
    valkey = ValkeyClient(get_valkey_url())
    postgres = PostgresClient(get_database_url())

    configure_celery(get_valkey_url(), config)
    services = build_services(postgres, JobQueue(celery_app), config)
    services["pdf"] = PdfServiceClient(**get_pdf_service_config(), timeout=config.pdf_timeout_seconds)
    services["billing_webhook_secret"] = get_billing_webhook_secret()

    logger.info("Invoicing API ready")
    return create_app(services, SessionManager(valkey, AuthConfig()))
