# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    VaultError,
    get_database_url,
    get_valkey_url,
    get_email_config,
    get_pdf_service_config,
    get_billing_webhook_secret,
    preload_secrets,
)
from clients.postgres_client import PostgresClient, Transaction
from clients.valkey_client import ValkeyClient
from clients.email_client import Attachment, EmailGatewayClient, EmailGatewayError, OutgoingEmail
from clients.pdf_client import PdfServiceClient
