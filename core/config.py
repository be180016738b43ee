"""Billing engine configuration."""

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Non-secret tunables of the billing core and its worker.

    Secrets (database, Valkey, PDF service key, webhook secret) come from
    Vault, never from here.
    """

    # Invoice numbering
    invoice_number_width: int = Field(
        default=4,
        description="Zero padding of suggested invoice numbers",
        ge=1,
        le=10,
    )
    default_currency: str = Field(
        default="USD",
        description="Currency of new invoices when none is given",
        min_length=3,
        max_length=3,
    )

    # Listing
    default_page_size: int = Field(default=20, ge=1, le=100)
    max_page_size: int = Field(default=100, ge=1, le=500)

    # Background jobs
    job_max_attempts: int = Field(
        default=3,
        description="Delivery attempts before a job is dead-lettered",
        ge=1,
        le=10,
    )
    overdue_sweep_interval_seconds: int = Field(
        default=3600,
        description="How often the worker marks past-due invoices OVERDUE",
        ge=60,
    )

    # External services
    pdf_timeout_seconds: int = Field(default=30, ge=1, le=120)
    webhook_tolerance_seconds: int = Field(
        default=300,
        description="Maximum age of a signed billing webhook",
        ge=30,
        le=3600,
    )
