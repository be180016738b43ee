"""Invoice domain models.

Money is Decimal end to end and serialized as a two-decimal JSON number.
The persisted discount/tax columns are flat; the create/update payloads use
the tagged unions from core.models.pricing so only valid combinations can be
submitted.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field, model_validator

from core.lifecycle import InvoiceStatus, LifecycleState
from core.models.business import Business
from core.models.client import Client, ClientCreate
from core.models.invoice_item import InvoiceItem, InvoiceItemCreate
from core.models.payment import Payment
from core.models.pricing import (
    Discount, DiscountType, NoDiscount, TaxMode, TaxPolicy,
    discount_from_columns, tax_policy_from_columns,
)
from utils.money import DecimalNumber, Money
from utils.timezone import today_utc


class InvoiceCreate(BaseModel):
    """Data required to create an invoice."""

    business_id: int
    client_id: int | None = None
    new_client: ClientCreate | None = None  # create the client in the same transaction
    invoice_number: str | None = Field(None, min_length=1, max_length=50)  # suggested if omitted
    issue_date: date = Field(default_factory=today_utc)
    due_date: date | None = None
    currency: str = Field("USD", min_length=3, max_length=3)
    purchase_order: str | None = Field(None, max_length=100)
    client_email: EmailStr | None = None
    client_phone: str | None = Field(None, max_length=50)
    client_address: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=5000)
    terms: str | None = Field(None, max_length=5000)
    discount: Discount = Field(default_factory=NoDiscount)
    tax: TaxPolicy | None = None  # None → business default
    items: list[InvoiceItemCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_client_and_dates(self) -> "InvoiceCreate":
        """Exactly one client reference; due date not before issue date."""
        if (self.client_id is None) == (self.new_client is None):
            raise ValueError("Provide exactly one of client_id or new_client")
        if self.due_date is not None and self.due_date < self.issue_date:
            raise ValueError("due_date cannot be before issue_date")
        return self


class InvoiceUpdate(BaseModel):
    """Data that can be updated on a draft invoice. All fields optional."""

    client_id: int | None = None
    invoice_number: str | None = Field(None, min_length=1, max_length=50)
    issue_date: date | None = None
    due_date: date | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)
    purchase_order: str | None = Field(None, max_length=100)
    client_email: EmailStr | None = None
    client_phone: str | None = Field(None, max_length=50)
    client_address: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=5000)
    terms: str | None = Field(None, max_length=5000)
    discount: Discount | None = None
    tax: TaxPolicy | None = None


class SendInvoiceRequest(BaseModel):
    """Optional email delivery for the send action."""

    email: EmailStr | None = None
    subject: str | None = Field(None, max_length=255)
    message: str | None = Field(None, max_length=5000)


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: int
    workspace_id: int
    business_id: int
    client_id: int
    sequence: int
    invoice_number: str
    status: InvoiceStatus
    issue_date: date
    due_date: date | None
    currency: str
    purchase_order: str | None
    client_email: str | None
    client_phone: str | None
    client_address: str | None
    notes: str | None
    terms: str | None
    discount: Money
    discount_type: DiscountType
    tax_mode: TaxMode
    tax_name: str | None
    tax_percentage: DecimalNumber | None
    subtotal: Money
    total_tax: Money
    total: Money
    balance: Money
    sent_at: datetime | None
    viewed_at: datetime | None
    paid_at: datetime | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def discount_policy(self):
        return discount_from_columns(self.discount_type, self.discount)

    @property
    def tax_policy(self):
        return tax_policy_from_columns(self.tax_mode, self.tax_name, self.tax_percentage)

    @property
    def lifecycle_state(self) -> LifecycleState:
        return LifecycleState(
            status=self.status,
            sent_at=self.sent_at,
            viewed_at=self.viewed_at,
            paid_at=self.paid_at,
        )

    @property
    def amount_paid(self) -> Decimal:
        """Sum of active payments, derived from the balance invariant."""
        return self.total - self.balance


class InvoiceSummary(Invoice):
    """Invoice row in listings, with counterpart names."""

    client_name: str
    business_name: str


class InvoiceDetail(Invoice):
    """Invoice with everything a detail view needs."""

    items: list[InvoiceItem]
    payments: list[Payment]
    client: Client
    business: Business


class InvoiceListQuery(BaseModel):
    """Filters for the invoice list."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    search: str | None = Field(None, max_length=255)
    status: InvoiceStatus | None = None
    client_id: int | None = None
    business_id: int | None = None


class InvoiceStats(BaseModel):
    """Aggregates over the workspace's invoices (ignores list filters)."""

    total: int
    by_status: dict[InvoiceStatus, int]
    revenue: Money          # sum of active payments
    total_invoiced: Money   # sum of invoice totals
    outstanding: Money      # sum of balances of unpaid invoices


class InvoicePage(BaseModel):
    """One page of invoices plus workspace stats."""

    items: list[InvoiceSummary]
    page: int
    limit: int
    total_count: int
    stats: InvoiceStats
