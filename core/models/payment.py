"""Payment (ledger entry) domain models."""

from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, model_validator

from utils.money import Money


class PaymentCreate(BaseModel):
    """Data required to record a payment against an invoice."""

    amount: Money = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_method: str = Field(..., min_length=1, max_length=100)
    transaction_id: str | None = Field(None, max_length=255)
    details: str | None = Field(None, max_length=2000)
    paid_at: datetime | None = None  # defaults to now
    send_receipt: bool = False
    receipt_email: EmailStr | None = None  # defaults to the invoice client email
    receipt_subject: str | None = Field(None, max_length=255)
    receipt_message: str | None = Field(None, max_length=5000)


class PaymentUpdate(BaseModel):
    """Data that can be corrected on a payment. All fields optional."""

    amount: Money | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    payment_method: str | None = Field(None, min_length=1, max_length=100)
    transaction_id: str | None = Field(None, max_length=255)
    details: str | None = Field(None, max_length=2000)
    paid_at: datetime | None = None


class Payment(BaseModel):
    """Full payment entity as stored."""

    id: int
    workspace_id: int
    invoice_id: int
    amount: Money
    payment_method: str
    transaction_id: str | None
    details: str | None
    paid_at: datetime
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


class PaymentSummary(Payment):
    """Payment row in workspace-wide listings, with its invoice context."""

    invoice_sequence: int
    invoice_number: str
    client_name: str
    business_id: int


class PaymentListQuery(BaseModel):
    """Filters for the workspace-wide payment list."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    business_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = Field(None, max_length=255)

    @model_validator(mode="after")
    def validate_range(self) -> "PaymentListQuery":
        """date_from must not be after date_to."""
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be on or before date_to")
        return self


class PaymentPage(BaseModel):
    """One page of payments plus the sum over the whole filtered set."""

    items: list[PaymentSummary]
    page: int
    limit: int
    total_count: int
    total_amount: Money
