"""Business (seller) domain models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field

from core.models.pricing import NoTax, TaxMode, TaxPolicy, tax_policy_from_columns


class BusinessCreate(BaseModel):
    """Data required to create a business."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    tax_id: str | None = Field(None, max_length=100)
    logo_url: str | None = Field(None, max_length=2000)
    default_tax: TaxPolicy = Field(default_factory=NoTax)
    default_notes: str | None = Field(None, max_length=5000)
    default_terms: str | None = Field(None, max_length=5000)


class BusinessUpdate(BaseModel):
    """Data that can be updated on a business. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    tax_id: str | None = Field(None, max_length=100)
    logo_url: str | None = Field(None, max_length=2000)
    default_tax: TaxPolicy | None = None
    default_notes: str | None = Field(None, max_length=5000)
    default_terms: str | None = Field(None, max_length=5000)


class Business(BaseModel):
    """Full business entity as stored."""

    id: int
    workspace_id: int
    sequence: int
    name: str
    email: str | None
    phone: str | None
    address: str | None
    tax_id: str | None
    logo_url: str | None
    is_default: bool
    default_tax_mode: TaxMode
    default_tax_name: str | None
    default_tax_percentage: Decimal | None
    default_notes: str | None
    default_terms: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def default_tax_policy(self):
        """Tax policy new invoices of this business start with."""
        return tax_policy_from_columns(
            self.default_tax_mode, self.default_tax_name, self.default_tax_percentage
        )
