"""Invoice item (line) domain models."""

from datetime import datetime

from pydantic import BaseModel, Field

from core.models.catalog import QuantityUnit
from core.models.pricing import Discount, DiscountType, NoDiscount, discount_from_columns
from utils.money import DecimalNumber, Money


class InvoiceItemCreate(BaseModel):
    """Data required to add an item to an invoice."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    quantity: DecimalNumber = Field(..., gt=0, max_digits=12, decimal_places=3)
    quantity_unit: QuantityUnit = QuantityUnit.UNITS
    unit_price: Money = Field(..., ge=0, max_digits=12, decimal_places=2)
    discount: Discount = Field(default_factory=NoDiscount)
    tax: DecimalNumber = Field(0, ge=0, le=100, max_digits=5, decimal_places=2)  # percentage, BY_PRODUCT only
    vat_enabled: bool = False                    # BY_TOTAL only
    catalog_item_id: int | None = None
    save_to_catalog: bool = False


class InvoiceItemUpdate(BaseModel):
    """Data that can be updated on an item. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    quantity: DecimalNumber | None = Field(None, gt=0, max_digits=12, decimal_places=3)
    quantity_unit: QuantityUnit | None = None
    unit_price: Money | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    discount: Discount | None = None
    tax: DecimalNumber | None = Field(None, ge=0, le=100, max_digits=5, decimal_places=2)
    vat_enabled: bool | None = None
    catalog_item_id: int | None = None


class InvoiceItem(BaseModel):
    """Full invoice item entity as stored."""

    id: int
    invoice_id: int
    catalog_item_id: int | None
    name: str
    description: str | None
    quantity: DecimalNumber
    quantity_unit: QuantityUnit
    unit_price: Money
    discount: Money
    discount_type: DiscountType
    tax: DecimalNumber
    vat_enabled: bool
    total: Money
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def discount_policy(self):
        return discount_from_columns(self.discount_type, self.discount)
