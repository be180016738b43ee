"""
Discount and tax policies as tagged unions.

An invoice (or item) discount is exactly one of none / percentage / fixed,
and an invoice tax policy is exactly one of none / per product / on total.
Each variant only carries the fields that make sense for it, so states such
as "BY_TOTAL without a percentage" or "NONE with an amount" cannot be built.

The database keeps the flat column layout (discount, discount_type,
tax_mode, tax_name, tax_percentage); the *_columns helpers translate.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from utils.money import Money, ZERO


class DiscountType(str, Enum):
    """How a discount amount is interpreted."""

    NONE = "NONE"
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class TaxMode(str, Enum):
    """Where tax is computed."""

    NONE = "NONE"
    BY_PRODUCT = "BY_PRODUCT"  # each item carries its own percentage
    BY_TOTAL = "BY_TOTAL"      # one percentage over VAT-enabled items


class NoDiscount(BaseModel):
    type: Literal["NONE"] = "NONE"

    model_config = {"frozen": True}

    @property
    def amount(self) -> Decimal:
        return ZERO


class PercentageDiscount(BaseModel):
    type: Literal["PERCENTAGE"] = "PERCENTAGE"
    amount: Money = Field(..., gt=0, le=100, max_digits=12, decimal_places=2)

    model_config = {"frozen": True}


class FixedDiscount(BaseModel):
    type: Literal["FIXED"] = "FIXED"
    amount: Money = Field(..., gt=0, max_digits=12, decimal_places=2)

    model_config = {"frozen": True}


Discount = Annotated[
    Union[NoDiscount, PercentageDiscount, FixedDiscount],
    Field(discriminator="type"),
]


class NoTax(BaseModel):
    mode: Literal["NONE"] = "NONE"

    model_config = {"frozen": True}


class ProductTax(BaseModel):
    mode: Literal["BY_PRODUCT"] = "BY_PRODUCT"

    model_config = {"frozen": True}


class TotalTax(BaseModel):
    mode: Literal["BY_TOTAL"] = "BY_TOTAL"
    name: str = Field(..., min_length=1, max_length=50)
    percentage: Money = Field(..., ge=0, le=100, max_digits=5, decimal_places=2)

    model_config = {"frozen": True}


TaxPolicy = Annotated[
    Union[NoTax, ProductTax, TotalTax],
    Field(discriminator="mode"),
]


def discount_from_columns(discount_type: str | DiscountType, amount: Decimal | None):
    """Build the discount variant from persisted columns."""
    kind = DiscountType(discount_type)
    if kind == DiscountType.PERCENTAGE:
        return PercentageDiscount(amount=amount)
    if kind == DiscountType.FIXED:
        return FixedDiscount(amount=amount)
    return NoDiscount()


def discount_columns(discount) -> tuple[str, Decimal]:
    """Flatten a discount variant into (discount_type, discount)."""
    return discount.type, discount.amount


def tax_policy_from_columns(
    tax_mode: str | TaxMode,
    tax_name: str | None = None,
    tax_percentage: Decimal | None = None,
):
    """Build the tax policy variant from persisted columns."""
    mode = TaxMode(tax_mode)
    if mode == TaxMode.BY_TOTAL:
        return TotalTax(name=tax_name, percentage=tax_percentage)
    if mode == TaxMode.BY_PRODUCT:
        return ProductTax()
    return NoTax()


def tax_policy_columns(policy) -> tuple[str, str | None, Decimal | None]:
    """Flatten a tax policy into (tax_mode, tax_name, tax_percentage)."""
    if isinstance(policy, TotalTax):
        return policy.mode, policy.name, policy.percentage
    return policy.mode, None, None
