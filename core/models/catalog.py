"""Catalog item domain models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from utils.money import Money


class QuantityUnit(str, Enum):
    """Unit an item quantity is measured in."""

    DAYS = "DAYS"
    HOURS = "HOURS"
    UNITS = "UNITS"


class CatalogItemCreate(BaseModel):
    """Data required to create a catalog item."""

    business_id: int
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    unit_price: Money = Field(..., ge=0)
    quantity_unit: QuantityUnit = QuantityUnit.UNITS


class CatalogItemUpdate(BaseModel):
    """Data that can be updated on a catalog item. All fields optional."""

    business_id: int | None = None
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    unit_price: Money | None = Field(None, ge=0)
    quantity_unit: QuantityUnit | None = None


class CatalogItem(BaseModel):
    """Full catalog item entity as stored."""

    id: int
    workspace_id: int
    business_id: int
    sequence: int
    name: str
    description: str | None
    unit_price: Money
    quantity_unit: QuantityUnit
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}
