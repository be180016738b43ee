"""Client (buyer) domain models."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class ClientCreate(BaseModel):
    """Data required to create a client."""

    name: str = Field(..., min_length=1, max_length=255)
    business_name: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    tax_id: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=10000)


class ClientUpdate(BaseModel):
    """Data that can be updated on a client. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    business_name: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    tax_id: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=10000)


class Client(BaseModel):
    """Full client entity as stored."""

    id: int
    workspace_id: int
    sequence: int
    name: str
    business_name: str | None
    email: str | None
    phone: str | None
    address: str | None
    tax_id: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        """Company name when set, otherwise the contact name."""
        return self.business_name or self.name
