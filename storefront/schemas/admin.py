"""Admin Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FeatureFlagUpdate(BaseModel):
    enabled: bool = Field(description="New flag value")


class FeatureFlagResponse(BaseModel):
    enabled: bool = Field(description="Current flag value")


class StockUpdate(BaseModel):
    """Schema for PATCH /admin/variants/{id}/stock."""

    stock: int = Field(ge=0, description="New stock level")


class VariantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    sku: str | None = None
    price_cents: int
    stock: int
    updated_at: datetime
