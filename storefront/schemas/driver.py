"""Driver Pydantic schemas for API request/response models."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# Base64 of a 3 MiB photo
MAX_PHOTO_BASE64_LENGTH = 4 * 1024 * 1024


class LocationUpdate(BaseModel):
    """Schema for POST /driver/location."""

    lat: float = Field(ge=-90, le=90, description="Latitude")
    lng: float = Field(ge=-180, le=180, description="Longitude")


class DriverLocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    driver_id: UUID
    lat: float
    lng: float
    updated_at: datetime


class AvailabilityUpdate(BaseModel):
    """Schema for PATCH /driver/availability."""

    available: bool = Field(description="Whether the driver is taking deliveries")


class DriverResponse(BaseModel):
    """Schema for driver API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Driver identifier")
    user_id: UUID = Field(description="User account behind the driver")
    vehicle_type: str | None = Field(default=None, description="Vehicle type")
    license_plate: str | None = Field(default=None, description="License plate")
    available: bool = Field(description="Whether the driver is taking deliveries")
    created_at: datetime = Field(description="Creation timestamp")


class DriverProfileResponse(DriverResponse):
    active_deliveries: int = Field(description="Orders currently being delivered")
    location: DriverLocationResponse | None = Field(default=None, description="Last reported position")


class DeliveryComplete(BaseModel):
    """Schema for POST /driver/orders/{id}/complete."""

    notes: str | None = Field(default=None, max_length=1000, description="Delivery notes")
    photo: str | None = Field(
        default=None,
        max_length=MAX_PHOTO_BASE64_LENGTH,
        description="Base64 proof-of-delivery photo",
    )


class EarningsDay(BaseModel):
    day: date = Field(description="Delivery day")
    deliveries: int = Field(description="Orders delivered that day")
    tip_cents: int = Field(description="Tips earned that day")
    delivery_fee_cents: int = Field(description="Delivery fees earned that day")
    earnings_cents: int = Field(description="Tips plus delivery fees")


class EarningsResponse(BaseModel):
    """Schema for GET /driver/earnings."""

    total_deliveries: int = Field(description="Orders delivered in the period")
    total_earnings_cents: int = Field(description="Tips plus delivery fees in the period")
    daily: list[EarningsDay] = Field(description="Per-day breakdown, newest first")


class NearbyDriverResponse(BaseModel):
    id: UUID = Field(description="Driver identifier")
    lat: float
    lng: float
    distance_km: float = Field(description="Distance from the queried point")
    updated_at: datetime = Field(description="When the position was reported")


class NearbyDriverListResponse(BaseModel):
    """Schema for GET /driver/nearby."""

    items: list[NearbyDriverResponse] = Field(description="Available drivers, nearest first")
