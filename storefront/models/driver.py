"""Driver model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Driver(TypedDict):
    """Drivers table row representation."""

    id: UUID
    user_id: UUID
    vehicle_type: str | None
    license_plate: str | None
    available: bool
    created_at: datetime


class DriverLocation(TypedDict):
    """Last reported position of a driver."""

    driver_id: UUID
    lat: float
    lng: float
    updated_at: datetime
