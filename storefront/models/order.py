"""Order model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import TypedDict
from uuid import UUID


class OrderStatus(str, Enum):
    """Order lifecycle status values stored in orders.status."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    PAYMENT_FAILED = "payment_failed"


class Order(TypedDict):
    """Order table row representation.

    Maps directly to the orders table. All amounts are integer cents.
    """

    id: UUID
    user_id: UUID
    status: str
    subtotal_cents: int
    tip_cents: int
    tax_cents: int
    delivery_fee_cents: int
    total_cents: int
    currency: str
    delivery_address: str
    delivery_instructions: str | None
    driver_id: UUID | None
    payment_intent_id: str | None
    delivery_photo_url: str | None
    delivery_notes: str | None
    delivered_at: datetime | None
    created_at: datetime
    updated_at: datetime


class OrderItem(TypedDict):
    """Order item row with the unit price captured at order time."""

    id: UUID
    order_id: UUID
    variant_id: UUID
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    created_at: datetime


class StockLine(TypedDict):
    """A variant/quantity pair moved in or out of inventory."""

    variant_id: UUID
    quantity: int
