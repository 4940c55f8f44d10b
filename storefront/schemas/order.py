"""Order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from storefront.models.order import OrderStatus


class OrderItemCreate(BaseModel):
    """A single variant line in a new order."""

    variant_id: UUID = Field(description="Variant to order")
    quantity: int = Field(ge=1, description="Quantity ordered")


class OrderCreate(BaseModel):
    """Schema for placing an order via POST /orders."""

    items: list[OrderItemCreate] = Field(min_length=1, description="Items to order")
    delivery_address: str = Field(min_length=1, max_length=500, description="Delivery address")
    delivery_instructions: str | None = Field(default=None, max_length=1000, description="Notes for the driver")
    tip: Decimal = Field(default=Decimal("0"), ge=0, description="Tip in dollars")


class OrderItemResponse(BaseModel):
    """Schema for an order line with its price snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order item identifier")
    variant_id: UUID = Field(description="Variant ordered")
    variant_name: str | None = Field(default=None, description="Variant name")
    quantity: int = Field(description="Quantity ordered")
    unit_price_cents: int = Field(description="Unit price in cents at order time")
    line_total_cents: int = Field(description="Line total in cents")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order unique identifier")
    user_id: UUID = Field(description="Ordering customer")
    status: OrderStatus = Field(description="Order status")
    subtotal_cents: int = Field(description="Sum of line totals in cents")
    tip_cents: int = Field(description="Tip in cents")
    tax_cents: int = Field(default=0, description="Tax in cents")
    delivery_fee_cents: int = Field(default=0, description="Delivery fee in cents")
    total_cents: int = Field(description="Total amount in cents")
    currency: str = Field(default="usd", description="Currency code")
    delivery_address: str = Field(description="Delivery address")
    delivery_instructions: str | None = Field(default=None, description="Notes for the driver")
    driver_id: UUID | None = Field(default=None, description="Assigned driver")
    payment_intent_id: str | None = Field(default=None, description="Stripe PaymentIntent ID")
    delivery_photo_url: str | None = Field(default=None, description="Proof-of-delivery photo")
    delivery_notes: str | None = Field(default=None, description="Driver's delivery notes")
    delivered_at: datetime | None = Field(default=None, description="Delivery timestamp")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last change timestamp")
    items: list[OrderItemResponse] = Field(default_factory=list, description="Order items")


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    items: list[OrderResponse] = Field(description="List of orders")


class OrderStatusUpdate(BaseModel):
    """Schema for PATCH /orders/{id}/status."""

    status: OrderStatus = Field(description="Target status")
    driver_id: UUID | None = Field(default=None, description="Driver to assign when moving to delivering")


class OrderStatsResponse(BaseModel):
    """Aggregated order statistics."""

    total_orders: int = Field(description="Orders excluding cancelled and failed payments")
    total_revenue_cents: int = Field(description="Revenue in cents")
    average_order_value_cents: int = Field(description="Average order value in cents")
    orders_by_status: dict[str, int] = Field(description="Order count per status")
    active_orders: int = Field(description="Orders not yet in a terminal status")
    generated_at: datetime = Field(description="When the figures were computed")
