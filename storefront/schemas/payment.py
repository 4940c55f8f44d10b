"""Payment Pydantic schemas for API request/response models."""

from uuid import UUID

from pydantic import BaseModel, Field


class PaymentIntentCreate(BaseModel):
    """Schema for POST /payments/intents."""

    order_id: UUID = Field(description="Order to pay for")
    amount_cents: int | None = Field(default=None, ge=0, description="Amount the client expects to pay")


class PaymentIntentResponse(BaseModel):
    """Schema for payment intent creation response."""

    intent_id: str = Field(description="Stripe PaymentIntent ID")
    client_secret: str = Field(description="Secret for confirming the payment client-side")
    amount_cents: int = Field(description="Charged amount in cents")
    currency: str = Field(description="Currency code")


class StripeConfigResponse(BaseModel):
    enabled: bool = Field(description="Whether payments are configured")
    publishable_key: str | None = Field(default=None, description="Stripe publishable key")
