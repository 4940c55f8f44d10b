"""Payment API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from storefront.api.deps import PaymentServiceDep, require_roles
from storefront.schemas.auth import UserContext, UserRole
from storefront.schemas.payment import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    StripeConfigResponse,
)

router = APIRouter(prefix="/payments", tags=["payments"])

PayingUser = Annotated[UserContext, Depends(require_roles(UserRole.CUSTOMER, UserRole.ADMIN))]


@router.get(
    "/config",
    response_model=StripeConfigResponse,
    summary="Get Stripe configuration",
    description="Returns whether payments are enabled and the publishable key for the frontend.",
)
async def get_payment_config(service: PaymentServiceDep) -> StripeConfigResponse:
    return StripeConfigResponse(**service.stripe_config())


@router.post(
    "/intents",
    response_model=PaymentIntentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a payment intent",
    description="Creates a Stripe PaymentIntent for a pending order, or returns the one already opened.",
)
async def create_payment_intent(
    data: PaymentIntentCreate,
    user: PayingUser,
    service: PaymentServiceDep,
) -> PaymentIntentResponse:
    """Open a payment intent for an order.

    The amount is always the stored order total; ``amount_cents`` is only
    compared against it.

    Raises:
        OrderError: payment_unavailable, not_found, access_denied,
            invalid_transition, amount_mismatch or amount_below_minimum.
    """
    result = await service.open_intent(data.order_id, user, data.amount_cents)
    return PaymentIntentResponse(**result)
