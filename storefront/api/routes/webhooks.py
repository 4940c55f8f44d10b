"""Webhook API routes for external service integrations."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from storefront.api.deps import PaymentServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/stripe",
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhooks",
    description="Receives and processes Stripe webhook events. Requires valid signature.",
)
async def stripe_webhook(request: Request, service: PaymentServiceDep) -> dict[str, str]:
    """Handle Stripe webhook events.

    The Stripe signature is verified before processing.

    Handles:
    - payment_intent.succeeded: moves the pending order to processing
    - payment_intent.payment_failed: marks the pending order payment_failed and restores stock

    Replays and events for orders that already moved on are acknowledged
    without changes.

    Args:
        request: FastAPI request object for reading raw body and headers.
        service: Payment service.

    Returns:
        dict: Acknowledgment message.

    Raises:
        HTTPException: 400 if signature is missing or invalid.
    """
    payload = await request.body()

    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.error("Missing Stripe-Signature header in webhook request")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe-Signature header",
        )

    try:
        event = service.verify_webhook_signature(payload, sig_header)
    except ValueError as e:
        logger.error("Invalid webhook signature: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e

    event_type = event.get("type", "")
    logger.info("Processing Stripe webhook event: %s", event_type)

    order = await service.reconcile(event)
    if order is not None:
        logger.info("Processed %s for order %s", event_type, order["id"])

    # Always acknowledge so Stripe does not retry
    return {"status": "received"}
