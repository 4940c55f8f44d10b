"""Payment intents and Stripe webhook reconciliation."""

import logging
from typing import Any, TypedDict
from uuid import UUID

import sqlalchemy as sa
import stripe

from storefront.core.config import get_settings
from storefront.core.database import Database
from storefront.core.stripe import get_stripe
from storefront.models.order import Order, OrderStatus
from storefront.models.tables import orders, utcnow
from storefront.schemas.auth import UserContext
from storefront.services.errors import (
    AccessDenied,
    AmountMismatch,
    InvalidTransition,
    NotFound,
    PaymentUnavailable,
)
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.order_state_machine import OrderStateMachine
from storefront.services.pricing import ensure_chargeable

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class PaymentIntentResult(TypedDict):
    intent_id: str
    client_secret: str
    amount_cents: int
    currency: str


class PaymentService:
    """Service for Stripe payment intents and webhook-driven order updates."""

    def __init__(
        self,
        database: Database,
        state_machine: OrderStateMachine,
        ledger: InventoryLedger | None = None,
    ) -> None:
        """Initialize payment service with clients."""
        self.database = database
        self.state_machine = state_machine
        self.ledger = ledger or state_machine.ledger
        self.stripe = get_stripe()
        self.settings = get_settings()

    def stripe_config(self) -> dict[str, Any]:
        """Client-side Stripe configuration."""
        return {
            "enabled": self.settings.stripe_enabled,
            "publishable_key": self.settings.stripe_publishable_key or None,
        }

    async def open_intent(
        self,
        order_id: UUID,
        user: UserContext,
        amount_cents: int | None = None,
    ) -> PaymentIntentResult:
        """Create (or return the existing) payment intent for a pending order.

        The charged amount always comes from the stored order total. A
        client-supplied amount is only checked against it.

        Args:
            order_id: Order to pay for.
            user: Requesting user; must own the order or be an admin.
            amount_cents: Optional amount the client expects to pay.

        Returns:
            PaymentIntentResult: Intent ID and client secret for the frontend.

        Raises:
            PaymentUnavailable: If Stripe is not configured.
            NotFound: If the order does not exist.
            AccessDenied: If the user may not pay for this order.
            InvalidTransition: If the order is no longer pending.
            AmountMismatch: If amount_cents differs from the order total.
            AmountBelowMinimum: If the total is under Stripe's minimum charge.
        """
        if not self.settings.stripe_enabled:
            raise PaymentUnavailable()

        order = await self.database.fetch_one(sa.select(orders).where(orders.c.id == order_id))
        if order is None:
            raise NotFound("Order", order_id)

        if order["user_id"] != user.user_id and not user.is_admin:
            raise AccessDenied("You can only pay for your own orders")

        if order["status"] != OrderStatus.PENDING.value:
            raise InvalidTransition(
                order["status"],
                OrderStatus.PROCESSING.value,
                f"Order is not awaiting payment (status: {order['status']})",
            )

        total_cents = order["total_cents"]
        if amount_cents is not None and amount_cents != total_cents:
            raise AmountMismatch(total_cents, amount_cents)
        ensure_chargeable(total_cents, self.settings.stripe_min_charge_cents)

        try:
            if order["payment_intent_id"]:
                intent = self.stripe.PaymentIntent.retrieve(order["payment_intent_id"])
                logger.info("Reusing payment intent %s for order %s", intent.id, order_id)
                return self._intent_result(intent)

            intent = self.stripe.PaymentIntent.create(
                amount=total_cents,
                currency=order["currency"] or self.settings.stripe_currency,
                automatic_payment_methods={"enabled": True},
                metadata={"order_id": str(order_id), "user_id": str(order["user_id"])},
            )
        except stripe.StripeError as e:
            logger.error("Stripe error opening payment intent for order %s: %s", order_id, str(e))
            raise

        async with self.database.transaction() as conn:
            result = await conn.execute(
                sa.update(orders)
                .where(orders.c.id == order_id)
                .where(orders.c.payment_intent_id.is_(None))
                .values(payment_intent_id=intent.id, updated_at=utcnow())
            )
            stored = result.rowcount == 1

        if not stored:
            # A concurrent request attached its intent first; keep only that one
            logger.warning("Order %s already has a payment intent, cancelling %s", order_id, intent.id)
            existing = await self.database.fetch_one(
                sa.select(orders.c.payment_intent_id).where(orders.c.id == order_id)
            )
            try:
                self.stripe.PaymentIntent.cancel(intent.id)
                intent = self.stripe.PaymentIntent.retrieve(existing["payment_intent_id"])
            except stripe.StripeError as e:
                logger.error(
                    "Stripe error replacing duplicate intent %s for order %s: %s",
                    intent.id,
                    order_id,
                    str(e),
                )
                raise
        else:
            logger.info("Created payment intent %s for order %s (%d cents)", intent.id, order_id, total_cents)

        return self._intent_result(intent)

    @staticmethod
    def _intent_result(intent: Any) -> PaymentIntentResult:
        return PaymentIntentResult(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            amount_cents=intent.amount,
            currency=intent.currency,
        )

    def verify_webhook_signature(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify Stripe webhook signature and return event.

        Args:
            payload: Raw webhook payload bytes.
            sig_header: Stripe-Signature header value.

        Returns:
            dict: Verified Stripe event.

        Raises:
            ValueError: If signature is invalid or the webhook secret is not configured.
        """
        if not self.settings.stripe_webhook_secret:
            raise ValueError("Stripe webhook secret is not configured. Please set STRIPE_WEBHOOK_SECRET.")

        try:
            return self.stripe.Webhook.construct_event(
                payload, sig_header, self.settings.stripe_webhook_secret
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise ValueError("Invalid webhook signature") from e

    async def reconcile(self, event: dict[str, Any]) -> Order | None:
        """Apply a verified payment event to its order.

        Orders are located by payment intent ID. Both outcomes only apply to
        a pending order, so replayed or out-of-order deliveries are no-ops.

        Args:
            event: Verified Stripe event.

        Returns:
            Order | None: The updated order, or None if nothing changed.
        """
        event_type = event.get("type", "")
        if event_type == PAYMENT_SUCCEEDED:
            target = OrderStatus.PROCESSING
        elif event_type == PAYMENT_FAILED:
            target = OrderStatus.PAYMENT_FAILED
        else:
            logger.debug("Unhandled webhook event type: %s", event_type)
            return None

        intent_id = event["data"]["object"].get("id")
        if not intent_id:
            logger.warning("Webhook %s missing payment intent id", event_type)
            return None

        async with self.database.transaction() as conn:
            result = await conn.execute(
                sa.update(orders)
                .where(orders.c.payment_intent_id == intent_id)
                .where(orders.c.status == OrderStatus.PENDING.value)
                .values(status=target.value, updated_at=utcnow())
                .returning(*orders.c)
            )
            row = result.mappings().first()

            if row is None:
                existing = (
                    await conn.execute(
                        sa.select(orders.c.id, orders.c.status).where(
                            orders.c.payment_intent_id == intent_id
                        )
                    )
                ).mappings().first()
                if existing is None:
                    logger.warning("No order found for payment intent %s", intent_id)
                else:
                    logger.info(
                        "Ignoring %s for order %s in status %s",
                        event_type,
                        existing["id"],
                        existing["status"],
                    )
                return None

            order: Order = dict(row)
            if target is OrderStatus.PAYMENT_FAILED:
                lines = await self.ledger.items_for_order(conn, order["id"])
                await self.ledger.restore(conn, lines)

        logger.info("Order %s marked %s by %s", order["id"], target.value, event_type)
        await self.state_machine.publish_update(order)
        return order
