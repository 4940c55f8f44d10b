"""Order placement, queries, cancellation and statistics."""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

import sqlalchemy as sa

from storefront.core.cache import TTLCache
from storefront.core.config import get_settings
from storefront.core.database import Database
from storefront.models.order import Order, OrderStatus, StockLine
from storefront.models.tables import order_items, orders, utcnow, variants
from storefront.schemas.auth import UserContext, UserRole
from storefront.services.errors import AccessDenied, InvalidTransition, NotFound, OrdersPaused
from storefront.services.order_notifications import notify_new_order
from storefront.services.order_state_machine import (
    ORDER_STATS_CACHE_KEY,
    TERMINAL_STATUSES,
    OrderStateMachine,
)
from storefront.services.pricing import compute_totals, dollars_to_cents

logger = logging.getLogger(__name__)

ACCEPT_ORDERS_FLAG_KEY = "feature:accept_orders"
FEATURE_FLAG_TTL_SECONDS = 24 * 60 * 60

CUSTOMER_CANCELLABLE = frozenset({OrderStatus.PENDING.value, OrderStatus.PROCESSING.value})
NON_REVENUE_STATUSES = (OrderStatus.CANCELLED.value, OrderStatus.PAYMENT_FAILED.value)

MAX_PAGE_SIZE = 50


class OrderService:
    """Customer- and staff-facing order operations."""

    def __init__(self, database: Database, state_machine: OrderStateMachine, cache: TTLCache) -> None:
        """Initialize order service.

        Args:
            database: Storage for orders, items and variants.
            state_machine: Applies every status change.
            cache: Holds the accept-orders flag and cached statistics.
        """
        self.database = database
        self.state_machine = state_machine
        self.ledger = state_machine.ledger
        self.cache = cache

    # Feature flag

    def is_accepting_orders(self) -> bool:
        """Whether new orders may be placed. Defaults to enabled."""
        return self.cache.get(ACCEPT_ORDERS_FLAG_KEY) != "0"

    def set_accepting_orders(self, enabled: bool) -> bool:
        self.cache.set(ACCEPT_ORDERS_FLAG_KEY, "1" if enabled else "0", FEATURE_FLAG_TTL_SECONDS)
        logger.info("Order acceptance %s", "enabled" if enabled else "disabled")
        return enabled

    # Commands

    async def create_order(
        self,
        user: UserContext,
        items: list[StockLine],
        delivery_address: str,
        delivery_instructions: str | None = None,
        tip: Decimal = Decimal("0"),
    ) -> dict[str, Any]:
        """Place an order: reserve stock, price it and record it atomically.

        Args:
            user: Ordering customer.
            items: Variant/quantity pairs; duplicates are merged.
            delivery_address: Where to deliver.
            delivery_instructions: Optional notes for the driver.
            tip: Tip in dollars, rounded half-up to the cent.

        Returns:
            dict: The new order with its items.

        Raises:
            AccessDenied: If the user is not a customer.
            OrdersPaused: If new orders are switched off.
            NotFound: If a variant does not exist.
            InsufficientStock: If any item cannot be reserved.
        """
        if user.role != UserRole.CUSTOMER.value:
            raise AccessDenied("Only customers can place orders")
        if not self.is_accepting_orders():
            raise OrdersPaused()
        if not items:
            raise ValueError("Order must contain at least one item")

        tip_cents = dollars_to_cents(tip)

        async with self.database.transaction() as conn:
            reserved = await self.ledger.reserve(conn, items)
            totals = compute_totals(sum(line.line_total_cents for line in reserved), tip_cents)

            result = await conn.execute(
                sa.insert(orders)
                .values(
                    user_id=user.user_id,
                    status=OrderStatus.PENDING.value,
                    subtotal_cents=totals.subtotal_cents,
                    tip_cents=totals.tip_cents,
                    tax_cents=totals.tax_cents,
                    delivery_fee_cents=totals.delivery_fee_cents,
                    total_cents=totals.total_cents,
                    currency=get_settings().stripe_currency,
                    delivery_address=delivery_address,
                    delivery_instructions=delivery_instructions,
                )
                .returning(*orders.c)
            )
            order: Order = dict(result.mappings().one())

            created_items = []
            for line in reserved:
                item_result = await conn.execute(
                    sa.insert(order_items)
                    .values(
                        order_id=order["id"],
                        variant_id=line.variant_id,
                        quantity=line.quantity,
                        unit_price_cents=line.unit_price_cents,
                        line_total_cents=line.line_total_cents,
                    )
                    .returning(*order_items.c)
                )
                created_items.append({**item_result.mappings().one(), "variant_name": line.variant_name})

        logger.info(
            "Order %s created for user %s: %d items, %d cents",
            order["id"],
            user.user_id,
            len(created_items),
            order["total_cents"],
        )

        await notify_new_order(self.state_machine.hub, order)
        self.cache.delete(ORDER_STATS_CACHE_KEY)
        return {**order, "items": created_items}

    async def cancel_order(self, order_id: UUID, user: UserContext) -> Order:
        """Cancel an order on behalf of its owner or an admin.

        Customers may only cancel before the order is ready. Admins may
        cancel any active order.

        Raises:
            NotFound: If the order does not exist.
            AccessDenied: If the user is neither the owner nor an admin.
            InvalidTransition: If the order can no longer be cancelled.
        """
        order = await self._get_order_row(order_id)
        if order["user_id"] != user.user_id and not user.is_admin:
            raise AccessDenied("You can only cancel your own orders")
        if not user.is_admin and order["status"] not in CUSTOMER_CANCELLABLE:
            raise InvalidTransition(
                order["status"],
                OrderStatus.CANCELLED.value,
                "Order cannot be cancelled at this stage",
            )
        return await self.state_machine.transition(order_id, OrderStatus.CANCELLED)

    async def update_status(
        self,
        order_id: UUID,
        status: OrderStatus,
        driver_id: UUID | None = None,
    ) -> Order:
        """Staff status change; delegates validation to the state machine."""
        return await self.state_machine.transition(order_id, status, driver_id)

    async def set_variant_stock(self, variant_id: UUID, stock: int) -> dict[str, Any]:
        """Overwrite a variant's stock level.

        Raises:
            ValueError: If stock is negative.
            NotFound: If the variant does not exist.
        """
        async with self.database.transaction() as conn:
            variant = await self.ledger.set_stock(conn, variant_id, stock)
        return variant

    # Queries

    async def _get_order_row(self, order_id: UUID) -> Order:
        order = await self.database.fetch_one(sa.select(orders).where(orders.c.id == order_id))
        if order is None:
            raise NotFound("Order", order_id)
        return order

    async def _items_for(self, order_ids: list[UUID]) -> dict[UUID, list[dict[str, Any]]]:
        if not order_ids:
            return {}
        rows = await self.database.fetch_all(
            sa.select(order_items, variants.c.name.label("variant_name"))
            .join(variants, variants.c.id == order_items.c.variant_id)
            .where(order_items.c.order_id.in_(order_ids))
            .order_by(order_items.c.created_at, order_items.c.id)
        )
        grouped: dict[UUID, list[dict[str, Any]]] = {order_id: [] for order_id in order_ids}
        for row in rows:
            grouped[row["order_id"]].append(row)
        return grouped

    async def get_order(self, order_id: UUID, user: UserContext) -> dict[str, Any]:
        """Get an order with its items.

        Raises:
            NotFound: If the order does not exist.
            AccessDenied: If a customer asks for someone else's order.
        """
        order = await self._get_order_row(order_id)
        if user.role not in (UserRole.ADMIN.value, UserRole.DRIVER.value) and order["user_id"] != user.user_id:
            raise AccessDenied()
        items = await self._items_for([order_id])
        return {**order, "items": items[order_id]}

    async def list_orders(
        self,
        user: UserContext,
        status: OrderStatus | None = None,
        user_id: UUID | None = None,
        driver_id: UUID | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """List orders, newest first.

        Non-admins only ever see their own orders; the user and driver
        filters apply to admins.
        """
        statement = sa.select(orders)
        if user.is_admin:
            if user_id is not None:
                statement = statement.where(orders.c.user_id == user_id)
            if driver_id is not None:
                statement = statement.where(orders.c.driver_id == driver_id)
        else:
            statement = statement.where(orders.c.user_id == user.user_id)
        if status is not None:
            statement = statement.where(orders.c.status == OrderStatus(status).value)

        statement = (
            statement.order_by(orders.c.created_at.desc())
            .limit(min(max(limit, 1), MAX_PAGE_SIZE))
            .offset(max(offset, 0))
        )
        rows = await self.database.fetch_all(statement)
        items = await self._items_for([row["id"] for row in rows])
        return [{**row, "items": items[row["id"]]} for row in rows]

    async def get_stats(self) -> dict[str, Any]:
        """Order counts by status and revenue, cached until the next order change."""
        cached = self.cache.get(ORDER_STATS_CACHE_KEY)
        if cached is not None:
            return cached

        by_status_rows = await self.database.fetch_all(
            sa.select(orders.c.status, sa.func.count().label("count")).group_by(orders.c.status)
        )
        revenue_row = await self.database.fetch_one(
            sa.select(
                sa.func.count().label("total_orders"),
                sa.func.coalesce(sa.func.sum(orders.c.total_cents), 0).label("revenue_cents"),
            ).where(orders.c.status.not_in(NON_REVENUE_STATUSES))
        )

        total_orders = int(revenue_row["total_orders"])
        revenue_cents = int(revenue_row["revenue_cents"])
        stats = {
            "total_orders": total_orders,
            "total_revenue_cents": revenue_cents,
            "average_order_value_cents": revenue_cents // total_orders if total_orders else 0,
            "orders_by_status": {row["status"]: int(row["count"]) for row in by_status_rows},
            "active_orders": sum(
                int(row["count"]) for row in by_status_rows if OrderStatus(row["status"]) not in TERMINAL_STATUSES
            ),
            "generated_at": utcnow(),
        }
        self.cache.set(ORDER_STATS_CACHE_KEY, stats, get_settings().order_stats_cache_ttl)
        return stats
