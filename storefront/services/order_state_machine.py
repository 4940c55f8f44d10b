"""Order lifecycle state machine.

``transition`` is the only way an order's status changes through business
flow. The read, the validation and the write happen in one transaction, and
the write is a compare-and-swap on the status that was read, so two
concurrent callers can never both move the same order out of one state.
"""

import logging
from typing import Any
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection

from storefront.core.cache import TTLCache
from storefront.core.database import Database
from storefront.models.order import Order, OrderStatus
from storefront.models.tables import drivers, orders, utcnow
from storefront.services.errors import AccessDenied, InvalidTransition, NotFound
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.notification_hub import NotificationHub
from storefront.services.order_notifications import notify_order_updated

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERING, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERING: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.PAYMENT_FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)

# Cached order statistics, dropped on every order change
ORDER_STATS_CACHE_KEY = "analytics:orders"


def can_transition(current: str, target: str) -> bool:
    """Check whether ``current -> target`` is in the transition table."""
    try:
        current_status = OrderStatus(current)
        target_status = OrderStatus(target)
    except ValueError:
        return False
    return target_status in ALLOWED_TRANSITIONS[current_status]


async def fetch_order(conn: AsyncConnection, order_id: UUID, for_update: bool = False) -> Order | None:
    """Load one order row on an open connection."""
    statement = sa.select(orders).where(orders.c.id == order_id)
    if for_update:
        statement = statement.with_for_update()
    row = (await conn.execute(statement)).mappings().first()
    return dict(row) if row else None


async def fetch_driver_user_id(conn: AsyncConnection, driver_id: UUID | None) -> UUID | None:
    """Resolve the user account behind a driver ID."""
    if driver_id is None:
        return None
    result = await conn.execute(sa.select(drivers.c.user_id).where(drivers.c.id == driver_id))
    return result.scalar_one_or_none()


class OrderStateMachine:
    """Validates and applies order status transitions."""

    def __init__(
        self,
        database: Database,
        hub: NotificationHub,
        cache: TTLCache | None = None,
        ledger: InventoryLedger | None = None,
    ) -> None:
        """Initialize the state machine.

        Args:
            database: Storage used for the transactional read and write.
            hub: Hub that receives order:updated events after commit.
            cache: Cache holding order statistics to invalidate.
            ledger: Inventory ledger used to restore stock on cancellation.
        """
        self.database = database
        self.hub = hub
        self.cache = cache
        self.ledger = ledger or InventoryLedger()

    async def transition(
        self,
        order_id: UUID,
        target: OrderStatus | str,
        driver_id: UUID | None = None,
        *,
        expected_driver_id: UUID | None = None,
        changes: dict[str, Any] | None = None,
    ) -> Order:
        """Move an order to a new status.

        Cancellation additionally returns every item's quantity to stock in
        the same transaction as the status write.

        Args:
            order_id: The order's UUID.
            target: Desired status.
            driver_id: Driver to assign when moving into delivering.
            expected_driver_id: Require the order to be assigned to this driver.
            changes: Extra columns written with the status (delivery notes, photo).

        Returns:
            Order: The updated order row.

        Raises:
            NotFound: If the order does not exist.
            AccessDenied: If expected_driver_id does not match the assignment.
            InvalidTransition: If the target is not allowed from the current status.
        """
        try:
            target_status = OrderStatus(target)
        except ValueError as e:
            raise InvalidTransition("unknown", str(target), f"Unknown order status: {target}") from e

        async with self.database.transaction() as conn:
            current = await fetch_order(conn, order_id, for_update=True)
            if current is None:
                raise NotFound("Order", order_id)

            if expected_driver_id is not None and current["driver_id"] != expected_driver_id:
                raise AccessDenied("This order is not assigned to you")

            if not can_transition(current["status"], target_status):
                raise InvalidTransition(current["status"], target_status.value)

            values: dict[str, Any] = dict(changes or {})
            values.update(status=target_status.value, updated_at=utcnow())
            if target_status is OrderStatus.DELIVERING and driver_id is not None:
                values["driver_id"] = driver_id

            result = await conn.execute(
                sa.update(orders)
                .where(orders.c.id == order_id)
                .where(orders.c.status == current["status"])
                .values(**values)
                .returning(*orders.c)
            )
            row = result.mappings().first()
            if row is None:
                # Another writer moved the order between our read and write
                latest = await fetch_order(conn, order_id)
                observed = latest["status"] if latest else current["status"]
                raise InvalidTransition(observed, target_status.value)

            if target_status is OrderStatus.CANCELLED:
                lines = await self.ledger.items_for_order(conn, order_id)
                await self.ledger.restore(conn, lines)
                logger.info("Restored stock for %d items of cancelled order %s", len(lines), order_id)

            order: Order = dict(row)
            driver_user_id = await fetch_driver_user_id(conn, order["driver_id"])

        logger.info("Order %s: %s -> %s", order_id, current["status"], target_status.value)
        await self.publish_update(order, driver_user_id)
        return order

    async def publish_update(self, order: Order, driver_user_id: UUID | None = None) -> None:
        """Run the after-commit hooks for an order change.

        Drops cached statistics and fans out one order:updated event.
        """
        if self.cache is not None:
            self.cache.delete(ORDER_STATS_CACHE_KEY)

        if driver_user_id is None and order.get("driver_id") is not None:
            async with self.database.engine.connect() as conn:
                driver_user_id = await fetch_driver_user_id(conn, order["driver_id"])

        await notify_order_updated(self.hub, order, driver_user_id)
