"""Driver claim and delivery completion."""

import asyncio
import base64
import binascii
import logging
from datetime import datetime
from pathlib import Path
from uuid import UUID

import sqlalchemy as sa

from storefront.core.config import get_settings
from storefront.core.database import Database
from storefront.models.order import Order, OrderStatus
from storefront.models.tables import orders, utcnow
from storefront.services.errors import (
    AccessDenied,
    AlreadyClaimed,
    InvalidTransition,
    NoLongerAvailable,
    NotFound,
)
from storefront.services.order_notifications import notify_order_assigned
from storefront.services.order_state_machine import (
    OrderStateMachine,
    fetch_driver_user_id,
    fetch_order,
)

logger = logging.getLogger(__name__)

CLAIMABLE_STATUSES = (
    OrderStatus.PENDING.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.READY.value,
)


def _write_photo(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def store_delivery_photo(order_id: UUID, photo_base64: str) -> str | None:
    """Decode and save a proof-of-delivery photo.

    Accepts raw base64 or a ``data:image/...;base64,`` URL.

    Returns:
        The public reference for the stored file, or None if the photo could
        not be decoded or written.
    """
    settings = get_settings()
    encoded = photo_base64.split(",", 1)[1] if photo_base64.startswith("data:") else photo_base64

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning("Discarding undecodable delivery photo for order %s: %s", order_id, e)
        return None

    filename = f"{order_id}-{int(datetime.now().timestamp() * 1000)}.jpg"
    try:
        await asyncio.to_thread(_write_photo, Path(settings.delivery_photo_dir) / filename, data)
    except OSError as e:
        logger.error("Failed to store delivery photo for order %s: %s", order_id, e)
        return None

    return f"{settings.delivery_photo_url_prefix.rstrip('/')}/{filename}"


async def remove_delivery_photo(photo_url: str) -> None:
    """Delete a stored photo by the reference ``store_delivery_photo`` returned."""
    filename = photo_url.rsplit("/", 1)[-1]
    path = Path(get_settings().delivery_photo_dir) / filename
    try:
        await asyncio.to_thread(path.unlink, missing_ok=True)
    except OSError as e:
        logger.error("Failed to remove delivery photo %s: %s", path, e)


class FulfillmentService:
    """Assigns orders to drivers and records deliveries."""

    def __init__(self, database: Database, state_machine: OrderStateMachine) -> None:
        self.database = database
        self.state_machine = state_machine

    async def claim(self, order_id: UUID, driver_id: UUID) -> Order:
        """Atomically assign an order to a driver.

        Exactly one of any number of concurrent claims on the same order
        succeeds. The assignment and the move to delivering are one
        conditional update, so there is no window between checking and
        writing.

        Args:
            order_id: Order to claim.
            driver_id: Claiming driver's ID (availability already checked).

        Returns:
            Order: The claimed order, now delivering.

        Raises:
            NotFound: If the order does not exist.
            AlreadyClaimed: If a driver, including this one, holds the order.
            NoLongerAvailable: If the order left the claimable statuses.
        """
        async with self.database.transaction() as conn:
            result = await conn.execute(
                sa.update(orders)
                .where(orders.c.id == order_id)
                .where(orders.c.status.in_(CLAIMABLE_STATUSES))
                .where(orders.c.driver_id.is_(None))
                .values(
                    driver_id=driver_id,
                    status=OrderStatus.DELIVERING.value,
                    updated_at=utcnow(),
                )
                .returning(*orders.c)
            )
            row = result.mappings().first()

            if row is None:
                current = await fetch_order(conn, order_id)
                if current is None:
                    raise NotFound("Order", order_id)
                if current["driver_id"] is not None:
                    logger.info(
                        "Driver %s lost claim on order %s (held by %s)",
                        driver_id,
                        order_id,
                        current["driver_id"],
                    )
                    raise AlreadyClaimed(order_id)
                raise NoLongerAvailable(order_id, current["status"])

            order: Order = dict(row)
            driver_user_id = await fetch_driver_user_id(conn, driver_id)

        logger.info("Order %s claimed by driver %s", order_id, driver_id)
        await self.state_machine.publish_update(order, driver_user_id)
        if driver_user_id is not None:
            await notify_order_assigned(self.state_machine.hub, order, driver_user_id)
        return order

    async def complete(
        self,
        order_id: UUID,
        driver_id: UUID,
        notes: str | None = None,
        photo_base64: str | None = None,
    ) -> Order:
        """Mark a delivering order as delivered by its assigned driver.

        The assignment and status are checked before the photo touches disk.
        The transition re-checks both under lock; if it still fails, the
        stored photo is removed.

        Raises:
            NotFound: If the order does not exist.
            AccessDenied: If the order is assigned to another driver.
            InvalidTransition: If the order is not delivering.
        """
        changes: dict = {"delivered_at": utcnow()}
        if notes:
            changes["delivery_notes"] = notes

        photo_url = None
        if photo_base64:
            await self._check_completable(order_id, driver_id)
            photo_url = await store_delivery_photo(order_id, photo_base64)
            if photo_url:
                changes["delivery_photo_url"] = photo_url

        try:
            return await self.state_machine.transition(
                order_id,
                OrderStatus.DELIVERED,
                expected_driver_id=driver_id,
                changes=changes,
            )
        except Exception:
            if photo_url:
                await remove_delivery_photo(photo_url)
            raise

    async def _check_completable(self, order_id: UUID, driver_id: UUID) -> None:
        current = await self.database.fetch_one(sa.select(orders).where(orders.c.id == order_id))
        if current is None:
            raise NotFound("Order", order_id)
        if current["driver_id"] != driver_id:
            raise AccessDenied("This order is not assigned to you")
        if current["status"] != OrderStatus.DELIVERING.value:
            raise InvalidTransition(current["status"], OrderStatus.DELIVERED.value)

    async def list_available(self, limit: int = 20) -> list[Order]:
        """Ready orders waiting for a driver, oldest first."""
        return await self.database.fetch_all(
            sa.select(orders)
            .where(orders.c.status == OrderStatus.READY.value)
            .where(orders.c.driver_id.is_(None))
            .order_by(orders.c.created_at.asc())
            .limit(limit)
        )

    async def list_active(self, driver_id: UUID) -> list[Order]:
        """Orders the driver is currently delivering, newest first."""
        return await self.database.fetch_all(
            sa.select(orders)
            .where(orders.c.driver_id == driver_id)
            .where(orders.c.status == OrderStatus.DELIVERING.value)
            .order_by(orders.c.created_at.desc())
        )
