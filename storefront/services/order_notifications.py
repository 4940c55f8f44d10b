"""Builders that turn order and driver changes into hub events."""

import logging
from uuid import UUID

from storefront.models.order import Order
from storefront.schemas.auth import UserRole
from storefront.schemas.events import (
    DriverLocationEvent,
    DriverLocationPayload,
    Location,
    OrderAssignedEvent,
    OrderAssignedPayload,
    OrderAvailableEvent,
    OrderAvailablePayload,
    OrderNewEvent,
    OrderNewPayload,
    OrderUpdatedEvent,
    OrderUpdatedPayload,
)
from storefront.services.notification_hub import NotificationHub

logger = logging.getLogger(__name__)


async def notify_new_order(hub: NotificationHub, order: Order) -> None:
    """Tell admins about a new order and drivers that it exists."""
    await hub.publish(
        OrderNewEvent(
            payload=OrderNewPayload(
                order_id=order["id"],
                user_id=order["user_id"],
                total=order["total_cents"],
            )
        ),
        to_roles=[UserRole.ADMIN.value],
    )
    await hub.publish(
        OrderAvailableEvent(
            payload=OrderAvailablePayload(
                order_id=order["id"],
                delivery_address=order["delivery_address"],
            )
        ),
        to_roles=[UserRole.DRIVER.value],
    )


async def notify_order_updated(
    hub: NotificationHub,
    order: Order,
    driver_user_id: UUID | None = None,
) -> int:
    """Publish one order:updated event to the customer, the driver and admins."""
    delivered = await hub.publish(
        OrderUpdatedEvent(
            payload=OrderUpdatedPayload(
                order_id=order["id"],
                status=order["status"],
                user_id=order["user_id"],
                driver_id=order.get("driver_id"),
                total=order["total_cents"],
            )
        ),
        to_users=[order["user_id"], driver_user_id],
        to_roles=[UserRole.ADMIN.value],
    )
    logger.debug("order:updated %s (%s) reached %d connections", order["id"], order["status"], delivered)
    return delivered


async def notify_order_assigned(hub: NotificationHub, order: Order, driver_user_id: UUID) -> int:
    """Send the winning driver the delivery details."""
    return await hub.publish(
        OrderAssignedEvent(
            payload=OrderAssignedPayload(
                order_id=order["id"],
                delivery_address=order["delivery_address"],
            )
        ),
        to_users=[driver_user_id],
    )


async def notify_driver_location(hub: NotificationHub, driver_id: UUID, lat: float, lng: float) -> int:
    """Broadcast a driver's position to every live connection."""
    return await hub.publish(
        DriverLocationEvent(
            payload=DriverLocationPayload(driver_id=driver_id, location=Location(lat=lat, lng=lng))
        ),
        broadcast=True,
    )
