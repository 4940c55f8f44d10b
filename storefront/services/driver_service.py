"""Driver profile, availability and location."""

import logging
import math
from datetime import date
from typing import Any
from uuid import UUID

import sqlalchemy as sa

from storefront.core.database import Database
from storefront.models.driver import Driver, DriverLocation
from storefront.models.order import OrderStatus
from storefront.models.tables import driver_locations, drivers, orders, utcnow
from storefront.services.errors import DriverUnavailable, NotFound
from storefront.services.notification_hub import NotificationHub
from storefront.services.order_notifications import notify_driver_location

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
DEFAULT_NEARBY_RADIUS_KM = 5.0
NEARBY_LIMIT = 50


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


class DriverService:
    """Service for driver self-management."""

    def __init__(self, database: Database, hub: NotificationHub) -> None:
        self.database = database
        self.hub = hub

    async def get_driver_by_user(self, user_id: UUID) -> Driver | None:
        """Get the driver profile for a user account.

        Args:
            user_id: The user's UUID.

        Returns:
            Driver | None: The driver row or None if the user is not a driver.
        """
        return await self.database.fetch_one(sa.select(drivers).where(drivers.c.user_id == user_id))

    async def _require_driver(self, user_id: UUID) -> Driver:
        driver = await self.get_driver_by_user(user_id)
        if driver is None:
            raise NotFound("Driver profile", user_id)
        return driver

    async def get_profile(self, user_id: UUID) -> dict[str, Any]:
        """Get the driver profile with its active delivery count and last location."""
        driver = await self._require_driver(user_id)
        active = await self.database.fetch_one(
            sa.select(sa.func.count().label("count"))
            .select_from(orders)
            .where(orders.c.driver_id == driver["id"])
            .where(orders.c.status == OrderStatus.DELIVERING.value)
        )
        location = await self.database.fetch_one(
            sa.select(driver_locations).where(driver_locations.c.driver_id == driver["id"])
        )
        return {**driver, "active_deliveries": int(active["count"]), "location": location}

    async def get_available_driver(self, user_id: UUID) -> Driver:
        """Get the user's driver profile, requiring it to be available.

        Raises:
            DriverUnavailable: If there is no profile or the driver is off duty.
        """
        driver = await self.get_driver_by_user(user_id)
        if driver is None or not driver["available"]:
            raise DriverUnavailable()
        return driver

    async def set_availability(self, user_id: UUID, available: bool) -> Driver:
        async with self.database.transaction() as conn:
            result = await conn.execute(
                sa.update(drivers)
                .where(drivers.c.user_id == user_id)
                .values(available=available)
                .returning(*drivers.c)
            )
            row = result.mappings().first()
        if row is None:
            raise NotFound("Driver profile", user_id)
        logger.info("Driver %s is now %s", row["id"], "available" if available else "unavailable")
        return dict(row)

    async def update_location(self, user_id: UUID, lat: float, lng: float) -> DriverLocation:
        """Record the driver's position and broadcast it to live clients.

        Raises:
            NotFound: If the user has no driver profile.
            ValueError: If the coordinates are out of range.
        """
        if not -90 <= lat <= 90 or not -180 <= lng <= 180:
            raise ValueError("Coordinates out of range")

        driver = await self._require_driver(user_id)
        now = utcnow()

        async with self.database.transaction() as conn:
            result = await conn.execute(
                sa.update(driver_locations)
                .where(driver_locations.c.driver_id == driver["id"])
                .values(lat=lat, lng=lng, updated_at=now)
                .returning(*driver_locations.c)
            )
            row = result.mappings().first()
            if row is None:
                result = await conn.execute(
                    sa.insert(driver_locations)
                    .values(driver_id=driver["id"], lat=lat, lng=lng, updated_at=now)
                    .returning(*driver_locations.c)
                )
                row = result.mappings().one()
            location: DriverLocation = dict(row)

        await notify_driver_location(self.hub, driver["id"], lat, lng)
        return location

    async def get_earnings(
        self,
        user_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> dict[str, Any]:
        """Summarize the driver's delivered orders by day, newest day first.

        A driver earns the delivery fee and the tip of every order they
        deliver. Days are taken from ``delivered_at`` (or the last update for
        orders delivered without one); both bounds are inclusive.

        Raises:
            NotFound: If the user has no driver profile.
        """
        driver = await self._require_driver(user_id)
        rows = await self.database.fetch_all(
            sa.select(
                orders.c.tip_cents,
                orders.c.delivery_fee_cents,
                sa.func.coalesce(orders.c.delivered_at, orders.c.updated_at).label("delivered_on"),
            )
            .where(orders.c.driver_id == driver["id"])
            .where(orders.c.status == OrderStatus.DELIVERED.value)
        )

        daily: dict[date, dict[str, Any]] = {}
        for row in rows:
            day = row["delivered_on"].date()
            if (start and day < start) or (end and day > end):
                continue
            bucket = daily.setdefault(
                day,
                {"day": day, "deliveries": 0, "tip_cents": 0, "delivery_fee_cents": 0, "earnings_cents": 0},
            )
            bucket["deliveries"] += 1
            bucket["tip_cents"] += row["tip_cents"]
            bucket["delivery_fee_cents"] += row["delivery_fee_cents"]
            bucket["earnings_cents"] += row["tip_cents"] + row["delivery_fee_cents"]

        days = sorted(daily.values(), key=lambda bucket: bucket["day"], reverse=True)
        return {
            "total_deliveries": sum(bucket["deliveries"] for bucket in days),
            "total_earnings_cents": sum(bucket["earnings_cents"] for bucket in days),
            "daily": days,
        }

    async def find_nearby(
        self,
        lat: float,
        lng: float,
        radius_km: float = DEFAULT_NEARBY_RADIUS_KM,
        limit: int = NEARBY_LIMIT,
    ) -> list[dict[str, Any]]:
        """Available drivers whose last position is within ``radius_km``, nearest first."""
        rows = await self.database.fetch_all(
            sa.select(
                drivers.c.id,
                driver_locations.c.lat,
                driver_locations.c.lng,
                driver_locations.c.updated_at,
            )
            .join(driver_locations, driver_locations.c.driver_id == drivers.c.id)
            .where(drivers.c.available.is_(True))
        )

        nearby = []
        for row in rows:
            distance = haversine_km(lat, lng, row["lat"], row["lng"])
            if distance <= radius_km:
                nearby.append({**row, "distance_km": distance})

        nearby.sort(key=lambda driver: driver["distance_km"])
        return nearby[:limit]
