"""Driver API routes: profile, location and deliveries."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from storefront.api.deps import CurrentUser, DriverServiceDep, DriverUser, FulfillmentServiceDep
from storefront.schemas.driver import (
    AvailabilityUpdate,
    DeliveryComplete,
    DriverLocationResponse,
    DriverProfileResponse,
    DriverResponse,
    EarningsResponse,
    LocationUpdate,
    NearbyDriverListResponse,
    NearbyDriverResponse,
)
from storefront.schemas.order import OrderListResponse, OrderResponse
from storefront.services.driver_service import DEFAULT_NEARBY_RADIUS_KM

router = APIRouter(prefix="/driver", tags=["driver"])


@router.get(
    "/profile",
    response_model=DriverProfileResponse,
    summary="Get driver profile",
)
async def get_profile(user: DriverUser, drivers: DriverServiceDep) -> DriverProfileResponse:
    return DriverProfileResponse(**await drivers.get_profile(user.user_id))


@router.patch(
    "/availability",
    response_model=DriverResponse,
    summary="Set availability",
    description="Marks the driver as taking deliveries or off duty.",
)
async def set_availability(
    data: AvailabilityUpdate,
    user: DriverUser,
    drivers: DriverServiceDep,
) -> DriverResponse:
    return DriverResponse(**await drivers.set_availability(user.user_id, data.available))


@router.post(
    "/location",
    response_model=DriverLocationResponse,
    summary="Report location",
    description="Stores the driver's position and broadcasts it to live clients.",
)
async def update_location(
    data: LocationUpdate,
    user: DriverUser,
    drivers: DriverServiceDep,
) -> DriverLocationResponse:
    try:
        location = await drivers.update_location(user.user_id, data.lat, data.lng)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    return DriverLocationResponse(**location)


@router.get(
    "/earnings",
    response_model=EarningsResponse,
    summary="Get my earnings",
    description="Delivered orders and their tips and delivery fees, per day and in total.",
)
async def get_earnings(
    user: DriverUser,
    drivers: DriverServiceDep,
    start_date: date | None = Query(default=None, description="First day to include"),
    end_date: date | None = Query(default=None, description="Last day to include"),
) -> EarningsResponse:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must not be after end_date",
        )
    return EarningsResponse(**await drivers.get_earnings(user.user_id, start_date, end_date))


@router.get(
    "/nearby",
    response_model=NearbyDriverListResponse,
    summary="Find nearby drivers",
    description="Available drivers whose last reported position is within the radius, nearest first.",
)
async def find_nearby_drivers(
    user: CurrentUser,
    drivers: DriverServiceDep,
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    radius_km: float = Query(default=DEFAULT_NEARBY_RADIUS_KM, gt=0, le=100),
) -> NearbyDriverListResponse:
    nearby = await drivers.find_nearby(lat, lng, radius_km)
    return NearbyDriverListResponse(items=[NearbyDriverResponse(**driver) for driver in nearby])


@router.get(
    "/orders/available",
    response_model=OrderListResponse,
    summary="List claimable orders",
    description="Ready orders without a driver, oldest first.",
)
async def list_available_orders(
    user: DriverUser,
    fulfillment: FulfillmentServiceDep,
    limit: int = Query(default=20, ge=1, le=50),
) -> OrderListResponse:
    orders = await fulfillment.list_available(limit)
    return OrderListResponse(items=[OrderResponse(**order) for order in orders])


@router.get(
    "/orders/active",
    response_model=OrderListResponse,
    summary="List my active deliveries",
)
async def list_active_orders(
    user: DriverUser,
    drivers: DriverServiceDep,
    fulfillment: FulfillmentServiceDep,
) -> OrderListResponse:
    driver = await drivers.get_driver_by_user(user.user_id)
    if driver is None:
        return OrderListResponse(items=[])
    orders = await fulfillment.list_active(driver["id"])
    return OrderListResponse(items=[OrderResponse(**order) for order in orders])


@router.post(
    "/orders/{order_id}/accept",
    response_model=OrderResponse,
    summary="Claim an order",
    description="Atomically assigns the order to the calling driver. Exactly one concurrent claim wins.",
    responses={
        409: {"description": "Order already claimed or no longer available"},
    },
)
async def accept_order(
    order_id: UUID,
    user: DriverUser,
    drivers: DriverServiceDep,
    fulfillment: FulfillmentServiceDep,
) -> OrderResponse:
    """Claim an order for delivery.

    Raises:
        OrderError: driver_unavailable, not_found, already_claimed or no_longer_available.
    """
    driver = await drivers.get_available_driver(user.user_id)
    return OrderResponse(**await fulfillment.claim(order_id, driver["id"]))


@router.post(
    "/orders/{order_id}/complete",
    response_model=OrderResponse,
    summary="Complete a delivery",
    description="Marks a delivering order as delivered, with optional notes and photo.",
)
async def complete_order(
    order_id: UUID,
    data: DeliveryComplete,
    user: DriverUser,
    drivers: DriverServiceDep,
    fulfillment: FulfillmentServiceDep,
) -> OrderResponse:
    driver = await drivers.get_driver_by_user(user.user_id)
    if driver is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Driver profile not found",
        )
    order = await fulfillment.complete(order_id, driver["id"], notes=data.notes, photo_base64=data.photo)
    return OrderResponse(**order)
