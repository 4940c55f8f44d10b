"""Order API routes."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from storefront.api.deps import (
    CurrentUser,
    DriverServiceDep,
    FulfillmentServiceDep,
    OrderRateLimit,
    OrderServiceDep,
    StaffUser,
)
from storefront.models.order import OrderStatus, StockLine
from storefront.schemas.auth import UserRole
from storefront.schemas.order import (
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Returns the caller's orders, or all orders for admins.",
)
async def list_orders(
    user: CurrentUser,
    service: OrderServiceDep,
    order_status: OrderStatus | None = Query(default=None, alias="status"),
    user_id: UUID | None = Query(default=None, description="Admin only: filter by customer"),
    driver_id: UUID | None = Query(default=None, description="Admin only: filter by driver"),
    limit: int = Query(default=20, ge=1, le=50),
    offset: int = Query(default=0, ge=0),
) -> OrderListResponse:
    orders = await service.list_orders(
        user,
        status=order_status,
        user_id=user_id,
        driver_id=driver_id,
        limit=limit,
        offset=offset,
    )
    return OrderListResponse(items=[OrderResponse(**order) for order in orders])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
    description="Reserves stock and records a pending order. Customers only; rate limited.",
)
async def create_order(
    data: OrderCreate,
    user: CurrentUser,
    service: OrderServiceDep,
    _rate_limit: OrderRateLimit,
) -> OrderResponse:
    """Place an order.

    Raises:
        OrderError: access_denied, orders_paused, not_found or insufficient_stock.
    """
    order = await service.create_order(
        user,
        items=[StockLine(variant_id=item.variant_id, quantity=item.quantity) for item in data.items],
        delivery_address=data.delivery_address,
        delivery_instructions=data.delivery_instructions,
        tip=data.tip,
    )
    return OrderResponse(**order)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns a single order with items. Customers can only read their own orders.",
)
async def get_order(order_id: UUID, user: CurrentUser, service: OrderServiceDep) -> OrderResponse:
    return OrderResponse(**await service.get_order(order_id, user))


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Moves an order along its lifecycle. Admins and drivers only.",
)
async def update_order_status(
    order_id: UUID,
    data: OrderStatusUpdate,
    user: StaffUser,
    service: OrderServiceDep,
    drivers: DriverServiceDep,
    fulfillment: FulfillmentServiceDep,
) -> OrderResponse:
    """Apply a status transition.

    A driver moving an order to delivering goes through the same claim as
    accepting it; admins may name the driver explicitly.
    """
    if data.status is OrderStatus.DELIVERING and user.has_role(UserRole.DRIVER.value):
        driver = await drivers.get_available_driver(user.user_id)
        order = await fulfillment.claim(order_id, driver["id"])
        return OrderResponse(**order)

    order = await service.update_status(order_id, data.status, data.driver_id)
    return OrderResponse(**order)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
    description="Cancels an order and restores its stock. Owners may cancel before the order is ready.",
)
async def cancel_order(order_id: UUID, user: CurrentUser, service: OrderServiceDep) -> OrderResponse:
    return OrderResponse(**await service.cancel_order(order_id, user))
