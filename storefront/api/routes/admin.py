"""Admin API routes: order acceptance, stock corrections and statistics."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from storefront.api.deps import AdminUser, OrderServiceDep
from storefront.schemas.admin import (
    FeatureFlagResponse,
    FeatureFlagUpdate,
    StockUpdate,
    VariantResponse,
)
from storefront.schemas.order import OrderStatsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/features/accept-orders",
    response_model=FeatureFlagResponse,
    summary="Get order acceptance flag",
)
async def get_accept_orders(user: AdminUser, service: OrderServiceDep) -> FeatureFlagResponse:
    return FeatureFlagResponse(enabled=service.is_accepting_orders())


@router.post(
    "/features/accept-orders",
    response_model=FeatureFlagResponse,
    summary="Set order acceptance flag",
    description="Pauses or resumes new order placement. The setting lasts 24 hours.",
)
async def set_accept_orders(
    data: FeatureFlagUpdate,
    user: AdminUser,
    service: OrderServiceDep,
) -> FeatureFlagResponse:
    logger.info("Admin %s set accept-orders to %s", user.user_id, data.enabled)
    return FeatureFlagResponse(enabled=service.set_accepting_orders(data.enabled))


@router.patch(
    "/variants/{variant_id}/stock",
    response_model=VariantResponse,
    summary="Set variant stock",
)
async def set_variant_stock(
    variant_id: UUID,
    data: StockUpdate,
    user: AdminUser,
    service: OrderServiceDep,
) -> VariantResponse:
    try:
        variant = await service.set_variant_stock(variant_id, data.stock)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    logger.info("Admin %s set stock of variant %s to %d", user.user_id, variant_id, data.stock)
    return VariantResponse(**variant)


@router.get(
    "/orders/stats",
    response_model=OrderStatsResponse,
    summary="Order statistics",
    description="Counts by status and revenue. Cached until the next order change.",
)
async def get_order_stats(user: AdminUser, service: OrderServiceDep) -> OrderStatsResponse:
    return OrderStatsResponse(**await service.get_stats())
