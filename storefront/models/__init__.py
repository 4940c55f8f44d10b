"""Database model type definitions."""

from storefront.models.driver import Driver, DriverLocation
from storefront.models.order import Order, OrderItem, OrderStatus, StockLine

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
    "StockLine",
    "Driver",
    "DriverLocation",
]
