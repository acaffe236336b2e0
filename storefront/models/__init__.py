"""
Models package
"""
from storefront.models.user import User
from storefront.models.product import Product, InventoryLog, INVENTORY_EVENT_TYPES
from storefront.models.order import (
    Order,
    OrderItem,
    OrderStatusHistory,
    OrderStatus,
    TERMINAL_STATUSES,
    STATUS_LABELS,
    PAYMENT_METHOD_COD,
)

__all__ = [
    "User",
    "Product",
    "InventoryLog",
    "INVENTORY_EVENT_TYPES",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "OrderStatus",
    "TERMINAL_STATUSES",
    "STATUS_LABELS",
    "PAYMENT_METHOD_COD",
]
