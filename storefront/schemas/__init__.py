"""
Schemas package
"""
from storefront.schemas.cart import Cart, CartLine
from storefront.schemas.order import (
    OrderLineRequest,
    OrderStatusUpdate,
    OrderUpdate,
    OrderItemUpdate,
    OrderFilters,
    OrderItemResponse,
    OrderSummary,
    OrderResponse,
    OrderDetailResponse,
    StatusHistoryResponse,
    Pagination,
    OrderPage,
    OrderListResponse,
    DashboardStats,
    CheckoutRequest,
    CheckoutResponse,
    MessageResponse,
)

__all__ = [
    "Cart",
    "CartLine",
    "OrderLineRequest",
    "OrderStatusUpdate",
    "OrderUpdate",
    "OrderItemUpdate",
    "OrderFilters",
    "OrderItemResponse",
    "OrderSummary",
    "OrderResponse",
    "OrderDetailResponse",
    "StatusHistoryResponse",
    "Pagination",
    "OrderPage",
    "OrderListResponse",
    "DashboardStats",
    "CheckoutRequest",
    "CheckoutResponse",
    "MessageResponse",
]
