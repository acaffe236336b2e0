"""
Pydantic schemas for request/response validation
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from storefront.models.order import OrderStatus
from storefront.schemas.cart import CartLine


class OrderLineRequest(BaseModel):
    """One line of an order about to be placed; unit_price comes from the product row"""
    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., gt=0, description="Quantity to order")
    unit_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Unit price at order time")


class OrderStatusUpdate(BaseModel):
    """Schema for updating order status"""
    status: OrderStatus = Field(..., description="Order status")


class OrderUpdate(BaseModel):
    """Typed partial update of an order; only fields that are set are written"""
    total_amount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None
    shipping_address: Optional[str] = None


class OrderItemUpdate(BaseModel):
    """Typed partial update of an order line"""
    quantity: Optional[int] = Field(None, gt=0)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)


class OrderFilters(BaseModel):
    """Filters shared by the paginated listing and its count query"""
    status: Optional[OrderStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class OrderItemResponse(BaseModel):
    """Schema for an order line"""
    item_id: int
    order_id: int
    product_id: int
    product_name: Optional[str] = None
    product_image: Optional[str] = None
    quantity: int
    price: float
    subtotal: float

    model_config = ConfigDict(from_attributes=True)


class OrderSummary(BaseModel):
    """Order without its lines"""
    order_id: int
    user_id: int
    order_date: datetime
    total_amount: float
    status: str
    status_text: str

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(OrderSummary):
    """Schema for order response, user details joined"""
    notes: Optional[str] = None
    shipping_address: Optional[str] = None
    payment_method: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_phone: Optional[str] = None


class OrderDetailResponse(OrderResponse):
    """Order with its lines"""
    items: List[OrderItemResponse] = []


class StatusHistoryResponse(BaseModel):
    """One status transition"""
    history_id: int
    order_id: int
    status: str
    user_id: Optional[int] = None
    notes: Optional[str] = None
    change_date: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    """Page metadata; computed from the filtered count"""
    total_items: int
    total_pages: int
    current_page: int
    per_page: int
    has_previous: bool
    has_next: bool


class OrderPage(BaseModel):
    """Schema for a page of orders"""
    orders: List[OrderResponse]
    pagination: Pagination


class OrderListResponse(BaseModel):
    """Schema for a user's order history"""
    orders: List[OrderSummary]


class DashboardStats(BaseModel):
    """Counts for the manager dashboard"""
    total_orders: int
    by_status: Dict[str, int]
    recent_orders: List[OrderResponse]


class CheckoutRequest(BaseModel):
    """Cart submitted for checkout"""
    items: List[CartLine] = Field(..., description="Cart lines")
    notes: Optional[str] = Field(None, max_length=2000)
    shipping_address: Optional[str] = Field(None, max_length=2000)


class CheckoutResponse(BaseModel):
    """Schema for a placed order"""
    order_id: int
    message: str


class MessageResponse(BaseModel):
    message: str
