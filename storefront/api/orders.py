"""
Order API endpoints
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from storefront.api.auth import Actor, get_current_actor, require_manager
from storefront.config import settings
from storefront.database import get_db
from storefront.models.order import OrderStatus
from storefront.schemas.cart import Cart
from storefront.schemas.order import (
    CheckoutRequest,
    CheckoutResponse,
    DashboardStats,
    MessageResponse,
    OrderDetailResponse,
    OrderFilters,
    OrderListResponse,
    OrderStatusUpdate,
)
from storefront.services.checkout_service import CheckoutError, CheckoutService, OrderPlacementError
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    """Dependency to get OrderService instance"""
    return OrderService(db)


def get_checkout_service(db: Session = Depends(get_db)) -> CheckoutService:
    """Dependency to get CheckoutService instance"""
    return CheckoutService(db)


@router.get("", summary="List orders")
def get_orders(
    page: int = Query(1, ge=1, description="1-based page number (managers)"),
    limit: int = Query(settings.ITEMS_PER_PAGE, ge=1, le=settings.MAX_ITEMS_PER_PAGE, description="Page size (managers)"),
    status_filter: Optional[OrderStatus] = Query(None, alias="status", description="Only orders in this status (managers)"),
    start_date: Optional[date] = Query(None, description="Orders placed on or after this day (managers)"),
    end_date: Optional[date] = Query(None, description="Orders placed on or before this day (managers)"),
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service)
):
    """
    Managers get every order, paginated and filtered.
    Other users get their own order history, newest first.
    """
    if actor.is_manager:
        if start_date and end_date and start_date > end_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="start_date must not be after end_date"
            )
        filters = OrderFilters(status=status_filter, start_date=start_date, end_date=end_date)
        result = service.list_orders(page=page, per_page=limit, filters=filters)
        if result is None:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to retrieve orders")
        return result
    
    orders = service.list_orders_for_user(actor.user_id)
    if orders is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to retrieve orders")
    return OrderListResponse(orders=orders)


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED, summary="Place order")
def create_order(
    checkout: CheckoutRequest,
    actor: Actor = Depends(get_current_actor),
    service: CheckoutService = Depends(get_checkout_service)
):
    """
    Place an order for the submitted cart
    
    Prices and stock come from the catalogue, not from the request.
    Payment is cash on delivery.
    """
    try:
        order_id = service.checkout(
            actor.user_id,
            Cart.from_lines(checkout.items),
            notes=checkout.notes,
            shipping_address=checkout.shipping_address,
        )
    except OrderPlacementError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except CheckoutError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return CheckoutResponse(order_id=order_id, message="Your order has been placed successfully!")


@router.get("/stats", response_model=DashboardStats, summary="Order dashboard")
def get_stats(
    actor: Actor = Depends(require_manager),
    service: OrderService = Depends(get_order_service)
):
    """Order counts by status and the most recent orders"""
    stats = service.get_dashboard_stats()
    if stats is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to retrieve order stats")
    return stats


@router.get("/{order_id}", response_model=OrderDetailResponse, summary="Get order by ID")
def get_order(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service)
):
    """
    Retrieve an order with its lines
    
    Managers see any order; other users only their own.
    """
    return _visible_order(order_id, actor, service)


@router.get("/{order_id}/history", summary="Order status history")
def get_order_history(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service)
):
    """Status transitions of an order, oldest first"""
    _visible_order(order_id, actor, service)
    history = service.get_status_history(order_id)
    if history is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to retrieve order history")
    return {"history": history}


@router.put("/{order_id}", response_model=MessageResponse, summary="Update order status")
def update_order_status(
    order_id: int,
    status_data: OrderStatusUpdate,
    actor: Actor = Depends(require_manager),
    service: OrderService = Depends(get_order_service)
):
    """
    Update order status (managers only)
    
    - **status**: pending, processing, shipped, completed or cancelled
    
    Completed and cancelled orders cannot be changed.
    """
    if not service.order_exists(order_id):
        _raise_if_storage_failed(service, "An internal server error occurred while updating order status.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    
    if not service.update_order_status_as_manager(order_id, status_data.status.value, changed_by=actor.user_id):
        _raise_if_storage_failed(service, "An internal server error occurred while updating order status.")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to update order status. Status may be invalid or order cannot be updated."
        )
    return MessageResponse(message="Order status updated successfully")


@router.post("/{order_id}/cancel", response_model=MessageResponse, summary="Cancel own order")
def cancel_order(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service)
):
    """Cancel one of the caller's orders while it is still pending"""
    if not service.order_exists(order_id, user_id=actor.user_id):
        _raise_if_storage_failed(service, "An internal server error occurred while cancelling the order.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    
    if not service.cancel_order_as_user(order_id, actor.user_id):
        _raise_if_storage_failed(service, "An internal server error occurred while cancelling the order.")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Could not cancel order. It might have already been processed or cancelled."
        )
    return MessageResponse(message=f"Order #{order_id} has been cancelled.")


def _visible_order(order_id: int, actor: Actor, service: OrderService) -> OrderDetailResponse:
    if actor.is_manager:
        order = service.get_order_details_as_manager(order_id)
    else:
        order = service.get_order_details(order_id, actor.user_id)
    if order is None:
        _raise_if_storage_failed(service, "An internal server error occurred while fetching order details.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


def _raise_if_storage_failed(service: OrderService, detail: str) -> None:
    """A failed call caused by the database is a 500, not a 404/400"""
    if service.storage_failed:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
