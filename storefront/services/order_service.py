"""
Order Service - Business Logic Layer
"""
import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.models.order import Order, OrderStatus, TERMINAL_STATUSES
from storefront.repositories.order_repository import OrderRepository, OrderItemRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.schemas.order import (
    DashboardStats,
    OrderDetailResponse,
    OrderFilters,
    OrderLineRequest,
    OrderPage,
    OrderResponse,
    OrderSummary,
    StatusHistoryResponse,
)

TOTAL_TOLERANCE = Decimal("0.01")


class OrderWorkflowError(Exception):
    """Raised inside an order transaction to abort it"""
    pass


class ProductNotFoundError(OrderWorkflowError):
    """Product vanished between cart validation and order commit"""
    pass


class InsufficientStockError(OrderWorkflowError):
    """Stock ran out between cart validation and order commit"""
    pass


class OrderService:
    """
    Order placement and status lifecycle
    
    Every public method converts storage failures into a None/False result
    plus a logged diagnostic; exceptions do not leave this class. After a
    storage failure error_message holds the cause, so callers can tell it
    apart from a missing order or a refused transition.
    """
    
    def __init__(self, db: Session, logger: Optional[logging.Logger] = None, restock_on_cancel: Optional[bool] = None):
        self.db = db
        self.repository = OrderRepository(db)
        self.item_repository = OrderItemRepository(db)
        self.product_repository = ProductRepository(db)
        self.logger = logger or logging.getLogger(__name__)
        self.restock_on_cancel = settings.RESTOCK_ON_CANCEL if restock_on_cancel is None else restock_on_cancel
        self.error_message = ""
    
    @property
    def storage_failed(self) -> bool:
        """True if the last call was rolled back because of a database error"""
        return bool(self.error_message)
    
    def create_order(
        self,
        user_id: int,
        lines: Sequence[OrderLineRequest],
        total_amount: Decimal,
        notes: Optional[str] = None,
        shipping_address: Optional[str] = None,
    ) -> Optional[int]:
        """
        Persist an order and debit stock in one transaction
        
        Steps:
        1. Validate lines and total (nothing is written on failure)
        2. Insert the order with status pending
        3. For each line: insert it, read current stock, take the quantity out
        4. Commit, or roll back everything on the first failure
        
        Args:
            user_id: Owning user
            lines: Lines priced from current product rows
            total_amount: Sum of unit_price * quantity over lines
            notes: Optional customer notes
            shipping_address: Optional delivery address
        
        Returns:
            New order ID, or None if nothing was persisted
        """
        self.error_message = ""
        if not lines:
            self.logger.warning("Rejected order for user %s: no lines", user_id)
            return None
        if any(line.quantity <= 0 for line in lines):
            self.logger.warning("Rejected order for user %s: non-positive quantity", user_id)
            return None
        
        total_amount = Decimal(str(total_amount))
        expected = sum((line.unit_price * line.quantity for line in lines), Decimal("0"))
        if abs(expected - total_amount) > TOTAL_TOLERANCE:
            self.logger.warning(
                "Rejected order for user %s: total %s does not match lines %s",
                user_id, total_amount, expected
            )
            return None
        
        try:
            order = self.repository.create(
                user_id=user_id,
                total_amount=total_amount,
                notes=notes,
                shipping_address=shipping_address,
            )
            
            for line in lines:
                self.item_repository.create(
                    order_id=order.order_id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price=line.unit_price,
                )
                self._debit_stock(order.order_id, user_id, line)
            
            self.repository.commit()
        except (OrderWorkflowError, SQLAlchemyError) as e:
            self.repository.rollback()
            if isinstance(e, SQLAlchemyError):
                self._record_failure(e)
            self.logger.error(
                "Error creating order for user %s (%d lines, total %s): %s",
                user_id, len(lines), total_amount, e,
                exc_info=not isinstance(e, OrderWorkflowError)
            )
            return None
        
        self.logger.info("Order %s placed by user %s, total %s", order.order_id, user_id, total_amount)
        return order.order_id
    
    def get_order_details(self, order_id: int, user_id: int) -> Optional[OrderDetailResponse]:
        """
        Order with lines, only if user_id owns it
        
        Returns:
            Order details or None when missing, owned by someone else, or on error
        """
        self.error_message = ""
        try:
            order = self.repository.get_by_id_for_user(order_id, user_id)
            if not order:
                self.logger.warning("Order %s not found for user %s", order_id, user_id)
                return None
            return self._detail(order)
        except SQLAlchemyError as e:
            self._record_failure(e)
            self.logger.exception("Error getting order %s for user %s", order_id, user_id)
            return None
    
    def get_order_details_as_manager(self, order_id: int) -> Optional[OrderDetailResponse]:
        """Order with lines, no ownership check; warns if the stored total drifted from its lines"""
        self.error_message = ""
        try:
            order = self.repository.get_with_items(order_id)
            if not order:
                self.logger.warning("Order %s not found", order_id)
                return None
            detail = self._detail(order)
        except SQLAlchemyError as e:
            self._record_failure(e)
            self.logger.exception("Error getting order %s", order_id)
            return None
        
        calculated = sum((item.price * item.quantity for item in order.items), Decimal("0"))
        if abs(Decimal(order.total_amount) - calculated) > TOTAL_TOLERANCE:
            self.logger.warning(
                "Order %s total discrepancy: stored %s, calculated %s",
                order_id, order.total_amount, calculated
            )
        return detail
    
    def order_exists(self, order_id: int, user_id: Optional[int] = None) -> bool:
        """
        Whether an order exists, and belongs to user_id when one is given
        
        Lines are not loaded. False on storage error (see storage_failed).
        """
        self.error_message = ""
        try:
            if user_id is None:
                order = self.repository.get_by_id(order_id)
            else:
                order = self.repository.get_by_id_for_user(order_id, user_id)
        except SQLAlchemyError as e:
            self._record_failure(e)
            self.logger.exception("Error looking up order %s", order_id)
            return False
        return order is not None
    
    def list_orders_for_user(self, user_id: int) -> Optional[List[OrderSummary]]:
        """A user's orders, newest first; None on storage error"""
        self.error_message = ""
        try:
            orders = self.repository.list_by_user(user_id)
        except SQLAlchemyError as e:
            self._record_failure(e)
            self.logger.exception("Error getting orders for user %s", user_id)
            return None
        return [OrderSummary.model_validate(o) for o in orders]
    
    def list_orders(self, page: int = 1, per_page: int = None, filters: Optional[OrderFilters] = None) -> Optional[OrderPage]:
        """Paginated, filtered listing of all orders for managers"""
        per_page = per_page or settings.ITEMS_PER_PAGE
        self.error_message = ""
        try:
            orders, pagination = self.repository.paginate(page=page, per_page=per_page, filters=filters)
        except SQLAlchemyError as e:
            self._record_failure(e)
            self.logger.exception("Error listing orders (page %s, filters %s)", page, filters)
            return None
        return OrderPage(
            orders=[OrderResponse.model_validate(o) for o in orders],
            pagination=pagination
        )
    
    def cancel_order_as_user(self, order_id: int, user_id: int) -> bool:
        """
        Cancel a pending order on behalf of its owner
        
        Ownership and current status are read in the same transaction
        as the update, with the order row locked where supported.
        
        Returns:
            True if the order is now cancelled
        """
        self.error_message = ""
        try:
            order = self.repository.get_by_id_for_user(order_id, user_id, for_update=True)
            if not order:
                self.logger.warning("Cancel refused: order %s not found for user %s", order_id, user_id)
                self.repository.rollback()
                return False
            
            current = order.status
            if current in TERMINAL_STATUSES:
                self.logger.info("User %s attempted to cancel already %s order %s", user_id, current, order_id)
                self.repository.rollback()
                return False
            if current != OrderStatus.PENDING.value:
                self.logger.info("User %s attempted to cancel non-pending order %s (%s)", user_id, order_id, current)
                self.repository.rollback()
                return False
            
            self._transition(order, OrderStatus.CANCELLED.value, changed_by=user_id)
            self.repository.commit()
        except (OrderWorkflowError, SQLAlchemyError) as e:
            self.repository.rollback()
            if isinstance(e, SQLAlchemyError):
                self._record_failure(e)
            self.logger.error("Error cancelling order %s for user %s: %s", order_id, user_id, e, exc_info=True)
            return False
        
        self.logger.info("Order %s cancelled by user %s", order_id, user_id)
        return True
    
    def update_order_status_as_manager(self, order_id: int, new_status: str, changed_by: Optional[int] = None) -> bool:
        """
        Set any valid status on a non-terminal order
        
        Args:
            order_id: Order ID
            new_status: One of pending, processing, shipped, completed, cancelled
            changed_by: Manager user ID, recorded in the status history
        
        Returns:
            True if the status changed
        """
        self.error_message = ""
        try:
            new_status = OrderStatus(new_status).value
        except ValueError:
            self.logger.warning("Invalid status %r for order %s", new_status, order_id)
            return False
        
        try:
            order = self.repository.get_by_id(order_id, for_update=True)
            if not order:
                self.logger.warning("Order %s not found for manager status update", order_id)
                self.repository.rollback()
                return False
            
            current = order.status
            if current in TERMINAL_STATUSES:
                self.logger.info("Manager attempted to change already %s order %s to %s", current, order_id, new_status)
                self.repository.rollback()
                return False
            if current == new_status:
                self.logger.info("Order %s is already %s", order_id, new_status)
                self.repository.rollback()
                return False
            
            self._transition(order, new_status, changed_by=changed_by)
            self.repository.commit()
        except (OrderWorkflowError, SQLAlchemyError) as e:
            self.repository.rollback()
            if isinstance(e, SQLAlchemyError):
                self._record_failure(e)
            self.logger.error("Error updating order %s to %s: %s", order_id, new_status, e, exc_info=True)
            return False
        
        self.logger.info("Order %s status %s -> %s by manager", order_id, current, new_status)
        return True
    
    def get_status_history(self, order_id: int) -> Optional[List[StatusHistoryResponse]]:
        self.error_message = ""
        try:
            entries = self.repository.list_history(order_id)
        except SQLAlchemyError as e:
            self._record_failure(e)
            self.logger.exception("Error getting status history of order %s", order_id)
            return None
        return [StatusHistoryResponse.model_validate(e) for e in entries]
    
    def get_dashboard_stats(self, recent_limit: int = None) -> Optional[DashboardStats]:
        """Order counts by status and the latest orders"""
        self.error_message = ""
        try:
            by_status = self.repository.count_by_status()
            recent = self.repository.get_recent(recent_limit or settings.RECENT_ORDERS_LIMIT)
        except SQLAlchemyError as e:
            self._record_failure(e)
            self.logger.exception("Error building dashboard stats")
            return None
        return DashboardStats(
            total_orders=sum(by_status.values()),
            by_status=by_status,
            recent_orders=[OrderResponse.model_validate(o) for o in recent]
        )
    
    def _debit_stock(self, order_id: int, user_id: int, line: OrderLineRequest) -> None:
        """Take a line's quantity out of stock or raise to abort the transaction"""
        product = self.product_repository.get_by_id(line.product_id)
        before = self.product_repository.check_stock(line.product_id, for_update=True)
        if product is None or before is None:
            raise ProductNotFoundError(f"Product {line.product_id} not found")
        if before < line.quantity:
            raise InsufficientStockError(
                f"Insufficient stock for product {line.product_id}: "
                f"requested {line.quantity}, available {before}"
            )
        if not self.product_repository.decrement_stock(line.product_id, line.quantity):
            raise InsufficientStockError(f"Stock of product {line.product_id} changed during order {order_id}")
        
        after = before - line.quantity
        self.product_repository.log_movement(
            product_id=line.product_id,
            event_type="order",
            quantity=line.quantity,
            before_quantity=before,
            after_quantity=after,
            order_id=order_id,
            user_id=user_id,
            description=f'Order #{order_id}: {line.quantity} units of "{product.name}" purchased',
        )
        if after <= product.low_stock_threshold:
            self.logger.warning("Product %s low on stock: %s left", line.product_id, after)
            self.product_repository.log_movement(
                product_id=line.product_id,
                event_type="low_stock",
                quantity=after,
                before_quantity=before,
                after_quantity=after,
                order_id=order_id,
                description=f'"{product.name}" at or below threshold {product.low_stock_threshold}',
            )
    
    def _transition(self, order: Order, new_status: str, changed_by: Optional[int]) -> None:
        """Write the status, its history row, and any stock returned by a cancellation"""
        old_status = order.status
        if not self.repository.update_status(order.order_id, new_status):
            raise OrderWorkflowError(f"Status update matched no row for order {order.order_id}")
        self.repository.add_history(
            order_id=order.order_id,
            status=new_status,
            user_id=changed_by,
            notes=f"Status changed from {old_status} to {new_status}",
        )
        if new_status == OrderStatus.CANCELLED.value and self.restock_on_cancel:
            for item in self.item_repository.list_by_order(order.order_id):
                before = self.product_repository.check_stock(item.product_id)
                self.product_repository.restore_stock(item.product_id, item.quantity)
                self.product_repository.log_movement(
                    product_id=item.product_id,
                    event_type="restock",
                    quantity=item.quantity,
                    before_quantity=before,
                    after_quantity=None if before is None else before + item.quantity,
                    order_id=order.order_id,
                    user_id=changed_by,
                    description=f"Order #{order.order_id} cancelled: {item.quantity} units returned",
                )
    
    def _record_failure(self, error: SQLAlchemyError) -> None:
        self.error_message = f"{type(error).__name__}: {error}"
    
    @staticmethod
    def _detail(order: Order) -> OrderDetailResponse:
        return OrderDetailResponse.model_validate(order)
