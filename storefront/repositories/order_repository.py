"""
Order Repository - Data Access Layer
"""
import math
from datetime import datetime, time
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.orm import Session, joinedload, selectinload

from storefront.models.order import Order, OrderItem, OrderStatusHistory, OrderStatus, PAYMENT_METHOD_COD
from storefront.schemas.order import OrderFilters, OrderItemUpdate, OrderUpdate, Pagination


class OrderRepository:
    """
    Repository for Order persistence
    
    Methods add and flush but never commit; the service decides when a
    unit of work is complete through commit() / rollback().
    """
    
    def __init__(self, db: Session):
        self.db = db
    
    # Transaction control
    
    def commit(self) -> None:
        self.db.commit()
    
    def rollback(self) -> None:
        self.db.rollback()
    
    # Writes
    
    def create(
        self,
        user_id: int,
        total_amount: Decimal,
        status: str = OrderStatus.PENDING.value,
        notes: Optional[str] = None,
        shipping_address: Optional[str] = None,
        order_date: Optional[datetime] = None,
    ) -> Order:
        """
        Insert an order row
        
        Returns:
            The flushed order, order_id populated
        """
        order = Order(
            user_id=user_id,
            total_amount=total_amount,
            status=status,
            notes=notes,
            shipping_address=shipping_address,
            payment_method=PAYMENT_METHOD_COD,
        )
        if order_date is not None:
            order.order_date = order_date
        self.db.add(order)
        self.db.flush()
        return order
    
    def update_status(self, order_id: int, status: str) -> bool:
        """Set the status column; False when no row matched"""
        result = self.db.execute(
            update(Order)
            .where(Order.order_id == order_id)
            .values(status=status)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0
    
    def update(self, order_id: int, changes: OrderUpdate) -> bool:
        """
        Update the fields set on an OrderUpdate
        
        Returns:
            True if a row was updated, False if nothing was set or no row matched
        """
        values = changes.model_dump(exclude_unset=True)
        if not values:
            return False
        if values.get("status") is not None:
            values["status"] = OrderStatus(values["status"]).value
        result = self.db.execute(
            update(Order)
            .where(Order.order_id == order_id)
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0
    
    def delete(self, order_id: int) -> bool:
        """Delete an order; its lines and history go with it"""
        order = self.db.get(Order, order_id)
        if not order:
            return False
        self.db.delete(order)
        self.db.flush()
        return True
    
    def add_history(
        self,
        order_id: int,
        status: str,
        user_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Record a status transition"""
        entry = OrderStatusHistory(order_id=order_id, status=status, user_id=user_id, notes=notes)
        self.db.add(entry)
        self.db.flush()
        return entry
    
    # Reads
    
    def get_by_id(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        """
        Get order by ID regardless of owner (manager capability)
        
        Args:
            order_id: Order ID
            for_update: Lock the row until the transaction ends
        """
        stmt = select(Order).where(Order.order_id == order_id)
        return self._one(stmt, for_update)
    
    def get_by_id_for_user(self, order_id: int, user_id: int, for_update: bool = False) -> Optional[Order]:
        """Get order by ID only if it belongs to user_id"""
        stmt = select(Order).where(Order.order_id == order_id, Order.user_id == user_id)
        return self._one(stmt, for_update)
    
    def get_with_items(self, order_id: int) -> Optional[Order]:
        """Get order by ID with user and lines loaded"""
        stmt = (
            select(Order)
            .where(Order.order_id == order_id)
            .options(joinedload(Order.user), selectinload(Order.items))
        )
        return self.db.scalars(stmt).first()
    
    def list_by_user(self, user_id: int) -> List[Order]:
        """A user's orders, newest first"""
        return self.db.scalars(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.order_date.desc(), Order.order_id.desc())
        ).all()
    
    def list_all(
        self,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Order]:
        """All orders, newest first, optionally by status"""
        stmt = select(Order).options(joinedload(Order.user))
        if status is not None:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.order_date.desc(), Order.order_id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset is not None:
            stmt = stmt.offset(offset)
        return self.db.scalars(stmt).all()
    
    def paginate(
        self,
        page: int = 1,
        per_page: int = 15,
        filters: Optional[OrderFilters] = None,
    ) -> Tuple[List[Order], Pagination]:
        """
        One page of orders plus page metadata
        
        The same filter conditions are applied to the page query and to
        the count query so totals always describe the filtered set.
        Date filters are inclusive whole days.
        
        Args:
            page: 1-based page number
            per_page: Page size
            filters: Optional status / date range
        """
        page = max(page, 1)
        conditions = self._filter_conditions(filters or OrderFilters())
        
        total = self.db.scalar(select(func.count(Order.order_id)).where(*conditions))
        orders = self.db.scalars(
            select(Order)
            .options(joinedload(Order.user))
            .where(*conditions)
            .order_by(Order.order_date.desc(), Order.order_id.desc())
            .limit(per_page)
            .offset((page - 1) * per_page)
        ).all()
        
        total_pages = math.ceil(total / per_page) if per_page else 0
        pagination = Pagination(
            total_items=total,
            total_pages=total_pages,
            current_page=page,
            per_page=per_page,
            has_previous=page > 1,
            has_next=page < total_pages,
        )
        return orders, pagination
    
    def count(self, status: Optional[str] = None) -> int:
        """Get total count of orders, optionally by status"""
        stmt = select(func.count(Order.order_id))
        if status is not None:
            stmt = stmt.where(Order.status == status)
        return self.db.scalar(stmt)
    
    def count_by_status(self) -> Dict[str, int]:
        """Order counts for every status, zeros included"""
        rows = self.db.execute(
            select(Order.status, func.count(Order.order_id)).group_by(Order.status)
        ).all()
        counts = {s.value: 0 for s in OrderStatus}
        counts.update({status: n for status, n in rows})
        return counts
    
    def get_recent(self, limit: int = 5) -> List[Order]:
        """Most recent orders with user details"""
        return self.list_all(limit=limit)
    
    def list_history(self, order_id: int) -> List[OrderStatusHistory]:
        """Status transitions of an order, oldest first"""
        return self.db.scalars(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.history_id)
        ).all()
    
    def _one(self, stmt, for_update: bool) -> Optional[Order]:
        if for_update:
            # Keep the lock on orders only; joins would put it on users too
            stmt = stmt.with_for_update(of=Order)
        else:
            stmt = stmt.options(joinedload(Order.user))
        return self.db.scalars(stmt).first()
    
    @staticmethod
    def _filter_conditions(filters: OrderFilters) -> list:
        conditions = []
        if filters.status is not None:
            conditions.append(Order.status == OrderStatus(filters.status).value)
        if filters.start_date is not None:
            conditions.append(Order.order_date >= datetime.combine(filters.start_date, time(0, 0, 0)))
        if filters.end_date is not None:
            conditions.append(Order.order_date <= datetime.combine(filters.end_date, time(23, 59, 59)))
        return conditions


class OrderItemRepository:
    """Repository for order lines"""
    
    REQUIRED_FIELDS = ("product_id", "quantity", "price")
    
    def __init__(self, db: Session):
        self.db = db
    
    def create(self, order_id: int, product_id: int, quantity: int, price: Decimal) -> OrderItem:
        """Insert one order line"""
        item = OrderItem(order_id=order_id, product_id=product_id, quantity=quantity, price=price)
        self.db.add(item)
        self.db.flush()
        return item
    
    def create_bulk(self, order_id: int, items: Sequence[dict]) -> int:
        """
        Insert many lines with a single multi-row INSERT
        
        Args:
            order_id: Owning order
            items: dicts with product_id, quantity and price
        
        Returns:
            Number of lines inserted
        
        Raises:
            ValueError: If items is empty or any item misses a required field;
                        nothing is written in that case
        """
        if not items:
            raise ValueError("No items provided for bulk insert")
        
        rows = []
        for item in items:
            missing = [f for f in self.REQUIRED_FIELDS if item.get(f) is None]
            if missing:
                raise ValueError(f"Order item is missing required fields: {', '.join(missing)}")
            rows.append({
                "order_id": order_id,
                "product_id": item["product_id"],
                "quantity": item["quantity"],
                "price": item["price"],
            })
        
        self.db.execute(insert(OrderItem.__table__).values(rows))
        return len(rows)
    
    def list_by_order(self, order_id: int) -> List[OrderItem]:
        """Lines of an order; each line eager-loads its product through OrderItem.product"""
        return self.db.scalars(
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.item_id)
        ).all()
    
    def get_by_id(self, item_id: int) -> Optional[OrderItem]:
        """Get order line by ID"""
        return self.db.get(OrderItem, item_id)
    
    def update(self, item_id: int, changes: OrderItemUpdate) -> bool:
        """Update the fields set on an OrderItemUpdate"""
        values = changes.model_dump(exclude_unset=True)
        if not values:
            return False
        result = self.db.execute(
            update(OrderItem)
            .where(OrderItem.item_id == item_id)
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0
    
    def delete(self, item_id: int) -> bool:
        """Delete one order line"""
        result = self.db.execute(delete(OrderItem).where(OrderItem.item_id == item_id))
        return result.rowcount > 0
    
    def delete_by_order(self, order_id: int) -> int:
        """Delete every line of an order; returns how many went"""
        result = self.db.execute(delete(OrderItem).where(OrderItem.order_id == order_id))
        return result.rowcount
