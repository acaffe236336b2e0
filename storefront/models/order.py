"""
SQLAlchemy Order, OrderItem and OrderStatusHistory models
"""
import enum

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base


class OrderStatus(str, enum.Enum):
    """Order lifecycle states"""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value})

STATUS_LABELS = {
    OrderStatus.PENDING.value: "Pending Confirmation",
    OrderStatus.PROCESSING.value: "Processing",
    OrderStatus.SHIPPED.value: "Shipped",
    OrderStatus.COMPLETED.value: "Completed",
    OrderStatus.CANCELLED.value: "Cancelled",
}

PAYMENT_METHOD_COD = "cash_on_delivery"

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in OrderStatus)


class Order(Base):
    """Order database model"""
    
    __tablename__ = "orders"
    
    order_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    order_date = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    shipping_address = Column(Text, nullable=True)
    payment_method = Column(String(50), nullable=False, default=PAYMENT_METHOD_COD)
    notes = Column(Text, nullable=True)
    last_modified = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
    
    user = relationship("User")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.item_id",
    )
    history = relationship(
        "OrderStatusHistory",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderStatusHistory.history_id",
    )
    
    # Constraints
    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='check_total_non_negative'),
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name='check_status_valid'),
    )
    
    @property
    def user_name(self):
        return self.user.name if self.user else None
    
    @property
    def user_email(self):
        return self.user.email if self.user else None
    
    @property
    def user_phone(self):
        return self.user.phone if self.user else None
    
    @property
    def status_text(self):
        return STATUS_LABELS.get(self.status, (self.status or "Unknown").capitalize())
    
    def __repr__(self):
        return f"<Order(order_id={self.order_id}, user_id={self.user_id}, total={self.total_amount}, status='{self.status}')>"


class OrderItem(Base):
    """One product line of an order; price is captured at order time"""
    
    __tablename__ = "order_items"
    
    item_id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.product_id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    
    order = relationship("Order", back_populates="items")
    product = relationship("Product", lazy="joined")
    
    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
        CheckConstraint('price >= 0', name='check_item_price_non_negative'),
    )
    
    @property
    def product_name(self):
        return self.product.name if self.product else None
    
    @property
    def product_image(self):
        return self.product.image_path if self.product else None
    
    @property
    def subtotal(self):
        return self.price * self.quantity
    
    def __repr__(self):
        return f"<OrderItem(item_id={self.item_id}, order_id={self.order_id}, product_id={self.product_id}, quantity={self.quantity})>"


class OrderStatusHistory(Base):
    """Audit trail of status transitions"""
    
    __tablename__ = "order_history"
    
    history_id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    change_date = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<OrderStatusHistory(order_id={self.order_id}, status='{self.status}')>"
