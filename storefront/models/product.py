"""
SQLAlchemy Product and InventoryLog models
"""
from sqlalchemy import Boolean, Column, Integer, String, Numeric, DateTime, Text, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from storefront.database import Base

INVENTORY_EVENT_TYPES = ("order", "restock", "adjustment", "low_stock")


class Product(Base):
    """Product database model"""
    
    __tablename__ = "products"
    
    product_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_path = Column(String(255), nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=100)
    low_stock_threshold = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)
    
    # Constraints
    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('stock_quantity >= 0', name='check_stock_non_negative'),
    )
    
    def __repr__(self):
        return f"<Product(product_id={self.product_id}, name='{self.name}', price={self.price}, stock={self.stock_quantity})>"


class InventoryLog(Base):
    """One row per stock movement"""
    
    __tablename__ = "inventory_logs"
    
    log_id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(20), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    before_quantity = Column(Integer, nullable=True)
    after_quantity = Column(Integer, nullable=True)
    order_id = Column(Integer, ForeignKey("orders.order_id", ondelete="SET NULL"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    description = Column(Text, nullable=True)
    log_date = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    
    __table_args__ = (
        CheckConstraint(
            "event_type IN ('order', 'restock', 'adjustment', 'low_stock')",
            name='check_inventory_event_type'
        ),
    )
    
    def __repr__(self):
        return f"<InventoryLog(product_id={self.product_id}, event_type='{self.event_type}', quantity={self.quantity})>"
