"""
Product Repository - stock reads and writes
"""
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from storefront.models.product import Product, InventoryLog


class ProductRepository:
    """Repository for product stock access; never commits, the caller owns the transaction"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def get_by_id(self, product_id: int) -> Optional[Product]:
        """Get product by ID"""
        return self.db.get(Product, product_id)
    
    def get_many_by_ids(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        """Fetch several products in one query, keyed by product_id"""
        ids = list(product_ids)
        if not ids:
            return {}
        products = self.db.scalars(select(Product).where(Product.product_id.in_(ids))).all()
        return {p.product_id: p for p in products}
    
    def check_stock(self, product_id: int, for_update: bool = False) -> Optional[int]:
        """
        Current stock of a product
        
        Args:
            product_id: Product ID
            for_update: Lock the row for the rest of the transaction
                        (ignored by dialects without SELECT ... FOR UPDATE)
        
        Returns:
            Stock quantity, or None if the product does not exist
        """
        stmt = select(Product.stock_quantity).where(Product.product_id == product_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()
    
    def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """
        Atomically take quantity units out of stock
        
        The WHERE clause only matches while enough stock remains, so two
        concurrent orders cannot both succeed against the same units.
        
        Returns:
            True if the row was updated, False on insufficient stock or unknown product
        """
        result = self.db.execute(
            update(Product)
            .where(Product.product_id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        self._expire_stock(product_id)
        return result.rowcount == 1
    
    def restore_stock(self, product_id: int, quantity: int) -> bool:
        """Put quantity units back into stock"""
        result = self.db.execute(
            update(Product)
            .where(Product.product_id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        self._expire_stock(product_id)
        return result.rowcount == 1
    
    def log_movement(
        self,
        product_id: int,
        event_type: str,
        quantity: int,
        before_quantity: Optional[int] = None,
        after_quantity: Optional[int] = None,
        order_id: Optional[int] = None,
        user_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> InventoryLog:
        """Record a stock movement"""
        entry = InventoryLog(
            product_id=product_id,
            event_type=event_type,
            quantity=quantity,
            before_quantity=before_quantity,
            after_quantity=after_quantity,
            order_id=order_id,
            user_id=user_id,
            description=description,
        )
        self.db.add(entry)
        self.db.flush()
        return entry
    
    def list_movements(self, product_id: int) -> List[InventoryLog]:
        """Stock movements of a product, oldest first"""
        return self.db.scalars(
            select(InventoryLog)
            .where(InventoryLog.product_id == product_id)
            .order_by(InventoryLog.log_id)
        ).all()
    
    def _expire_stock(self, product_id: int) -> None:
        # Bulk UPDATE bypasses the identity map; drop any cached stock value
        product = self.db.identity_map.get(identity_key(Product, product_id))
        if product is not None:
            self.db.expire(product, ["stock_quantity"])
