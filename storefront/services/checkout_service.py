"""
Checkout Service - turns a cart into order lines priced from the catalogue
"""
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.repositories.product_repository import ProductRepository
from storefront.schemas.cart import Cart
from storefront.schemas.order import OrderLineRequest
from storefront.services.order_service import OrderService


class CheckoutError(Exception):
    """Checkout rejected before anything was written; str(e) is safe to show the customer"""
    pass


class EmptyCartError(CheckoutError):
    """Nothing to order"""
    pass


class ProductUnavailableError(CheckoutError):
    """Product missing, inactive, or short of stock"""
    
    def __init__(self, message: str, product_id: int):
        super().__init__(message)
        self.product_id = product_id


class OrderPlacementError(CheckoutError):
    """Validated order could not be persisted"""
    pass


class CheckoutService:
    """Validates carts against current product rows and places the order"""
    
    def __init__(self, db: Session, order_service: Optional[OrderService] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.product_repository = ProductRepository(db)
        self.order_service = order_service or OrderService(db, logger=self.logger)
    
    def checkout(
        self,
        user_id: int,
        cart: Cart,
        notes: Optional[str] = None,
        shipping_address: Optional[str] = None,
    ) -> int:
        """
        Place an order for everything in the cart
        
        Prices and stock are re-read from the database; client-side prices
        are never trusted. The cart is cleared only after the order commits.
        
        Returns:
            New order ID
        
        Raises:
            EmptyCartError: Cart has no lines
            ProductUnavailableError: A product is missing, inactive or short of stock
            OrderPlacementError: The order transaction failed
        """
        if cart.is_empty:
            raise EmptyCartError("Your cart is empty.")
        
        lines, total = self._price_lines(cart)
        order_id = self.order_service.create_order(
            user_id=user_id,
            lines=lines,
            total_amount=total,
            notes=notes,
            shipping_address=shipping_address,
        )
        if not order_id:
            raise OrderPlacementError("Failed to place order. Please check the details and try again.")
        
        cart.clear()
        return order_id
    
    def order_single_product(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
        notes: Optional[str] = None,
        shipping_address: Optional[str] = None,
    ) -> int:
        """Place an order for one product without touching the session cart"""
        if quantity <= 0:
            raise CheckoutError("Please enter a valid quantity.")
        return self.checkout(user_id, Cart({product_id: quantity}), notes=notes, shipping_address=shipping_address)
    
    def _price_lines(self, cart: Cart) -> Tuple[List[OrderLineRequest], Decimal]:
        try:
            products = self.product_repository.get_many_by_ids(cart.product_ids())
        except SQLAlchemyError:
            self.logger.exception("Error fetching products %s for checkout", cart.product_ids())
            raise CheckoutError("Could not verify product details. Please try again.")
        
        lines = []
        total = Decimal("0")
        for product_id, quantity in cart.items():
            product = products.get(product_id)
            if product is None or not product.is_active:
                self.logger.warning("Product %s from cart no longer available", product_id)
                raise ProductUnavailableError(
                    f"Product ID:{product_id} is no longer available.", product_id
                )
            if product.stock_quantity < quantity:
                self.logger.warning(
                    "Insufficient stock for product %s: requested %s, available %s",
                    product_id, quantity, product.stock_quantity
                )
                raise ProductUnavailableError(
                    f"{product.name} is not available in the requested quantity "
                    f"({product.stock_quantity} available).",
                    product_id
                )
            price = Decimal(product.price)
            lines.append(OrderLineRequest(product_id=product_id, quantity=quantity, unit_price=price))
            total += price * quantity
        return lines, total
