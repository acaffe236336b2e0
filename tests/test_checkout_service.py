"""
Checkout: cart validation against the catalogue and order placement
"""
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront.models import Order, OrderItem, Product
from storefront.schemas.cart import Cart
from storefront.services.checkout_service import (
    CheckoutError,
    CheckoutService,
    EmptyCartError,
    OrderPlacementError,
    ProductUnavailableError,
)


@pytest.fixture
def checkout(db):
    return CheckoutService(db)


def test_places_order_with_catalogue_prices(db, users, products, checkout):
    cart = Cart({1: 2, 2: 1})
    
    order_id = checkout.checkout(7, cart, notes="leave at door", shipping_address="1 Forest Path")
    
    order = db.get(Order, order_id)
    assert order.total_amount == Decimal("12.00")
    assert order.shipping_address == "1 Forest Path"
    assert sorted((i.product_id, i.price) for i in order.items) == [(1, Decimal("3.50")), (2, Decimal("5.00"))]
    assert cart.is_empty


def test_empty_cart(users, products, checkout):
    with pytest.raises(EmptyCartError, match="empty"):
        checkout.checkout(7, Cart())


def test_inactive_product_rejected(db, users, products, checkout):
    cart = Cart({1: 1, 3: 1})
    
    with pytest.raises(ProductUnavailableError) as excinfo:
        checkout.checkout(7, cart)
    
    assert excinfo.value.product_id == 3
    assert db.scalar(select(func.count()).select_from(Order)) == 0
    assert len(cart) == 2


def test_unknown_product_rejected(users, products, checkout):
    with pytest.raises(ProductUnavailableError, match="no longer available"):
        checkout.checkout(7, Cart({42: 1}))


def test_short_stock_rejected_before_writing(db, users, products, checkout):
    with pytest.raises(ProductUnavailableError, match="1 available"):
        checkout.checkout(7, Cart({2: 3}))
    
    assert db.scalar(select(func.count()).select_from(OrderItem)) == 0


def test_failed_placement_keeps_cart(db, users, products):
    class RefusingOrderService:
        def create_order(self, **kwargs):
            return None
    
    checkout = CheckoutService(db, order_service=RefusingOrderService())
    cart = Cart({1: 1})
    
    with pytest.raises(OrderPlacementError):
        checkout.checkout(7, cart)
    assert 1 in cart


def test_single_product_order(db, users, products, checkout):
    order_id = checkout.order_single_product(7, 1, 3)
    
    assert db.get(Order, order_id).total_amount == Decimal("10.50")
    assert db.scalar(select(Product.stock_quantity).where(Product.product_id == 1)) == 7


def test_single_product_needs_positive_quantity(users, products, checkout):
    with pytest.raises(CheckoutError, match="valid quantity"):
        checkout.order_single_product(7, 1, 0)
