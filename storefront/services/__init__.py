"""
Services package
"""
from storefront.services.order_service import OrderService
from storefront.services.checkout_service import CheckoutService

__all__ = ["OrderService", "CheckoutService"]
