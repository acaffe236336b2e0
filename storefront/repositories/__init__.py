"""
Repositories package
"""
from storefront.repositories.order_repository import OrderRepository, OrderItemRepository
from storefront.repositories.product_repository import ProductRepository

__all__ = ["OrderRepository", "OrderItemRepository", "ProductRepository"]
