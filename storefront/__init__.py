"""
Grocery storefront - order placement and status workflow
"""
__version__ = "1.0.0"
