"""
Session-scoped shopping cart
"""
from typing import Dict, Iterable, Iterator, Optional, Tuple

from pydantic import BaseModel, Field


class CartLine(BaseModel):
    """A product and how many of it the customer wants"""
    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., gt=0, description="Quantity")


class Cart:
    """
    Mapping of product id -> quantity owned by one user session.

    Not persisted; the web/API layer keeps it wherever its session lives
    and hands it to checkout, which clears it once the order is placed.
    """

    def __init__(self, items: Optional[Dict[int, int]] = None):
        self._items: Dict[int, int] = {}
        for product_id, quantity in (items or {}).items():
            self.update(product_id, quantity)

    @classmethod
    def from_lines(cls, lines: Iterable[CartLine]) -> "Cart":
        """Build a cart, summing quantities of repeated products"""
        cart = cls()
        for line in lines:
            cart.add(line.product_id, line.quantity)
        return cart

    def add(self, product_id: int, quantity: int = 1) -> None:
        if quantity <= 0:
            raise ValueError("The quantity must be a positive number.")
        self._items[product_id] = self._items.get(product_id, 0) + quantity

    def update(self, product_id: int, quantity: int) -> None:
        """Set a line's quantity; zero or less removes it"""
        if quantity <= 0:
            self.remove(product_id)
        else:
            self._items[product_id] = quantity

    def remove(self, product_id: int) -> None:
        self._items.pop(product_id, None)

    def clear(self) -> None:
        self._items.clear()

    def items(self) -> Iterator[Tuple[int, int]]:
        return iter(list(self._items.items()))

    def product_ids(self) -> list:
        return list(self._items)

    def as_dict(self) -> Dict[int, int]:
        return dict(self._items)

    @property
    def total_items(self) -> int:
        return sum(self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, product_id) -> bool:
        return product_id in self._items
