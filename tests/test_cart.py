import pytest

from storefront.schemas.cart import Cart, CartLine


def test_repeated_lines_are_summed():
    cart = Cart.from_lines([CartLine(product_id=1, quantity=2), CartLine(product_id=1, quantity=3)])
    
    assert cart.as_dict() == {1: 5}
    assert cart.total_items == 5


def test_update_to_zero_removes():
    cart = Cart({1: 2, 2: 1})
    cart.update(1, 0)
    
    assert 1 not in cart
    assert len(cart) == 1


def test_add_rejects_non_positive():
    with pytest.raises(ValueError):
        Cart().add(1, 0)


def test_clear():
    cart = Cart({1: 2})
    cart.clear()
    
    assert cart.is_empty
