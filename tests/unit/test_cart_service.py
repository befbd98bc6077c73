import pytest

from storefront.cart import service
from storefront.errors import AuthenticationRequired, BadRequest, NotFound, OutOfStock

USER = {"id": "u1", "email": "u1@example.com"}


def test_add_item_clamps_to_stock(shop):
    shop.add_product(5, "Widget", "49.99", stock=3)
    result = service.add_item(USER, 5, 10)
    assert result["quantity"] == 3
    assert result["stock_limited"] is True
    assert shop.cart[result["item_id"]]["quantity"] == 3

def test_add_item_existing_line_plus_delta_never_exceeds_stock(shop):
    shop.add_product(5, "Widget", "49.99", stock=4)
    shop.add_cart_line("u1", 5, 3)
    result = service.add_item(USER, 5, 2)
    assert result["requested_quantity"] == 5
    assert result["quantity"] == 4
    assert result["stock_limited"] is True
    assert len(shop.cart) == 1

def test_add_item_within_stock_is_not_limited(shop):
    shop.add_product(5, "Widget", "49.99", stock=10)
    result = service.add_item(USER, 5, 2)
    assert result == {
        "item_id": result["item_id"],
        "product_id": 5,
        "requested_quantity": 2,
        "quantity": 2,
        "stock_limited": False,
        "removed": False,
    }

def test_add_item_out_of_stock(shop):
    shop.add_product(5, "Widget", "49.99", stock=0)
    with pytest.raises(OutOfStock) as exc:
        service.add_item(USER, 5, 1)
    assert exc.value.status_code == 409
    assert shop.cart == {}

def test_add_item_unknown_product(shop):
    with pytest.raises(NotFound):
        service.add_item(USER, 99, 1)

def test_add_item_requires_positive_quantity(shop):
    shop.add_product(5, "Widget", "49.99", stock=3)
    with pytest.raises(BadRequest):
        service.add_item(USER, 5, 0)

def test_add_item_requires_user(shop):
    with pytest.raises(AuthenticationRequired) as exc:
        service.add_item(None, 5, 1)
    assert exc.value.status_code == 401

def test_update_quantity_zero_removes_line(shop):
    shop.add_product(5, "Widget", "49.99", stock=3)
    line = shop.add_cart_line("u1", 5, 2)
    result = service.update_quantity(USER, line["id"], 0)
    assert result["removed"] is True
    assert shop.cart == {}

def test_update_quantity_clamps_to_current_stock(shop):
    shop.add_product(5, "Widget", "49.99", stock=2)
    line = shop.add_cart_line("u1", 5, 1)
    result = service.update_quantity(USER, line["id"], 7)
    assert result["quantity"] == 2
    assert result["stock_limited"] is True

def test_update_quantity_when_stock_dropped_to_zero_removes_line(shop):
    shop.add_product(5, "Widget", "49.99", stock=0)
    line = shop.add_cart_line("u1", 5, 1)
    result = service.update_quantity(USER, line["id"], 1)
    assert result["removed"] is True
    assert shop.cart == {}

def test_items_of_another_user_are_invisible(shop):
    shop.add_product(5, "Widget", "49.99", stock=3)
    line = shop.add_cart_line("someone-else", 5, 1)
    with pytest.raises(NotFound):
        service.remove_item(USER, line["id"])

def test_get_cart_derives_subtotal_and_count(shop):
    shop.add_product(5, "Widget", "49.99", stock=10)
    shop.add_product(6, "Gadget", "0.50", stock=10)
    shop.add_cart_line("u1", 5, 2)
    shop.add_cart_line("u1", 6, 3)
    cart = service.get_cart(USER).to_dict()
    assert cart["item_count"] == 5
    assert cart["subtotal"] == 101.48

def test_clear_returns_removed_count(shop):
    shop.add_product(5, "Widget", "49.99", stock=10)
    shop.add_cart_line("u1", 5, 1)
    shop.add_cart_line("u2", 5, 1)
    assert service.clear(USER) == 1
    assert len(shop.cart) == 1
