"""
Cas d'usage 'cart': mutations du panier validées contre le stock faisant autorité.

Chaque mutation relit le stock du produit. Une quantité supérieure au stock est
ramenée au stock disponible et signalée (stock_limited=True) sans échec.
"""
from typing import Any, Dict, Optional
import logging

from storefront.catalog import repository as catalog_repository
from storefront.errors import AuthenticationRequired, BadRequest, NotFound, OutOfStock
from . import repository
from .models import CartLine, CartSnapshot

logger = logging.getLogger(__name__)

def _require_user_id(user: Optional[Dict[str, Any]]) -> str:
    user_id = str((user or {}).get("id") or "")
    if not user_id:
        raise AuthenticationRequired("You need to be signed in to modify your cart")
    return user_id

def _available_stock(product_id: int) -> int:
    product = catalog_repository.get_product(product_id)
    if not product:
        raise NotFound(f"Product {product_id} not found")
    return max(int(product.get("stock") or 0), 0)

def _result(item_id, product_id, requested: int, quantity: int, removed: bool = False) -> Dict[str, Any]:
    return {
        "item_id": item_id,
        "product_id": product_id,
        "requested_quantity": requested,
        "quantity": quantity,
        "stock_limited": quantity < requested,
        "removed": removed,
    }

def get_cart(user: Optional[Dict[str, Any]]) -> CartSnapshot:
    user_id = _require_user_id(user)
    rows = repository.list_cart_rows(user_id)
    return CartSnapshot(user_id=user_id, items=[CartLine.from_row(r) for r in rows])

def add_item(user: Optional[Dict[str, Any]], product_id: int, quantity: int) -> Dict[str, Any]:
    """
    Ajoute un produit (ou incrémente la ligne existante).
    - quantity <= 0 -> BadRequest
    - stock nul -> OutOfStock
    - existant + quantity > stock -> quantité ramenée au stock, stock_limited=True
    """
    user_id = _require_user_id(user)
    if int(quantity) <= 0:
        raise BadRequest("Quantity must be at least 1")
    stock = _available_stock(product_id)
    if stock <= 0:
        raise OutOfStock(f"Product {product_id} is out of stock")

    existing = repository.find_cart_item_by_product(user_id, product_id)
    current = int((existing or {}).get("quantity") or 0)
    requested = current + int(quantity)
    final_qty = min(requested, stock)

    if existing:
        repository.update_cart_item_quantity(user_id, existing["id"], final_qty)
        item_id = existing["id"]
    else:
        row = repository.insert_cart_item(user_id, product_id, final_qty)
        item_id = (row or {}).get("id")

    if final_qty < requested:
        logger.info("cart.add_item stock limit user_id=%s product_id=%s requested=%s stock=%s", user_id, product_id, requested, stock)
    return _result(item_id, product_id, requested, final_qty)

def update_quantity(user: Optional[Dict[str, Any]], item_id: int, quantity: int) -> Dict[str, Any]:
    """Fixe la quantité d'une ligne; <= 0 équivaut à remove_item."""
    user_id = _require_user_id(user)
    item = repository.get_cart_item(user_id, item_id)
    if not item:
        raise NotFound(f"Cart item {item_id} not found")
    product_id = int(item["product_id"])
    if int(quantity) <= 0:
        return remove_item(user, item_id)

    stock = _available_stock(product_id)
    final_qty = min(int(quantity), stock)
    if final_qty <= 0:
        repository.delete_cart_item(user_id, item_id)
        return _result(item_id, product_id, int(quantity), 0, removed=True)

    repository.update_cart_item_quantity(user_id, item_id, final_qty)
    return _result(item_id, product_id, int(quantity), final_qty)

def remove_item(user: Optional[Dict[str, Any]], item_id: int) -> Dict[str, Any]:
    user_id = _require_user_id(user)
    item = repository.get_cart_item(user_id, item_id)
    if not item:
        raise NotFound(f"Cart item {item_id} not found")
    repository.delete_cart_item(user_id, item_id)
    return _result(item_id, int(item["product_id"]), 0, 0, removed=True)

def clear(user: Optional[Dict[str, Any]]) -> int:
    user_id = _require_user_id(user)
    return repository.delete_cart(user_id)
