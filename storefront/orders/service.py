"""
Cas d'usage 'orders' exposé en HTTP: commande directe à partir de références
produit. Nom et prix viennent du catalogue, jamais du client.
"""
from typing import Any, Dict, List, Optional
import logging

from storefront.catalog import repository as catalog_repository
from storefront.errors import BadRequest, NotFound
from storefront.utils.money import to_decimal
from . import writer
from .models import OrderData, OrderLineRef

logger = logging.getLogger(__name__)

def price_lines(lines: List[OrderLineRef]) -> List[Dict[str, Any]]:
    """Quantités regroupées par produit, nom et prix serveur; produit inconnu -> NotFound."""
    quantities: Dict[int, int] = {}
    for line in lines:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + int(line.quantity)
    products = catalog_repository.get_products_map(quantities.keys())
    items = []
    for product_id, quantity in quantities.items():
        product = products.get(product_id)
        if not product:
            raise NotFound(f"Product {product_id} not found")
        items.append({
            "product_id": product_id,
            "product_name": product.get("name") or "",
            "product_price": to_decimal(product.get("price")),
            "quantity": quantity,
        })
    return items

def place_order(
    user_id: Optional[str],
    order_data: OrderData,
    lines: List[OrderLineRef],
    payment_reference: Optional[str] = None,
) -> Dict[str, Any]:
    if not lines:
        raise BadRequest("Order must contain at least one item")
    items = price_lines(lines)
    logger.info("orders.place_order user_id=%s lines=%s", user_id, len(items))
    return writer.create_order(order_data, items, user_id, payment_reference)
