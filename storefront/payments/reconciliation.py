"""
Rapprochement des lignes Stripe avec le catalogue.

Stratégies ordonnées, la première qui trouve un produit l'emporte:
  1) metadata.product_id (> 0 et présent au catalogue)
  2) nom du produit (insensible à la casse)
  3) produit sentinelle UNRECONCILED_PRODUCT_ID, ligne envoyée en file de revue
Les lignes techniques (metadata.kind = shipping|tax) sont ignorées.
"""
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from storefront.catalog import repository as catalog_repository
from storefront.utils.money import from_cents, round_cents

logger = logging.getLogger(__name__)

UNRECONCILED_PRODUCT_ID = 0
NON_PRODUCT_KINDS = ("shipping", "tax")


def _product_of(line: Dict[str, Any]) -> Dict[str, Any]:
    product = ((line.get("price") or {}).get("product")) or {}
    return product if isinstance(product, dict) else {}

def _line_name(line: Dict[str, Any]) -> str:
    return (_product_of(line).get("name") or line.get("description") or "").strip()

def _metadata_product_id(line: Dict[str, Any]) -> int:
    raw = (_product_of(line).get("metadata") or {}).get("product_id")
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0

def is_product_line(line: Dict[str, Any]) -> bool:
    kind = (_product_of(line).get("metadata") or {}).get("kind")
    return kind not in NON_PRODUCT_KINDS

def unit_price(line: Dict[str, Any]) -> Decimal:
    """Prix réellement facturé: price.unit_amount, sinon amount_total / quantité."""
    amount = (line.get("price") or {}).get("unit_amount")
    if amount is not None:
        return from_cents(amount)
    qty = int(line.get("quantity") or 1)
    return round_cents(from_cents(line.get("amount_total") or 0) / qty)

def by_metadata(line: Dict[str, Any]) -> Optional[dict]:
    product_id = _metadata_product_id(line)
    if product_id <= 0:
        return None
    return catalog_repository.get_product(product_id)

def by_name(line: Dict[str, Any]) -> Optional[dict]:
    return catalog_repository.find_product_by_name(_line_name(line))

STRATEGIES: List[Tuple[str, Callable[[Dict[str, Any]], Optional[dict]]]] = [
    ("metadata", by_metadata),
    ("name", by_name),
]

def reconcile_line(line: Dict[str, Any]) -> Dict[str, Any]:
    name = _line_name(line) or "Unknown product"
    item = {
        "product_id": UNRECONCILED_PRODUCT_ID,
        "product_name": name,
        "product_price": unit_price(line),
        "quantity": int(line.get("quantity") or 1),
        "matched_by": "sentinel",
    }
    for label, strategy in STRATEGIES:
        product = strategy(line)
        if product and product.get("id") is not None:
            item["product_id"] = int(product["id"])
            item["matched_by"] = label
            break
    return item

def reconcile_line_items(line_items: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Retour: (lignes de commande, lignes non rapprochées)."""
    items = [reconcile_line(line) for line in line_items if is_product_line(line)]
    unmatched = [i for i in items if i["product_id"] == UNRECONCILED_PRODUCT_ID]
    for i in unmatched:
        logger.warning("payments.reconcile unmatched line name=%s qty=%s", i["product_name"], i["quantity"])
    return items, unmatched
