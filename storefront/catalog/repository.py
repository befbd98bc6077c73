"""
Accès aux données 'products' et registre de stock (Inventory Ledger).

Le stock n'est modifié que par decrement_stock (commande) et restock
(compensation d'une commande échouée), tous deux via des fonctions SQL
à mise à jour conditionnelle.
"""
from typing import Any, Dict, Iterable, List, Optional
import logging
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, name, price, stock, category, description, image"

# module storefront.catalog.repository
def fetch_products_by_ids(ids: List[int]) -> List[dict]:
    """
    Récupère les produits par leurs IDs.
    - Retourne [] si ids vide ou en cas d'erreur.
    """
    if not ids:
        return []
    try:
        res = (
            supabase_client.get_supabase()
            .table("products")
            .select(PRODUCT_COLUMNS)
            .in_("id", [int(i) for i in ids])
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.fetch_products_by_ids failed ids=%s", ids)
        return []

def get_products_map(ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
    """Retourne un dict {id: produit} à partir d'une liste d'IDs."""
    products = fetch_products_by_ids(list(ids))
    return {int(p.get("id")): p for p in products}

def get_product(product_id: int) -> Optional[dict]:
    """Lecture du stock et du prix faisant autorité pour un produit."""
    try:
        res = (
            supabase_client.get_supabase()
            .table("products")
            .select(PRODUCT_COLUMNS)
            .eq("id", int(product_id))
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("catalog.repository.get_product failed id=%s", product_id)
        return None

def find_product_by_name(name: str) -> Optional[dict]:
    """
    Recherche tolérante par nom (insensible à la casse).
    - Essaie d'abord l'égalité exacte (ilike sans joker), puis une recherche partielle.
    - Retourne le premier résultat ou None.
    """
    name = (name or "").strip()
    if not name:
        return None
    escaped = name.replace("%", r"\%").replace("_", r"\_")
    try:
        for pattern in (escaped, f"%{escaped}%"):
            res = (
                supabase_client.get_supabase()
                .table("products")
                .select(PRODUCT_COLUMNS)
                .ilike("name", pattern)
                .order("id")
                .limit(1)
                .execute()
            )
            rows = res.data or []
            if rows:
                return rows[0]
        return None
    except Exception:
        logger.exception("catalog.repository.find_product_by_name failed name=%s", name)
        return None

def decrement_stock(product_id: int, quantity: int) -> bool:
    """
    Décrémente le stock de façon atomique via decrease_product_stock:
    UPDATE products SET stock = stock - :qty WHERE id = :id AND stock >= :qty.
    - True si une ligne a été mise à jour, False si stock insuffisant.
    - Les erreurs d'accès base sont propagées (l'appelant annule la commande).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc("decrease_product_stock", {"product_id": int(product_id), "quantity": int(quantity)})
            .execute()
        )
    except Exception:
        logger.exception("catalog.repository.decrement_stock failed id=%s qty=%s", product_id, quantity)
        raise
    return res.data is True

def restock(product_id: int, quantity: int) -> None:
    """Compensation: remet en stock une quantité précédemment décrémentée."""
    try:
        (
            supabase_client.get_service_supabase()
            .rpc("increase_product_stock", {"product_id": int(product_id), "quantity": int(quantity)})
            .execute()
        )
    except Exception:
        logger.exception("catalog.repository.restock failed id=%s qty=%s", product_id, quantity)
        raise
