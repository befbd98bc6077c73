"""
Accès aux données pour la feature 'cart' (table cart_items).
Toutes les requêtes sont filtrées par user_id: un utilisateur ne voit que son panier.
"""
from typing import List, Optional
import logging
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

CART_SELECT = "id, product_id, quantity, product:products(id, name, price, stock, image, description, category)"

# module storefront.cart.repository
def list_cart_rows(user_id: str) -> List[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("cart_items")
            .select(CART_SELECT)
            .eq("user_id", user_id)
            .order("id")
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("cart.repository.list_cart_rows failed user_id=%s", user_id)
        raise

def get_cart_item(user_id: str, item_id: int) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("cart_items")
        .select("id, product_id, quantity")
        .eq("id", int(item_id))
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def find_cart_item_by_product(user_id: str, product_id: int) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("cart_items")
        .select("id, product_id, quantity")
        .eq("user_id", user_id)
        .eq("product_id", int(product_id))
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def insert_cart_item(user_id: str, product_id: int, quantity: int) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("cart_items")
            .insert({"user_id": user_id, "product_id": int(product_id), "quantity": int(quantity)})
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("cart.repository.insert_cart_item failed user_id=%s product_id=%s", user_id, product_id)
        raise

def update_cart_item_quantity(user_id: str, item_id: int, quantity: int) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("cart_items")
            .update({"quantity": int(quantity)})
            .eq("id", int(item_id))
            .eq("user_id", user_id)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("cart.repository.update_cart_item_quantity failed user_id=%s item_id=%s", user_id, item_id)
        raise

def delete_cart_item(user_id: str, item_id: int) -> bool:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("cart_items")
            .delete()
            .eq("id", int(item_id))
            .eq("user_id", user_id)
            .execute()
        )
        return bool(res.data)
    except Exception:
        logger.exception("cart.repository.delete_cart_item failed user_id=%s item_id=%s", user_id, item_id)
        raise

def delete_cart(user_id: str) -> int:
    """Vide le panier; retourne le nombre de lignes supprimées."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("cart_items")
            .delete()
            .eq("user_id", user_id)
            .execute()
        )
        return len(res.data or [])
    except Exception:
        logger.exception("cart.repository.delete_cart failed user_id=%s", user_id)
        raise
