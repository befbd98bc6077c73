"""
Accès aux données 'orders', 'order_items' et 'reconciliation_queue'.

Une commande n'est jamais supprimée: après création, seuls status,
tracking_number, carrier_data et notes évoluent.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging
import storefront.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "id, user_id, created_at, status, total, shipping_method, shipping_address, "
    "payment_intent_id, tracking_number, carrier_data, notes"
)

# module storefront.orders.repository
def insert_order(row: Dict[str, Any]) -> Optional[dict]:
    try:
        res = supabase_client.get_service_supabase().table("orders").insert(row).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("orders.repository.insert_order failed user_id=%s", row.get("user_id"))
        raise

def insert_order_items(order_id: int, items: List[Dict[str, Any]]) -> List[dict]:
    payload = [
        {
            "order_id": int(order_id),
            "product_id": int(i["product_id"]),
            "product_name": i["product_name"],
            "product_price": str(i["product_price"]),
            "quantity": int(i["quantity"]),
        }
        for i in items
    ]
    try:
        res = supabase_client.get_service_supabase().table("order_items").insert(payload).execute()
        return res.data or []
    except Exception:
        logger.exception("orders.repository.insert_order_items failed order_id=%s", order_id)
        raise

def delete_order_items(order_id: int) -> None:
    (
        supabase_client.get_service_supabase()
        .table("order_items")
        .delete()
        .eq("order_id", int(order_id))
        .execute()
    )

def get_order(order_id: int, user_id: Optional[str] = None) -> Optional[dict]:
    """
    Lit une commande; si user_id est fourni, la commande doit lui appartenir
    (sinon None, l'appelant répond NotFound sans révéler son existence).
    """
    try:
        query = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select(ORDER_COLUMNS)
            .eq("id", int(order_id))
        )
        if user_id:
            query = query.eq("user_id", str(user_id))
        res = query.limit(1).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("orders.repository.get_order failed order_id=%s", order_id)
        return None

def get_order_items(order_id: int) -> List[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("order_items")
            .select("id, order_id, product_id, product_name, product_price, quantity")
            .eq("order_id", int(order_id))
            .order("id")
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.get_order_items failed order_id=%s", order_id)
        return []

def find_order_by_payment_reference(payment_reference: str) -> Optional[dict]:
    if not payment_reference:
        return None
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select(ORDER_COLUMNS)
        .eq("payment_intent_id", payment_reference)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def update_order(order_id: int, fields: Dict[str, Any]) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .update(fields)
            .eq("id", int(order_id))
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("orders.repository.update_order failed order_id=%s", order_id)
        raise

def set_tracking_number(order_id: int, tracking_number: str, fields: Optional[Dict[str, Any]] = None) -> bool:
    """
    Pose le numéro de suivi une seule fois:
    UPDATE orders SET tracking_number = :tn WHERE id = :id AND tracking_number IS NULL.
    - True si cette requête l'a posé, False si un autre appel l'avait déjà fait.
    """
    payload = dict(fields or {})
    payload["tracking_number"] = tracking_number
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .update(payload)
        .eq("id", int(order_id))
        .is_("tracking_number", "null")
        .execute()
    )
    return bool(res.data)

def append_note(order_id: int, note: str) -> None:
    """Ajoute une note horodatée aux notes existantes (diagnostic opérateur)."""
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    line = f"[{stamp}] {note}"
    order = get_order(order_id)
    existing = (order or {}).get("notes") or ""
    notes = f"{existing}\n{line}" if existing else line
    update_order(order_id, {"notes": notes})

def insert_reconciliation_entry(entry: Dict[str, Any]) -> Optional[dict]:
    try:
        res = supabase_client.get_service_supabase().table("reconciliation_queue").insert(entry).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("orders.repository.insert_reconciliation_entry failed order_id=%s", entry.get("order_id"))
        raise
