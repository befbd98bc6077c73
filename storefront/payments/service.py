"""
Cas d'usage 'payments': vérification d'une session Stripe payée et création
de la commande correspondante.

Orchestre stripe_client, metadata, reconciliation, orders.writer, puis les
suites best-effort (vidage du panier, envoi Packeta).
"""
from typing import Any, Dict, List, Optional
import logging

from storefront.cart import repository as cart_repository
from storefront.checkout.pricing import SHIPPING_METHODS
from storefront.errors import Forbidden, InvalidRequest, MissingUserContext, PaymentNotCompleted, StorefrontError
from storefront.orders import repository as orders_repository
from storefront.orders import writer
from storefront.shipping import dispatcher
from storefront.shipping.models import PacketaAddress, address_to_dict, parse_address
from . import metadata as meta
from . import reconciliation
from . import stripe_client

logger = logging.getLogger(__name__)

def payment_reference(session: Dict[str, Any]) -> str:
    """payment_intent (id ou objet déplié), sinon l'id de session."""
    intent = session.get("payment_intent")
    if isinstance(intent, dict):
        intent = intent.get("id")
    return intent or session["id"]

def _session_summary(session: Dict[str, Any]) -> Dict[str, Any]:
    details = session.get("customer_details") or {}
    return {
        "id": session.get("id"),
        "payment_status": session.get("payment_status"),
        "amount_total": session.get("amount_total"),
        "currency": session.get("currency"),
        "customer_email": details.get("email") or session.get("customer_email"),
    }

def _shipping_method(raw: str, address) -> str:
    if raw in SHIPPING_METHODS:
        return raw
    # Paiement déjà encaissé: on déduit la méthode plutôt que d'échouer
    fallback = "packeta" if isinstance(address, PacketaAddress) else "standard"
    logger.warning("payments.verify unknown shipping_method=%r, using %s", raw, fallback)
    return fallback

def _queue_for_review(order_id: int, session_id: str, unmatched: List[Dict[str, Any]]) -> None:
    for item in unmatched:
        try:
            orders_repository.insert_reconciliation_entry({
                "order_id": order_id,
                "session_id": session_id,
                "description": item["product_name"],
                "quantity": item["quantity"],
                "unit_price": str(item["product_price"]),
                "reason": "no catalog product matched by metadata or name",
            })
        except Exception:
            logger.exception("payments.verify could not queue unmatched line order_id=%s", order_id)

def _clear_cart(user_id: str) -> None:
    try:
        cart_repository.delete_cart(user_id)
    except Exception:
        logger.warning("payments.verify cart not cleared user_id=%s", user_id, exc_info=True)

def _dispatch(order_id: int, user_id: str, email: str) -> Dict[str, Any]:
    try:
        sent = dispatcher.dispatch(order_id, user_id, email=email or "", payment_method="card")
        return {"carrier_status": "created", "tracking_number": sent["tracking_number"]}
    except StorefrontError as e:
        # Déjà annoté sur la commande; la vérification du paiement n'échoue pas
        logger.warning("payments.verify dispatch deferred order_id=%s: %s", order_id, e.details or e.error)
        return {"carrier_status": "failed", "carrier_error": e.details or e.error}

def verify_session(
    session_id: str,
    fallback_user_id: Optional[str] = None,
    requesting_user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Vérifie une session Checkout et écrit la commande une seule fois.
    - requesting_user_id: utilisateur connecté; une session d'un autre utilisateur -> Forbidden (403)
    Retour: {order_id, status, created, session, line_items, ...}
    """
    if not session_id:
        raise InvalidRequest("Missing session ID")

    session = stripe_client.retrieve_session(session_id, expand=["payment_intent"])
    status = session.get("payment_status") or ""
    if status != "paid":
        raise PaymentNotCompleted(details=f"payment_status={status or 'unknown'}")

    meta_user_id, raw_method, raw_address = meta.extract_metadata_from_session(session)
    if requesting_user_id and meta_user_id and meta_user_id != str(requesting_user_id):
        logger.warning("payments.verify user mismatch session_id=%s requesting_user_id=%s", session_id, requesting_user_id)
        raise Forbidden("Session belongs to another user")

    reference = payment_reference(session)
    existing = orders_repository.find_order_by_payment_reference(reference)
    if existing:
        logger.info("payments.verify already processed session_id=%s order_id=%s", session_id, existing.get("id"))
        return {
            "order_id": int(existing["id"]),
            "status": existing.get("status"),
            "created": False,
            "session": _session_summary(session),
            "line_items": [],
        }

    user_id = meta_user_id or requesting_user_id or fallback_user_id
    if not user_id:
        raise MissingUserContext(details="No user_id in session metadata and no authenticated user")

    address, address_error = parse_address(raw_address)
    shipping_method = _shipping_method(raw_method, address)

    line_items = stripe_client.list_line_items(session_id)
    items, unmatched = reconciliation.reconcile_line_items(line_items)

    result = writer.create_order(
        {"shipping_method": shipping_method, "shipping_address": address_to_dict(address)},
        items,
        user_id,
        reference,
    )
    response: Dict[str, Any] = {
        **result,
        "session": _session_summary(session),
        "line_items": [{**i, "product_price": float(i["product_price"])} for i in items],
    }
    if address_error:
        response["shipping_address_error"] = address_error
    if not result["created"]:
        return response

    logger.info("payments.verify order created session_id=%s order_id=%s user_id=%s", session_id, result["order_id"], user_id)
    if unmatched:
        _queue_for_review(result["order_id"], session_id, unmatched)
    _clear_cart(user_id)
    if shipping_method == "packeta":
        response.update(_dispatch(result["order_id"], user_id, response["session"]["customer_email"]))
    return response
