"""
Cas d'usage 'checkout': validation du formulaire, rapprochement du panier avec
le stock serveur, création de la session Stripe, commande payée à la livraison.
"""
from typing import Any, Dict, List, Optional, Tuple
import logging

from pydantic import ValidationError

from storefront.cart import repository as cart_repository
from storefront.cart import service as cart_service
from storefront.cart.models import CartSnapshot
from storefront.catalog import repository as catalog_repository
from storefront.config import get_settings
from storefront.errors import (
    BadRequest,
    InsufficientStock,
    InvalidRequest,
    PickupPointRequired,
    StorefrontError,
)
from storefront.orders import writer
from storefront.orders.models import MANUAL_PAYMENT_SENTINEL
from storefront.payments import metadata as payments_metadata
from storefront.payments import stripe_client
from storefront.shipping import dispatcher
from storefront.shipping.models import PacketaAddress, StandardAddress, address_from_dict, address_to_dict
from storefront.utils.money import to_cents, to_decimal
from .pricing import compute_totals, normalize_shipping_method

logger = logging.getLogger(__name__)

STANDARD_REQUIRED_FIELDS = (
    ("full_name", "fullName"),
    ("address_line1", "addressLine1"),
    ("city", "city"),
    ("zip_code", "zipCode"),
    ("country", "country"),
)

def validate_checkout(shipping_method: str, shipping_address: Any) -> Tuple[str, Any]:
    """
    Valide méthode + adresse avant tout appel au prestataire de paiement.
    - packeta sans point relais -> PickupPointRequired
    - standard/express: fullName, addressLine1, city, zipCode, country obligatoires
    Retour: (méthode normalisée, adresse typée)
    """
    method = normalize_shipping_method(shipping_method)
    if method == "packeta":
        data = shipping_address or {}
        if isinstance(data, dict) and not data.get("type"):
            data = {**data, "type": "packeta"}
        try:
            address = address_from_dict(data)
        except (ValueError, ValidationError) as e:
            raise BadRequest("Invalid shipping address", details=str(e))
        if not isinstance(address, PacketaAddress) or not address.pickup_point or not address.pickup_point.id:
            raise PickupPointRequired()
        if not address.full_name.strip():
            raise BadRequest("Missing required shipping fields", details="fullName")
        return method, address

    try:
        address = address_from_dict(shipping_address or {})
    except (ValueError, ValidationError) as e:
        raise BadRequest("Invalid shipping address", details=str(e))
    if not isinstance(address, StandardAddress):
        raise BadRequest("Shipping address does not match shipping method", details=f"method={method}")
    missing = [alias for field, alias in STANDARD_REQUIRED_FIELDS if not str(getattr(address, field) or "").strip()]
    if missing:
        raise BadRequest("Missing required shipping fields", details=", ".join(missing))
    return method, address

def reconcile_cart(user: Optional[Dict[str, Any]]) -> CartSnapshot:
    """
    Relit le panier stocké et les produits: prix serveur, stock vérifié.
    Toute ligne dépassant le stock courant -> InsufficientStock (liste des produits).
    """
    snapshot = cart_service.get_cart(user)
    products = catalog_repository.get_products_map(line.product_id for line in snapshot.items)
    offending: List[Dict[str, Any]] = []
    lines = []
    for line in snapshot.items:
        product = products.get(line.product_id)
        stock = int((product or {}).get("stock") or 0)
        if not product or line.quantity > stock:
            offending.append({"product_id": line.product_id, "name": line.name, "requested": line.quantity, "available": stock})
            continue
        lines.append(line.model_copy(update={"price": to_decimal(product.get("price")), "name": product.get("name") or line.name, "stock": stock}))
    if offending:
        raise InsufficientStock(
            details=", ".join(f"{o['name']} ({o['available']} available)" for o in offending),
            extra={"products": offending},
        )
    return CartSnapshot(user_id=snapshot.user_id, items=lines)

def _line_item(name: str, amount: int, quantity: int, currency: str, meta: Dict[str, str], description: str = "") -> Dict[str, Any]:
    product_data: Dict[str, Any] = {"name": name, "metadata": meta}
    if description:
        product_data["description"] = description[:500]
    return {
        "price_data": {"currency": currency, "unit_amount": amount, "product_data": product_data},
        "quantity": int(quantity),
    }

def create_session(
    cart_snapshot: CartSnapshot,
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, Any],
    customer_email: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée la session Stripe Checkout: une ligne par article (unit_amount en
    centimes arrondis), plus les lignes Shipping et Tax.
    Retour: {session_id, redirect_url, totals}
    """
    if cart_snapshot is None or cart_snapshot.is_empty:
        raise InvalidRequest(details="Cart is empty")
    if not success_url or not cancel_url:
        raise InvalidRequest(details="successUrl and cancelUrl are required")

    settings = get_settings()
    currency = settings.stripe_currency
    shipping_method = normalize_shipping_method((metadata or {}).get("shipping_method") or "standard")
    totals = compute_totals(((l.price, l.quantity) for l in cart_snapshot.items), shipping_method, settings.tax_rate)

    line_items = [
        _line_item(l.name, to_cents(l.price), l.quantity, currency, {"product_id": str(l.product_id)}, l.description)
        for l in cart_snapshot.items
    ]
    line_items.append(_line_item(f"Shipping ({shipping_method})", to_cents(totals.shipping), 1, currency, {"kind": "shipping"}))
    if totals.tax > 0:
        line_items.append(_line_item("Tax", to_cents(totals.tax), 1, currency, {"kind": "tax"}))

    session = stripe_client.create_session(
        line_items=line_items,
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=payments_metadata.make_metadata(metadata),
        customer_email=customer_email,
    )
    logger.info("checkout.create_session ok session_id=%s user_id=%s total=%s", session.get("id"), cart_snapshot.user_id, totals.total)
    return {"session_id": session.get("id"), "redirect_url": session.get("url"), "totals": totals.as_floats()}

def default_urls() -> Tuple[str, str]:
    base = get_settings().base_url.rstrip("/")
    return f"{base}/order-confirmation?session_id={{CHECKOUT_SESSION_ID}}", f"{base}/cart"

def start_checkout(
    user: Optional[Dict[str, Any]],
    shipping_method: str,
    shipping_address: Any,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, Any]:
    """validate_checkout -> reconcile_cart -> create_session."""
    method, address = validate_checkout(shipping_method, shipping_address)
    snapshot = reconcile_cart(user)
    default_success, default_cancel = default_urls()
    metadata = {
        "user_id": snapshot.user_id,
        "shipping_method": method,
        "shipping_address": address,
    }
    return create_session(
        snapshot,
        success_url or default_success,
        cancel_url or default_cancel,
        metadata,
        customer_email=(user or {}).get("email"),
    )

def place_cash_order(user: Optional[Dict[str, Any]], shipping_method: str, shipping_address: Any) -> Dict[str, Any]:
    """
    Paiement à la livraison: commande 'pending' sans référence de paiement,
    panier vidé, envoi Packeta avec contre-remboursement.
    """
    method, address = validate_checkout(shipping_method, shipping_address)
    snapshot = reconcile_cart(user)
    if snapshot.is_empty:
        raise InvalidRequest(details="Cart is empty")

    items = [
        {"product_id": l.product_id, "product_name": l.name, "product_price": l.price, "quantity": l.quantity}
        for l in snapshot.items
    ]
    result = writer.create_order(
        {"shipping_method": method, "shipping_address": address_to_dict(address)},
        items,
        snapshot.user_id,
        MANUAL_PAYMENT_SENTINEL,
    )
    try:
        cart_repository.delete_cart(snapshot.user_id)
    except Exception:
        logger.warning("checkout.place_cash_order cart not cleared user_id=%s", snapshot.user_id, exc_info=True)

    if method == "packeta":
        try:
            sent = dispatcher.dispatch(result["order_id"], snapshot.user_id, email=(user or {}).get("email") or "", payment_method="cod")
            result.update({"carrier_status": "created", "tracking_number": sent["tracking_number"]})
        except StorefrontError as e:
            logger.warning("checkout.place_cash_order dispatch deferred order_id=%s: %s", result["order_id"], e.details or e.error)
            result.update({"carrier_status": "failed", "carrier_error": e.details or e.error})
    return result
