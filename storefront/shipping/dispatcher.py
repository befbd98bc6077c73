"""
Carrier Dispatcher: soumet une commande confirmée à Packeta et enregistre
le numéro de suivi.

- Préconditions non remplies -> InvalidShippingConfiguration (jamais de valeur devinée)
- Échec transporteur -> note horodatée sur la commande, statut inchangé,
  CarrierDispatchFailed remonté à l'appelant
- Numéro de colis stable 'ECOM-{order_id}': un nouvel essai réutilise le même numéro
"""
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from storefront.config import Settings, get_settings, require_carrier
from storefront.errors import CarrierDispatchFailed, InvalidShippingConfiguration, NotFound
from storefront.orders import repository as orders_repository
from storefront.utils.money import round_cents, to_decimal
from . import packeta_client
from .models import PacketaAddress, StandardAddress, parse_address, split_full_name

logger = logging.getLogger(__name__)

def packet_number(order_id: int) -> str:
    return f"ECOM-{order_id}"

def _declared_value(order: Dict[str, Any], items) -> Decimal:
    if items:
        return round_cents(sum((to_decimal(i.get("product_price")) * int(i.get("quantity") or 0) for i in items), Decimal("0")))
    return round_cents(order.get("total"))

def build_packet_attributes(
    order: Dict[str, Any],
    items,
    settings: Settings,
    email: str = "",
    payment_method: Optional[str] = None,
) -> Dict[str, Any]:
    raw = order.get("shipping_address")
    if not raw:
        raise InvalidShippingConfiguration(details="Order has no shipping address")
    address, error = parse_address(raw)
    if error:
        raise InvalidShippingConfiguration(details=error)

    names = split_full_name(address.full_name)
    if not names:
        raise InvalidShippingConfiguration(details="Recipient full name must include a first and last name")
    if not address.phone.strip():
        raise InvalidShippingConfiguration(details="Recipient phone number is required")

    value = _declared_value(order, items)
    if payment_method is None:
        payment_method = "card" if order.get("payment_intent_id") else "cod"

    attributes: Dict[str, Any] = {
        "number": packet_number(order["id"]),
        "name": names[0],
        "surname": names[1],
        "email": email or "",
        "phone": address.phone.strip(),
        "cod": value if payment_method == "cod" else Decimal("0"),
        "value": value,
        "currency": settings.packeta_currency,
        "weight": settings.packeta_default_weight_kg,
        "eshop": settings.packeta_eshop,
    }

    if isinstance(address, PacketaAddress):
        point_id = (address.pickup_point.id if address.pickup_point else "") or ""
        if not point_id.isdigit():
            raise InvalidShippingConfiguration(details=f"Pickup point id must be numeric, got '{point_id}'")
        attributes["addressId"] = int(point_id)
    elif isinstance(address, StandardAddress):
        if not settings.packeta_home_delivery_address_id:
            raise InvalidShippingConfiguration(details="Home delivery carrier is not configured")
        missing = [
            label for label, v in (("street", address.address_line1), ("city", address.city), ("zip", address.zip_code))
            if not v.strip()
        ]
        if missing:
            raise InvalidShippingConfiguration(details=f"Shipping address is missing: {', '.join(missing)}")
        attributes["addressId"] = settings.packeta_home_delivery_address_id
        attributes["street"] = address.address_line1.strip()
        attributes["city"] = address.city.strip()
        attributes["zip"] = address.zip_code.strip()
    return attributes

def _record_failure(order_id: int, exc: Exception) -> None:
    message = getattr(exc, "details", None) or str(exc)
    try:
        orders_repository.append_note(order_id, f"Carrier dispatch failed: {message}")
    except Exception:
        logger.exception("shipping.dispatch could not annotate order_id=%s", order_id)

def dispatch(
    order_id: int,
    user_id: Optional[str] = None,
    email: str = "",
    payment_method: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Retour: {order_id, tracking_number, carrier_packet_id, status, already_dispatched}
    """
    settings = require_carrier(get_settings())
    order = orders_repository.get_order(order_id, user_id)
    if not order:
        raise NotFound("Order not found")

    if order.get("tracking_number"):
        carrier_data = order.get("carrier_data") or {}
        return {
            "order_id": int(order["id"]),
            "tracking_number": order["tracking_number"],
            "carrier_packet_id": carrier_data.get("id") if isinstance(carrier_data, dict) else None,
            "status": order.get("status"),
            "already_dispatched": True,
        }

    try:
        attributes = build_packet_attributes(
            order, orders_repository.get_order_items(order_id), settings, email=email, payment_method=payment_method
        )
        result = packeta_client.create_packet(settings, attributes)
    except (InvalidShippingConfiguration, CarrierDispatchFailed) as e:
        logger.warning("shipping.dispatch failed order_id=%s: %s", order_id, e.details or e.error)
        _record_failure(order_id, e)
        e.extra.update({"order_id": int(order_id), "order_status": order.get("status"), "carrier_status": "failed"})
        raise

    tracking_number = result.get("barcode") or result["id"]
    won = orders_repository.set_tracking_number(
        order_id, tracking_number, {"status": "processing", "carrier_data": result}
    )
    if not won:
        # Un appel concurrent a déjà posé un numéro: c'est lui qui fait foi
        current = orders_repository.get_order(order_id) or {}
        tracking_number = current.get("tracking_number") or tracking_number
    logger.info("shipping.dispatch ok order_id=%s tracking=%s packet_id=%s", order_id, tracking_number, result["id"])
    return {
        "order_id": int(order_id),
        "tracking_number": tracking_number,
        "carrier_packet_id": result["id"],
        "status": "processing",
        "already_dispatched": False,
    }
