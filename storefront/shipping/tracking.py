"""
Tracking Poller: numéro de suivi à la demande.

Seul chemin, hors dispatcher, par lequel tracking_number passe de vide à
renseigné. Un numéro existant est toujours retourné tel quel.

Une commande packeta n'a de numéro que s'il vient du transporteur: tant que
l'envoi échoue, le numéro reste vide et l'envoi peut être relancé.
"""
from typing import Any, Dict, Optional
import logging
import secrets

from storefront.config import get_settings
from storefront.errors import CarrierDispatchFailed, InvalidShippingConfiguration, NotFound
from storefront.orders import repository as orders_repository
from . import dispatcher

logger = logging.getLogger(__name__)

def synthesize_tracking_number() -> str:
    return "PKT" + f"{secrets.randbelow(10 ** 7):07d}"

def _result(order: Dict[str, Any], tracking_number: Optional[str], source: str) -> Dict[str, Any]:
    return {
        "order_id": int(order["id"]),
        "tracking_number": tracking_number,
        "status": order.get("status"),
        "source": source,
    }

def _from_carrier(order: Dict[str, Any], requesting_user_id: str) -> Dict[str, Any]:
    order_id = int(order["id"])
    if not get_settings().carrier_configured:
        logger.info("shipping.tracking carrier not configured order_id=%s", order_id)
        return _result(order, None, "awaiting_carrier")
    try:
        sent = dispatcher.dispatch(order_id, requesting_user_id)
    except (CarrierDispatchFailed, InvalidShippingConfiguration) as e:
        # Déjà noté sur la commande par le dispatcher
        logger.warning("shipping.tracking carrier retry failed order_id=%s: %s", order_id, e.details or e.error)
        return {**_result(order, None, "awaiting_carrier"), "carrier_error": e.details or e.error}
    order["status"] = sent["status"]
    return _result(order, sent["tracking_number"], "carrier")

def get_tracking(order_id: int, requesting_user_id: Optional[str]) -> Dict[str, Any]:
    """
    Retour: {order_id, tracking_number, status, source}
    source: existing | carrier | synthesized | awaiting_carrier (packeta, numéro vide)
    """
    order = orders_repository.get_order(order_id, requesting_user_id) if requesting_user_id else None
    if not order:
        raise NotFound("Order not found")
    if order.get("tracking_number"):
        return _result(order, order["tracking_number"], "existing")

    if order.get("shipping_method") == "packeta":
        return _from_carrier(order, requesting_user_id)

    number = synthesize_tracking_number()
    if not orders_repository.set_tracking_number(order_id, number):
        current = orders_repository.get_order(order_id) or order
        logger.info("shipping.tracking already set by concurrent request order_id=%s", order_id)
        return _result(current, current.get("tracking_number") or number, "existing")
    logger.info("shipping.tracking synthesized order_id=%s tracking=%s", order_id, number)
    return _result(order, number, "synthesized")
