from typing import Any, Dict

from fastapi import APIRouter, Depends

from storefront.errors import BadRequest
from storefront.utils.http import ok, register_stage_methods
from storefront.utils.security import require_user
from . import service
from .models import MANUAL_PAYMENT_SENTINEL, CreateOrderRequest

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])

@router.post("")
def create_order(body: CreateOrderRequest, user: Dict[str, Any] = Depends(require_user)):
    """
    Création directe d'une commande pour l'utilisateur connecté.
    - Lignes: {productId, quantity}; nom, prix et total sont calculés côté serveur.
    - Les commandes payées passent par /api/v1/checkout/verify: seule la
      référence 'manual-payment-required' (ou aucune) est acceptée ici.
    """
    if body.payment_intent_id not in (None, "", MANUAL_PAYMENT_SENTINEL):
        raise BadRequest("Paid orders must be confirmed through checkout verification")
    result = service.place_order(user.get("id"), body.order_data, body.order_items, body.payment_intent_id or None)
    return ok(**result)

register_stage_methods(router, "")
