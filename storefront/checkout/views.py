import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from storefront.payments import service as payments_service
from storefront.utils.http import ok, register_stage_methods
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import optional_user, require_user
from . import service
from .models import CashOrderRequest, CheckoutRequest, VerifySessionRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])

# module storefront.checkout.views
@router.post("/session", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout_session(body: CheckoutRequest, user: Dict[str, Any] = Depends(require_user)):
    """
    Crée une session Stripe Checkout pour le panier stocké de l'utilisateur.
    - Entrée: {shippingMethod, shippingAddress, successUrl?, cancelUrl?}
    - Sortie: {success, sessionId, url, totals}
    - Erreurs: 400 (formulaire, point relais manquant), 409 (stock), 422 (Stripe), 503 (config)
    """
    result = service.start_checkout(
        user, body.shipping_method, body.shipping_address, body.success_url, body.cancel_url
    )
    return ok(sessionId=result["session_id"], url=result["redirect_url"], totals=result["totals"])

@router.post("/cash", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_cash_order(body: CashOrderRequest, user: Dict[str, Any] = Depends(require_user)):
    """Paiement à la livraison: commande 'pending' sans passage par Stripe."""
    result = service.place_cash_order(user, body.shipping_method, body.shipping_address)
    return ok(**result)

@router.post("/verify")
def verify_checkout_session(body: VerifySessionRequest, user: Optional[Dict[str, Any]] = Depends(optional_user)):
    """
    Retour Stripe: vérifie la session payée et écrit la commande une seule fois.
    - user_id: metadata de session, sinon utilisateur connecté, sinon body.user_id
    - utilisateur connecté différent de celui de la session -> 403
    """
    result = payments_service.verify_session(
        body.session_id,
        fallback_user_id=body.user_id,
        requesting_user_id=(user or {}).get("id"),
    )
    return ok(**result)

register_stage_methods(router, "/session")
register_stage_methods(router, "/cash")
register_stage_methods(router, "/verify")
