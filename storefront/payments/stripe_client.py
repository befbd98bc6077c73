"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Les erreurs SDK sont traduites en erreurs du pipeline (storefront.errors).
"""
import logging
import stripe
from functools import lru_cache
from typing import Any, Dict, List, Optional

from storefront.config import get_settings, require_stripe_key
from storefront.errors import NotFound, PaymentProcessingError

logger = logging.getLogger(__name__)

# module storefront.payments.stripe_client
@lru_cache(maxsize=4)
def http_client(timeout: float):
    """Un seul client HTTP (pool de connexions) par valeur de timeout, pour tout le process."""
    return stripe.HTTPXClient(timeout=timeout, allow_sync_methods=True)

def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Lève ServiceUnavailable si STRIPE_SECRET_KEY est absent (avant tout appel réseau).
    - Clé et retries réseau relus à chaque appel; client HTTP partagé (timeout explicite).
    """
    settings = get_settings()
    stripe.api_key = require_stripe_key(settings)
    stripe.max_network_retries = settings.stripe_max_network_retries
    client = http_client(settings.stripe_timeout_seconds)
    if stripe.default_http_client is not client:
        stripe.default_http_client = client
    return stripe

def create_session(
    *,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    customer_email: Optional[str] = None,
    mode: str = "payment",
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout.
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    require_stripe()
    params: Dict[str, Any] = dict(
        line_items=line_items,
        mode=mode,
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata,
        payment_method_types=["card"],
    )
    if customer_email:
        params["customer_email"] = customer_email
    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.exception("stripe create_session failed")
        raise PaymentProcessingError(details=_stripe_message(e))
    return _as_dict(session)

def retrieve_session(session_id: str, expand: Optional[List[str]] = None) -> Dict[str, Any]:
    """Récupère une session Checkout; NotFound si l'identifiant est inconnu/expiré."""
    require_stripe()
    try:
        session = stripe.checkout.Session.retrieve(session_id, expand=expand or [])
    except stripe.InvalidRequestError as e:
        if "No such checkout.session" in (_stripe_message(e) or "") or getattr(e, "http_status", None) == 404:
            raise NotFound("Invalid session ID", details="The provided session ID does not exist or has expired")
        logger.exception("stripe retrieve_session failed session_id=%s", session_id)
        raise PaymentProcessingError("Failed to retrieve session", details=_stripe_message(e))
    except stripe.StripeError as e:
        logger.exception("stripe retrieve_session failed session_id=%s", session_id)
        raise PaymentProcessingError("Failed to retrieve session", details=_stripe_message(e))
    return _as_dict(session)

def list_line_items(session_id: str) -> List[Dict[str, Any]]:
    """
    Liste les lignes d'une session en dépliant price.product pour relire
    product.metadata.product_id (référence produit interne).
    """
    require_stripe()
    try:
        page = stripe.checkout.Session.list_line_items(session_id, limit=100, expand=["data.price.product"])
        return [_as_dict(item) for item in page.auto_paging_iter()]
    except stripe.StripeError as e:
        logger.exception("stripe list_line_items failed session_id=%s", session_id)
        raise PaymentProcessingError("Failed to retrieve line items", details=_stripe_message(e))

def _stripe_message(e: Exception) -> str:
    return getattr(e, "user_message", None) or str(e)

def _as_dict(obj: Any) -> Dict[str, Any]:
    """StripeObject -> dict récursif (les tests fournissent souvent des dicts)."""
    if hasattr(obj, "to_dict_recursive"):
        return obj.to_dict_recursive()
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)
