"""
Sérialisation/désérialisation des métadonnées de session Stripe
(user_id, shipping_method, shipping_address).
"""
import json
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

from storefront.errors import InvalidRequest

# Limite Stripe par valeur de métadonnée
METADATA_VALUE_LIMIT = 500

# Valeur placeholder parfois envoyée par les anciens clients
UNKNOWN_USER = "unknown"

# module storefront.payments.metadata
def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, BaseModel):
        return json.dumps(value.model_dump(by_alias=True, exclude_none=True), separators=(",", ":"))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)

def make_metadata(values: Dict[str, Any]) -> Dict[str, str]:
    """
    Convertit toutes les valeurs en chaînes (exigence Stripe).
    - L'adresse n'est jamais tronquée: InvalidRequest si > 500 caractères.
    """
    out = {str(k): _as_str(v) for k, v in (values or {}).items()}
    for key, value in out.items():
        if len(value) > METADATA_VALUE_LIMIT:
            raise InvalidRequest(
                f"Metadata value '{key}' is too long",
                details=f"{len(value)} characters, limit is {METADATA_VALUE_LIMIT}",
            )
    return out

def extract_metadata_from_session(session: Dict[str, Any]) -> Tuple[Optional[str], str, Any]:
    """
    Extrait (user_id, shipping_method, shipping_address brut) d'une session Checkout.
    - user_id 'unknown' ou vide -> None
    """
    meta = (session or {}).get("metadata") or {}
    user_id = (meta.get("user_id") or "").strip()
    if not user_id or user_id == UNKNOWN_USER:
        user_id = None
    return user_id, (meta.get("shipping_method") or "").strip().lower(), meta.get("shipping_address")
