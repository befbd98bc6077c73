from fastapi import Request, Depends
from typing import Optional, Dict, Any
import logging

from storefront.auth import repository as auth_repository
from storefront.errors import AuthenticationRequired, StorefrontError

COOKIE_NAME = "sb_access"

logger = logging.getLogger(__name__)

def _token_from_request(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)
    return token or None

def get_current_user(request: Request) -> Dict[str, Any]:
    token = _token_from_request(request)
    if not token:
        raise AuthenticationRequired()
    try:
        raw = auth_repository.get_user_from_access_token(token)
    except StorefrontError:
        raise
    except Exception:
        logger.info("security.get_current_user token rejected")
        raise AuthenticationRequired("Session expired, please sign in again")
    if not raw.get("id"):
        raise AuthenticationRequired("Session expired, please sign in again")
    return {
        "id": str(raw["id"]),
        "email": raw.get("email"),
        "metadata": raw.get("user_metadata") or {},
        "token": token,
    }

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def optional_user(request: Request) -> Optional[Dict[str, Any]]:
    """Utilisateur si un token valide est présent, sinon None (retour Stripe sans session)."""
    if not _token_from_request(request):
        return None
    try:
        return get_current_user(request)
    except AuthenticationRequired:
        return None
