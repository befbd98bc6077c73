from typing import Optional
from supabase import create_client, Client
from storefront.config import SUPABASE_URL, SUPABASE_ANON, get_settings, require_service_db
from storefront.errors import ServiceUnavailable

_supabase: Optional[Client] = None
_service_supabase: Optional[Client] = None

def get_supabase() -> Client:
    """Client 'anon' partagé (lecture catalogue, vérification des tokens)."""
    global _supabase
    if _supabase is None:
        if not SUPABASE_URL or not SUPABASE_ANON:
            raise ServiceUnavailable(cause="SUPABASE_URL/SUPABASE_ANON_KEY missing")
        _supabase = create_client(SUPABASE_URL, SUPABASE_ANON)
    return _supabase

def get_service_supabase() -> Client:
    """Client service-role (bypass RLS) utilisé par le pipeline commande."""
    global _service_supabase
    if _service_supabase is None:
        settings = require_service_db(get_settings())
        _service_supabase = create_client(settings.supabase_url, settings.supabase_service_key)
    return _service_supabase
