# storefront.config
from pathlib import Path
from decimal import Decimal
from functools import lru_cache
import os
from dotenv import load_dotenv
from pydantic import BaseModel

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale de la boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, Packeta), CORS/hosts
- Construit un objet Settings unique (get_settings) injecté dans l'app au démarrage
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env(*names: str, default: str = "") -> str:
    for name in names:
        value = _clean_env(os.getenv(name) or "")
        if value:
            return value
    return default

def _normalize_url(url: str) -> str:
    if url and not url.startswith("http"):
        url = "https://" + url
    return url.rstrip("/")

# Supabase: URL et clés (anon pour les requêtes utilisateur, service pour le pipeline)
SUPABASE_URL = _normalize_url(_env("SUPABASE_URL", "VITE_SUPABASE_URL"))
SUPABASE_ANON = _env("SUPABASE_ANON_KEY", "SUPABASE_KEY")
SUPABASE_SERVICE_KEY = _env("SUPABASE_SERVICE_KEY", "SUPABASE_SERVICE_ROLE_KEY")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Stripe
STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY")
STRIPE_CURRENCY = _env("STRIPE_CURRENCY", default="usd").lower()

# Packeta (transporteur points relais)
PACKETA_API_KEY = _env("PACKETA_API_KEY", "VITE_PACKETA_API_KEY")
PACKETA_API_PASSWORD = _env("PACKETA_API_PASSWORD")

BASE_URL = _env("BASE_URL", default="http://localhost:8000")


class Settings(BaseModel):
    """Configuration résolue une seule fois au démarrage du process."""

    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_key: str = ""

    stripe_secret_key: str = ""
    stripe_currency: str = "usd"
    stripe_timeout_seconds: float = 20.0
    stripe_max_network_retries: int = 2

    packeta_api_key: str = ""
    packeta_api_password: str = ""
    packeta_api_url: str = "https://www.zasilkovna.cz/api/rest"
    packeta_branch_feed_url: str = "https://www.zasilkovna.cz/api/v4/{api_key}/branch.json"
    packeta_eshop: str = "ecommerce-site"
    packeta_currency: str = "USD"
    # Poids forfaitaire déclaré au transporteur (pas de poids produit en base)
    packeta_default_weight_kg: Decimal = Decimal("1.0")
    packeta_home_delivery_address_id: str = ""
    packeta_timeout_seconds: float = 15.0

    tax_rate: Decimal = Decimal("0.07")
    base_url: str = "http://localhost:8000"
    strict_config: bool = False

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def carrier_configured(self) -> bool:
        return bool(self.packeta_api_key and self.packeta_api_password)

    @property
    def service_db_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    def missing_keys(self) -> list:
        missing = []
        if not self.supabase_url:
            missing.append("SUPABASE_URL")
        if not self.supabase_service_key:
            missing.append("SUPABASE_SERVICE_KEY")
        if not self.stripe_secret_key:
            missing.append("STRIPE_SECRET_KEY")
        if not self.packeta_api_key:
            missing.append("PACKETA_API_KEY")
        if not self.packeta_api_password:
            missing.append("PACKETA_API_PASSWORD")
        return missing


def load_settings() -> Settings:
    """Construit Settings depuis l'environnement (sans cache)."""
    return Settings(
        supabase_url=SUPABASE_URL,
        supabase_anon_key=SUPABASE_ANON,
        supabase_service_key=SUPABASE_SERVICE_KEY,
        stripe_secret_key=STRIPE_SECRET_KEY,
        stripe_currency=STRIPE_CURRENCY,
        stripe_timeout_seconds=float(_env("STRIPE_TIMEOUT_SECONDS", default="20")),
        stripe_max_network_retries=int(_env("STRIPE_MAX_NETWORK_RETRIES", default="2")),
        packeta_api_key=PACKETA_API_KEY,
        packeta_api_password=PACKETA_API_PASSWORD,
        packeta_api_url=_env("PACKETA_API_URL", default="https://www.zasilkovna.cz/api/rest"),
        packeta_branch_feed_url=_env(
            "PACKETA_BRANCH_FEED_URL", default="https://www.zasilkovna.cz/api/v4/{api_key}/branch.json"
        ),
        packeta_eshop=_env("PACKETA_ESHOP", default="ecommerce-site"),
        packeta_currency=_env("PACKETA_CURRENCY", default="USD"),
        packeta_default_weight_kg=Decimal(_env("PACKETA_DEFAULT_WEIGHT_KG", default="1.0")),
        packeta_home_delivery_address_id=_env("PACKETA_HOME_DELIVERY_ADDRESS_ID"),
        packeta_timeout_seconds=float(_env("PACKETA_TIMEOUT_SECONDS", default="15")),
        tax_rate=Decimal(_env("TAX_RATE", default="0.07")),
        base_url=BASE_URL,
        strict_config=_env("STRICT_CONFIG").lower() in ("1", "true", "yes"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def require_stripe_key(settings: Settings) -> str:
    """Retourne la clé Stripe ou lève ServiceUnavailable (cause loggée côté serveur)."""
    from storefront.errors import ServiceUnavailable
    if not settings.stripe_configured:
        raise ServiceUnavailable("Payment service is temporarily unavailable", cause="STRIPE_SECRET_KEY missing")
    return settings.stripe_secret_key


def require_carrier(settings: Settings) -> Settings:
    from storefront.errors import ServiceUnavailable
    if not settings.carrier_configured:
        raise ServiceUnavailable("Shipping service is temporarily unavailable", cause="Packeta API credentials missing")
    return settings


def require_service_db(settings: Settings) -> Settings:
    from storefront.errors import ServiceUnavailable
    if not settings.service_db_configured:
        raise ServiceUnavailable(cause="SUPABASE_URL/SUPABASE_SERVICE_KEY missing")
    return settings
