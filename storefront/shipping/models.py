"""
Adresse de livraison: union étiquetée sur 'type' (standard | packeta).

Forme JSON (camelCase) identique à celle stockée dans orders.shipping_address
et dans les métadonnées de session Stripe.
"""
import json
import logging
from typing import Any, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PickupPoint(_CamelModel):
    id: str
    name: str = ""
    address: str = ""
    zip: str = ""
    city: str = ""

    @field_validator("id", "zip", mode="before")
    @classmethod
    def _as_str(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


class BillingAddress(_CamelModel):
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""


class _AddressBase(_CamelModel):
    full_name: str = ""
    phone: str = ""
    # Annotation d'erreur quand l'adresse n'a pas pu être relue (voir parse_address)
    error: Optional[str] = None


class StandardAddress(_AddressBase):
    type: Literal["standard"] = "standard"
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""


class PacketaAddress(_AddressBase):
    type: Literal["packeta"] = "packeta"
    pickup_point: Optional[PickupPoint] = None
    billing_address: Optional[BillingAddress] = None


ShippingAddress = Annotated[Union[StandardAddress, PacketaAddress], Field(discriminator="type")]

_adapter = TypeAdapter(ShippingAddress)

def address_from_dict(data: Any):
    """
    Valide un dict en StandardAddress | PacketaAddress.
    - Sans 'type': packeta si pickupPoint présent, sinon standard (anciens formulaires).
    - Lève ValidationError si la structure est invalide.
    """
    if isinstance(data, (StandardAddress, PacketaAddress)):
        return data
    if not isinstance(data, dict):
        raise ValueError("shipping address must be an object")
    data = dict(data)
    if not data.get("type"):
        data["type"] = "packeta" if (data.get("pickupPoint") or data.get("pickup_point")) else "standard"
    return _adapter.validate_python(data)

def dump_address(address) -> str:
    """Sérialise l'adresse en JSON (clés camelCase) pour les métadonnées Stripe."""
    return json.dumps(address_to_dict(address), separators=(",", ":"))

def address_to_dict(address) -> dict:
    return address.model_dump(by_alias=True, exclude_none=True)

def parse_address(raw: Any) -> Tuple[Union[StandardAddress, PacketaAddress], Optional[str]]:
    """
    Relit l'adresse depuis les métadonnées (chaîne JSON ou dict).
    - En cas d'échec: adresse standard vide annotée (error) plutôt qu'une exception,
      le paiement ayant déjà abouti.
    Retour: (adresse, message_erreur|None)
    """
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if data in (None, {}, ""):
            raise ValueError("shipping address is empty")
        return address_from_dict(data), None
    except (ValueError, TypeError, ValidationError) as e:
        message = f"Shipping address could not be parsed: {e}"
        logger.warning("shipping.parse_address failed: %s", e)
        return StandardAddress(error=message), message

def split_full_name(full_name: str) -> Optional[Tuple[str, str]]:
    """'Jan Novak Jr' -> ('Jan', 'Novak Jr'); None si le nom n'a pas deux parties."""
    parts = (full_name or "").split()
    if len(parts) < 2:
        return None
    return parts[0], " ".join(parts[1:])
