from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Body(BaseModel):
    # Accepte shippingMethod comme shipping_method
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckoutRequest(_Body):
    shipping_method: str = "standard"
    shipping_address: Dict[str, Any] = {}
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CashOrderRequest(_Body):
    shipping_method: str = "standard"
    shipping_address: Dict[str, Any] = {}


class VerifySessionRequest(_Body):
    session_id: str = ""
    user_id: Optional[str] = None
