from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ORDER_STATUSES = ("pending", "paid", "processing", "shipped", "delivered", "cancelled")

# Référence de paiement réservée au paiement à la livraison (pas de paiement en ligne)
MANUAL_PAYMENT_SENTINEL = "manual-payment-required"


class OrderItemIn(BaseModel):
    product_id: int = Field(ge=0)
    product_name: str
    product_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)


class OrderData(BaseModel):
    # Le total n'est jamais fourni par l'appelant: il est recalculé depuis les lignes
    shipping_method: str = "standard"
    shipping_address: Dict[str, Any] = {}


class _CamelBody(BaseModel):
    # orderData, orderItems, paymentIntentId (snake_case accepté)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderLineRef(_CamelBody):
    """Ligne demandée par le client: nom et prix sont relus au catalogue."""

    product_id: int = Field(ge=1)
    quantity: int = Field(ge=1)


class CreateOrderRequest(_CamelBody):
    order_data: OrderData
    order_items: List[OrderLineRef]
    payment_intent_id: Optional[str] = None
