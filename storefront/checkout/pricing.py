"""
Calcul des montants d'une commande.

total = sous-total + frais de port + taxe, la taxe étant arrondie au centime
(ROUND_HALF_UP) AVANT la somme: 99.98 -> taxe 6.9986 -> 7.00 -> total 111.98.
"""
from decimal import Decimal
from typing import Dict, Iterable, Tuple

from pydantic import BaseModel

from storefront.errors import BadRequest
from storefront.utils.money import round_cents, to_decimal

SHIPPING_METHODS = ("standard", "express", "packeta")

SHIPPING_COSTS: Dict[str, Decimal] = {
    "standard": Decimal("5.00"),
    "express": Decimal("15.00"),
    "packeta": Decimal("5.00"),
}

DEFAULT_TAX_RATE = Decimal("0.07")


class OrderTotals(BaseModel):
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal

    def as_floats(self) -> Dict[str, float]:
        return {k: float(v) for k, v in self.model_dump().items()}


def normalize_shipping_method(method: str) -> str:
    value = (method or "standard").strip().lower()
    if value not in SHIPPING_METHODS:
        raise BadRequest(f"Unknown shipping method: {method}", details=f"Expected one of {', '.join(SHIPPING_METHODS)}")
    return value

def shipping_cost(method: str) -> Decimal:
    return SHIPPING_COSTS[normalize_shipping_method(method)]

def compute_totals(lines: Iterable[Tuple[object, int]], shipping_method: str, tax_rate=DEFAULT_TAX_RATE) -> OrderTotals:
    """
    lines: itérable de (prix_unitaire, quantité).
    La taxe porte sur le sous-total uniquement (pas sur les frais de port).
    """
    subtotal = round_cents(sum((to_decimal(price) * int(qty) for price, qty in lines), Decimal("0")))
    shipping = shipping_cost(shipping_method)
    tax = round_cents(subtotal * to_decimal(tax_rate))
    return OrderTotals(subtotal=subtotal, shipping=shipping, tax=tax, total=subtotal + shipping + tax)
