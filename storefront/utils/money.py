from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")

def to_decimal(value: Any) -> Decimal:
    """
    Convertit un montant (str|float|int|Decimal) en Decimal.
    - Passe par str() pour éviter les artefacts binaires des float (49.99 -> 49.99).
    - Retourne Decimal("0") si parsing impossible.
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value if value is not None else 0))
    except (InvalidOperation, ValueError):
        return Decimal("0")

def round_cents(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)

def to_cents(value: Any) -> int:
    """round(price * 100) en unités mineures, jamais de troncature."""
    return int((to_decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def from_cents(amount: Any) -> Decimal:
    return round_cents(Decimal(int(amount or 0)) / 100)
