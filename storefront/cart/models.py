from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from storefront.utils.money import round_cents, to_decimal


class CartLine(BaseModel):
    item_id: Optional[int] = None
    product_id: int
    name: str
    description: str = ""
    price: Decimal
    quantity: int
    stock: Optional[int] = None
    image: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return round_cents(self.price * self.quantity)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CartLine":
        """Construit une ligne depuis cart_items + jointure product:products(...)."""
        product = row.get("product") or {}
        return cls(
            item_id=row.get("id"),
            product_id=int(row.get("product_id") or product.get("id") or 0),
            name=product.get("name") or "",
            description=product.get("description") or "",
            price=to_decimal(product.get("price")),
            quantity=int(row.get("quantity") or 0),
            stock=product.get("stock"),
            image=product.get("image"),
        )


class CartSnapshot(BaseModel):
    """Panier figé; sous-total et nombre d'articles sont toujours dérivés des lignes."""

    user_id: str
    items: List[CartLine] = []

    @property
    def subtotal(self) -> Decimal:
        return round_cents(sum((line.price * line.quantity for line in self.items), Decimal("0")))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [
                {
                    "id": line.item_id,
                    "product_id": line.product_id,
                    "name": line.name,
                    "price": float(line.price),
                    "quantity": line.quantity,
                    "image": line.image,
                }
                for line in self.items
            ],
            "item_count": self.item_count,
            "subtotal": float(self.subtotal),
        }
