"""
Order Writer: crée une commande, ses lignes et décrémente le stock.

Le stockage n'offre pas de transaction multi-tables: l'écriture est une saga
d'étapes (InsertOrder -> InsertOrderItems -> DecrementStock par ligne), chacune
avec sa compensation. En cas d'échec, les étapes terminées sont compensées dans
l'ordre inverse puis l'erreur est levée:
  - stock remis (restock)
  - lignes supprimées
  - commande conservée mais passée en 'cancelled' avec une note
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from pydantic import ValidationError

from storefront.catalog import repository as catalog_repository
from storefront.checkout.pricing import compute_totals, normalize_shipping_method
from storefront.config import get_settings
from storefront.errors import BadRequest, InsufficientStock, OrderCreationFailed, StorefrontError
from . import repository
from .models import MANUAL_PAYMENT_SENTINEL, OrderData, OrderItemIn

logger = logging.getLogger(__name__)


class StockUnavailable(Exception):
    def __init__(self, product_id: int, product_name: str, quantity: int):
        super().__init__(f"Not enough stock for {product_name} (product {product_id}, requested {quantity})")
        self.product_id = product_id
        self.product_name = product_name
        self.quantity = quantity


class SagaContext:
    def __init__(self, row: Dict[str, Any], items: List[OrderItemIn]):
        self.row = row
        self.items = items
        self.order_id: Optional[int] = None


class Step(ABC):
    def __init__(self, ctx: SagaContext):
        self.ctx = ctx

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def execute(self) -> None: ...

    @abstractmethod
    def compensate(self) -> None: ...

    def run(self) -> None:
        logger.info("orders.saga step=%s order_id=%s", self.name(), self.ctx.order_id)
        self.execute()

    def run_compensation(self) -> None:
        logger.warning("orders.saga compensate step=%s order_id=%s", self.name(), self.ctx.order_id)
        self.compensate()


class InsertOrder(Step):
    def name(self) -> str:
        return "InsertOrder"

    def execute(self) -> None:
        row = repository.insert_order(self.ctx.row)
        if not row or row.get("id") is None:
            raise OrderCreationFailed(details="Order insert returned no row")
        self.ctx.order_id = int(row["id"])

    def compensate(self) -> None:
        # Jamais de suppression: la commande reste pour l'audit
        repository.update_order(self.ctx.order_id, {"status": "cancelled"})
        repository.append_note(self.ctx.order_id, "Order creation rolled back; order cancelled")


class InsertOrderItems(Step):
    def name(self) -> str:
        return "InsertOrderItems"

    def execute(self) -> None:
        repository.insert_order_items(self.ctx.order_id, [i.model_dump() for i in self.ctx.items])

    def compensate(self) -> None:
        repository.delete_order_items(self.ctx.order_id)


class DecrementStock(Step):
    def __init__(self, ctx: SagaContext, item: OrderItemIn):
        super().__init__(ctx)
        self.item = item

    def name(self) -> str:
        return f"DecrementStock[{self.item.product_id}]"

    def execute(self) -> None:
        if not catalog_repository.decrement_stock(self.item.product_id, self.item.quantity):
            raise StockUnavailable(self.item.product_id, self.item.product_name, self.item.quantity)

    def compensate(self) -> None:
        catalog_repository.restock(self.item.product_id, self.item.quantity)


def run_saga(steps: List[Step]) -> None:
    completed: List[Step] = []
    try:
        for step in steps:
            step.run()
            completed.append(step)
    except Exception:
        for step in reversed(completed):
            try:
                step.run_compensation()
            except Exception:
                # On poursuit les autres compensations; l'opérateur voit la trace
                logger.exception("orders.saga compensation failed step=%s", step.name())
        raise


def _order_status(payment_reference: Optional[str]) -> str:
    if payment_reference == MANUAL_PAYMENT_SENTINEL:
        return "pending"
    return "paid" if payment_reference else "pending"

def _existing(order: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "order_id": int(order["id"]),
        "status": order.get("status"),
        "total": float(order.get("total") or 0),
        "created": False,
    }

def create_order(
    order_data: Any,
    order_items: Any,
    user_id: Optional[str],
    payment_reference: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée la commande de façon idempotente sur la référence de paiement.
    - 'manual-payment-required' -> status pending, payment_intent_id NULL
    - référence présente -> paid; absente -> pending
    - commande existante pour la même référence -> retournée avec created=False
    - total toujours recalculé: sous-total + port + taxe arrondie
    Retour: {order_id, status, total, created}
    """
    if not order_data:
        raise BadRequest("Missing required order data")
    if not order_items:
        raise BadRequest("Order must contain at least one item")
    if not user_id:
        raise BadRequest("Missing user ID")
    try:
        data = order_data if isinstance(order_data, OrderData) else OrderData.model_validate(order_data)
        items = [i if isinstance(i, OrderItemIn) else OrderItemIn.model_validate(i) for i in order_items]
    except ValidationError as e:
        raise BadRequest("Invalid order data", details=str(e))
    shipping_method = normalize_shipping_method(data.shipping_method)

    stored_reference = None if payment_reference == MANUAL_PAYMENT_SENTINEL else payment_reference
    if stored_reference:
        existing = repository.find_order_by_payment_reference(stored_reference)
        if existing:
            logger.info("orders.create_order already exists order_id=%s reference=%s", existing.get("id"), stored_reference)
            return _existing(existing)

    total = compute_totals(
        ((i.product_price, i.quantity) for i in items), shipping_method, get_settings().tax_rate
    ).total

    status = _order_status(payment_reference)
    row = {
        "user_id": str(user_id),
        "status": status,
        "total": str(Decimal(total)),
        "shipping_method": shipping_method,
        "shipping_address": data.shipping_address,
        "payment_intent_id": stored_reference,
    }
    ctx = SagaContext(row, items)
    steps: List[Step] = [InsertOrder(ctx), InsertOrderItems(ctx)]
    # Le produit sentinelle (0) n'a pas de stock à décrémenter
    steps.extend(DecrementStock(ctx, item) for item in items if item.product_id > 0)

    try:
        run_saga(steps)
    except StockUnavailable as e:
        raise InsufficientStock(
            f"Not enough stock for {e.product_name}",
            details=str(e),
            extra={"product_id": e.product_id},
        )
    except StorefrontError:
        raise
    except Exception as e:
        # Course sur la contrainte UNIQUE(payment_intent_id): la commande gagnante est retournée
        if stored_reference and ctx.order_id is None:
            existing = repository.find_order_by_payment_reference(stored_reference)
            if existing:
                return _existing(existing)
        logger.exception("orders.create_order failed user_id=%s", user_id)
        raise OrderCreationFailed(details=str(e))

    logger.info(
        "orders.create_order ok order_id=%s user_id=%s status=%s total=%s items=%s",
        ctx.order_id, user_id, status, total, len(items),
    )
    return {"order_id": ctx.order_id, "status": status, "total": float(total), "created": True}
