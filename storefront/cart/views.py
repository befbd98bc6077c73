from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.utils.http import ok
from storefront.utils.security import require_user
from . import service

router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])


class AddItemBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: int
    quantity: int = 1


class QuantityBody(BaseModel):
    quantity: int = Field(...)


@router.get("")
def get_cart(user: Dict[str, Any] = Depends(require_user)):
    return ok(**service.get_cart(user).to_dict())

@router.post("/items")
def add_item(body: AddItemBody, user: Dict[str, Any] = Depends(require_user)):
    """Ajoute au panier; la quantité est plafonnée au stock (stock_limited=True)."""
    return ok(**service.add_item(user, body.product_id, body.quantity))

@router.patch("/items/{item_id}")
def update_item(item_id: int, body: QuantityBody, user: Dict[str, Any] = Depends(require_user)):
    return ok(**service.update_quantity(user, item_id, body.quantity))

@router.delete("/items/{item_id}")
def remove_item(item_id: int, user: Dict[str, Any] = Depends(require_user)):
    return ok(**service.remove_item(user, item_id))

@router.delete("")
def clear_cart(user: Dict[str, Any] = Depends(require_user)):
    return ok(removed=service.clear(user))
