from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from storefront.utils.http import ok, register_stage_methods
from storefront.utils.security import require_user
from . import dispatcher, pickup_points, tracking

router = APIRouter(prefix="/api/v1/shipping", tags=["Shipping API"])


class OrderRef(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: int
    email: str = ""


@router.post("/dispatch")
def dispatch_order(body: OrderRef, user: Dict[str, Any] = Depends(require_user)):
    """
    Envoie la commande à Packeta (relance possible: numéro de colis stable).
    Le contre-remboursement dépend de la commande (sans référence de paiement -> cod).
    En cas d'échec: 502/422 avec {orderStatus, carrierStatus: "failed"}.
    """
    result = dispatcher.dispatch(body.order_id, user.get("id"), email=body.email or user.get("email") or "")
    return ok(**result)

@router.post("/track")
def track_order(body: OrderRef, user: Dict[str, Any] = Depends(require_user)):
    return ok(**tracking.get_tracking(body.order_id, user.get("id")))

@router.get("/pickup-points")
def list_pickup_points(city: Optional[str] = None, limit: int = 50):
    points = pickup_points.list_pickup_points(city=city, limit=min(max(limit, 1), 500))
    return ok(points=[p.model_dump() for p in points])

register_stage_methods(router, "/dispatch")
register_stage_methods(router, "/track")
