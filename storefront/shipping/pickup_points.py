"""
Annuaire des points relais Packeta (lecture seule).
"""
from typing import Any, Dict, Iterable, List, Optional
import logging

import httpx

from storefront.config import get_settings
from storefront.errors import ServiceUnavailable
from .models import PickupPoint

logger = logging.getLogger(__name__)

def _entries(payload: Any) -> Iterable[Dict[str, Any]]:
    # Le flux branch.json est {"data": {id: {...}}}; certaines versions renvoient une liste
    data = payload.get("data", payload) if isinstance(payload, dict) else payload
    if isinstance(data, dict):
        return data.values()
    return data or []

def normalize_point(entry: Dict[str, Any]) -> Optional[PickupPoint]:
    if not entry.get("id"):
        return None
    return PickupPoint(
        id=entry.get("id"),
        name=entry.get("name") or entry.get("place") or "",
        address=entry.get("street") or entry.get("address") or "",
        zip=entry.get("zip") or "",
        city=entry.get("city") or "",
    )

def list_pickup_points(city: Optional[str] = None, limit: int = 50) -> List[PickupPoint]:
    settings = get_settings()
    if not settings.packeta_api_key:
        raise ServiceUnavailable("Pickup point directory is temporarily unavailable", cause="PACKETA_API_KEY missing")
    url = settings.packeta_branch_feed_url.format(api_key=settings.packeta_api_key)
    try:
        resp = httpx.get(url, timeout=settings.packeta_timeout_seconds)
        resp.raise_for_status()
        payload = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        raise ServiceUnavailable("Pickup point directory is temporarily unavailable", cause=f"branch feed: {e}")

    wanted = (city or "").strip().lower()
    points: List[PickupPoint] = []
    for entry in _entries(payload):
        point = normalize_point(entry)
        if point is None or (wanted and point.city.lower() != wanted):
            continue
        points.append(point)
        if len(points) >= limit:
            break
    return points
