"""
Client Packeta (API REST XML).

Requête:
  <createPacket>
    <apiPassword>...</apiPassword>
    <packetAttributes><number/><name/>...</packetAttributes>
  </createPacket>
Réponse:
  <response><status>ok</status><result><id/><barcode/></result></response>
  <response><status>fault</status><fault>...</fault><string>message</string></response>
"""
from decimal import Decimal
from typing import Any, Dict
import logging
import xml.etree.ElementTree as ET

import httpx

from storefront.config import Settings
from storefront.errors import CarrierDispatchFailed

logger = logging.getLogger(__name__)

# Ordre des champs attendu par createPacket
PACKET_FIELDS = (
    "number", "name", "surname", "email", "phone", "addressId",
    "cod", "value", "currency", "weight", "eshop", "street", "city", "zip",
)

def _text(value: Any) -> str:
    if isinstance(value, Decimal):
        return format(value, "f")
    return "" if value is None else str(value)

def build_create_packet(api_password: str, attributes: Dict[str, Any]) -> bytes:
    root = ET.Element("createPacket")
    ET.SubElement(root, "apiPassword").text = api_password
    attrs = ET.SubElement(root, "packetAttributes")
    for field in PACKET_FIELDS:
        if field in attributes and attributes[field] is not None:
            ET.SubElement(attrs, field).text = _text(attributes[field])
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)

def parse_response(content: bytes) -> Dict[str, Any]:
    """
    Lit la réponse XML; le statut est vérifié AVANT de lire les identifiants.
    Retour (succès): {"status": "ok", "id": ..., "barcode": ..., "barcode_text": ...}
    Lève CarrierDispatchFailed si XML illisible, fault, ou id absent.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise CarrierDispatchFailed(details=f"Unreadable carrier response: {e}")

    status = (root.findtext("status") or "").strip().lower()
    if status != "ok":
        message = (
            root.findtext("string")
            or root.findtext("fault/message")
            or root.findtext("fault")
            or f"Carrier returned status '{status or 'unknown'}'"
        )
        raise CarrierDispatchFailed(details=message.strip(), extra={"carrier_fault": (root.findtext("fault") or "").strip()})

    packet_id = (root.findtext("result/id") or "").strip()
    if not packet_id:
        raise CarrierDispatchFailed(details="Carrier response has no packet id")
    return {
        "status": "ok",
        "id": packet_id,
        "barcode": (root.findtext("result/barcode") or "").strip() or None,
        "barcode_text": (root.findtext("result/barcodeText") or "").strip() or None,
    }

def create_packet(settings: Settings, attributes: Dict[str, Any]) -> Dict[str, Any]:
    body = build_create_packet(settings.packeta_api_password, attributes)
    try:
        resp = httpx.post(
            settings.packeta_api_url,
            content=body,
            headers={"Content-Type": "application/xml"},
            timeout=settings.packeta_timeout_seconds,
        )
    except httpx.HTTPError as e:
        logger.warning("packeta.create_packet transport error number=%s: %s", attributes.get("number"), e)
        raise CarrierDispatchFailed(details=f"Carrier request failed: {e}")
    if resp.status_code >= 500:
        raise CarrierDispatchFailed(details=f"Carrier HTTP {resp.status_code}")
    result = parse_response(resp.content)
    logger.info("packeta.create_packet ok number=%s packet_id=%s", attributes.get("number"), result["id"])
    return result
