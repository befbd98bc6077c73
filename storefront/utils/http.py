"""
Surface HTTP commune aux endpoints:
- enveloppe {success: true, ...} avec clés camelCase (orderId, lineItems, ...)
- endpoints d'étape: POST (JSON), OPTIONS (204, préflight CORS), toute autre méthode -> 400
"""
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic.alias_generators import to_camel

from storefront.errors import BadRequest

OTHER_METHODS = ["GET", "PUT", "PATCH", "DELETE"]

def camelize(value: Any) -> Any:
    """Clés snake_case -> camelCase, récursivement (les services restent en snake_case)."""
    if isinstance(value, dict):
        return {(to_camel(k) if isinstance(k, str) and "_" in k else k): camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [camelize(v) for v in value]
    return value

def ok(**payload: Any) -> Dict[str, Any]:
    return {"success": True, **camelize(payload)}

def register_stage_methods(router: APIRouter, path: str) -> None:
    """Ajoute OPTIONS et le refus explicite des autres méthodes sur `path`."""

    @router.options(path, include_in_schema=False)
    async def _preflight() -> Response:
        return Response(status_code=204, headers={"Allow": "POST, OPTIONS"})

    @router.api_route(path, methods=OTHER_METHODS, include_in_schema=False)
    async def _wrong_method(request: Request):
        raise BadRequest(f"This endpoint requires a POST request, received: {request.method}")
