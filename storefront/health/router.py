from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from storefront.health import service
from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root(request: Request):
    settings = getattr(request.app.state, "settings", None)
    return {
        "ok": True,
        "stripe_configured": bool(settings and settings.stripe_configured),
        "carrier_configured": bool(settings and settings.carrier_configured),
        "rate_limit": rate_limit_health_info(request),
    }

@router.get("/supabase")
def health_supabase():
    return JSONResponse(service.health_supabase_info())
