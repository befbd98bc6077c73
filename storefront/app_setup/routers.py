"""
Registre central des routers: cart, checkout (session, cash, verify),
orders, shipping (dispatch, track, pickup-points) et health.
"""
from fastapi import FastAPI
from storefront.cart import views as cart_views
from storefront.checkout import views as checkout_views
from storefront.orders import views as orders_views
from storefront.shipping import views as shipping_views
from storefront.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(cart_views.router)
    app.include_router(checkout_views.router)
    app.include_router(orders_views.router)
    app.include_router(shipping_views.router)
    # Health & monitoring
    app.include_router(health_router)
