"""
Registre central des routers (API v1, health).
- API v1: cart, flows, webhooks
- Health: health_router
"""
from fastapi import FastAPI
from clubify_checkout.cart import views as cart_views
from clubify_checkout.flows import views as flows_views
from clubify_checkout.webhooks import views as webhooks_views
from clubify_checkout.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(cart_views.router)
    app.include_router(flows_views.router)
    app.include_router(webhooks_views.router)
    # Health & monitoring
    app.include_router(health_router)
