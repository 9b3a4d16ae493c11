"""
Factory d'application recommandée pour les entrypoints (ex: clubify_checkout.asgi).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from fastapi import FastAPI
from .lifespan import lifespan
from .exception_handlers import register_exception_handlers
from .routers import register_routers
from clubify_checkout.config import SDK_VERSION

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan (SDK partagé) et enregistre:
      - gestionnaires d'exceptions du SDK
      - tous les routers (API v1, health)
    """
    app = FastAPI(title="Clubify Checkout", version=SDK_VERSION, lifespan=lifespan)
    register_exception_handlers(app)
    register_routers(app)
    return app
