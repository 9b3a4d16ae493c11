"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

- En production, un process manager (ex: gunicorn + uvicorn workers) importe `clubify_checkout.asgi:app`.
- Toute la configuration FastAPI (routers, exceptions, lifespan) est centralisée dans clubify_checkout.app_setup.
"""

from clubify_checkout.app import app
