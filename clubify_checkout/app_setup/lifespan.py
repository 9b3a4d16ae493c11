"""
Lifespan FastAPI: initialisation/arrêt du SDK partagé (app.state.sdk).
- Variables d'environnement supportées:
  - USE_FAKE_REDIS_FOR_TESTS=1: cache sur fakeredis (tests)
  - CLUBIFY_CHECKOUT_CACHE_ENABLED=0: cache désactivé
- Un SDK déjà posé sur app.state.sdk (tests) est conservé tel quel
"""
import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from clubify_checkout.config import Settings
from clubify_checkout.infra.cache import CacheManager
from clubify_checkout.sdk import ClubifyCheckoutSDK

def build_cache(settings: Settings, logger: logging.Logger) -> CacheManager:
    """
    Construit le cache Redis et gère les fallbacks.
    - Redis injoignable: cache désactivé proprement (passe-plat), sans bloquer le démarrage
    """
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
        import fakeredis  # dépendance de test uniquement
        return CacheManager.from_settings(settings, client=fakeredis.FakeRedis(decode_responses=True))

    cache = CacheManager.from_settings(settings)
    if cache.enabled and not cache.ping():
        cache.enabled = False
        logger.warning("Cache disabled: redis unreachable at %s", settings.cache_redis_url)
    return cache

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Construit le SDK au démarrage et ferme son client HTTP à l'arrêt.
    - Les logs indiquent l'état effectif du cache (enabled/disabled) pour observabilité.
    """
    logger = logging.getLogger("uvicorn.error")
    owned = getattr(app.state, "sdk", None) is None
    if owned:
        settings = Settings.from_env()
        app.state.sdk = ClubifyCheckoutSDK(settings, cache=build_cache(settings, logger))
    sdk = app.state.sdk
    logger.info(
        "Clubify SDK %s ready (environment=%s, cache=%s)",
        sdk.version, sdk.settings.environment, "enabled" if sdk.cache.enabled else "disabled",
    )
    try:
        yield
    finally:
        if owned:
            sdk.close()
            app.state.sdk = None
