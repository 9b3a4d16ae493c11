"""
Cache Redis des lectures de l'API distante.
- Valeurs JSON sous un préfixe configurable, avec TTL
- remember(key, ttl, producer): lecture du cache sinon appel du producteur puis écriture
- Cache désactivé ou Redis injoignable: passe-plat (le SDK ne tombe jamais à cause du cache)
"""
import json
import logging
from typing import Any, Callable, Optional

import redis

from clubify_checkout.config import Settings

logger = logging.getLogger(__name__)


class CacheManager:
    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = "clubify_checkout", default_ttl: int = 3600, enabled: bool = True):
        self._client = client
        self.prefix = prefix
        self.default_ttl = default_ttl
        self.enabled = enabled and client is not None

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[redis.Redis] = None) -> "CacheManager":
        if not settings.cache_enabled:
            return cls(None, settings.cache_prefix, settings.cache_ttl, enabled=False)
        if client is None:
            client = redis.from_url(settings.cache_redis_url, encoding="utf-8", decode_responses=True)
        return cls(client, settings.cache_prefix, settings.cache_ttl, enabled=True)

    def key(self, key: str) -> str:
        return f"{self.prefix}:{key}" if self.prefix else key

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self._client.get(self.key(key))
        except redis.RedisError as e:
            logger.warning("cache.get failed key=%s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("cache.get undecodable value key=%s", key)
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            payload = json.dumps(value, default=str)
            self._client.set(self.key(key), payload, ex=ttl or self.default_ttl)
            return True
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.warning("cache.set failed key=%s: %s", key, e)
            return False

    def delete(self, *keys: str) -> int:
        if not self.enabled or not keys:
            return 0
        try:
            return int(self._client.delete(*[self.key(k) for k in keys]))
        except redis.RedisError as e:
            logger.warning("cache.delete failed keys=%s: %s", keys, e)
            return 0

    def has(self, key: str) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(self._client.exists(self.key(key)))
        except redis.RedisError as e:
            logger.warning("cache.has failed key=%s: %s", key, e)
            return False

    def remember(self, key: str, ttl: Optional[int], producer: Callable[[], Any]) -> Any:
        """
        Valeur en cache ou résultat de producer().
        - None n'est jamais mis en cache (ex: ressource 404)
        - Les erreurs du producteur se propagent telles quelles
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = producer()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def ping(self) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            logger.warning("cache.ping failed: %s", e)
            return False
