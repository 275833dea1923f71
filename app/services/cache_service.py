"""
Redis cache for per-shop discount rules.

Pricing reads every discount of a shop on each quote, so the rule list is
kept in Redis as JSON under one key per shop and module:

    {prefix}:shop:{shop_id}:{module}

Admin writes delete the key. When Redis is disabled or unreachable every call
degrades to a miss and callers read the database.
"""

import logging
import json
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)


class CacheService:
    """Cache-aside store keyed by shop and module."""

    def __init__(self, app: Optional[Flask] = None, client: Optional[redis.Redis] = None):
        self.client: Optional[redis.Redis] = client
        self._enabled: bool = client is not None
        self._prefix: str = 'shop'
        self._default_ttl: int = 60

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Connect to REDIS_URL unless CACHE_ENABLED is off or a client was injected."""
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'shop')
        self._default_ttl = app.config.get('CACHE_DEFAULT_TTL', 60)
        if self.client is not None:
            return

        self._enabled = app.config.get('CACHE_ENABLED', True)
        if not self._enabled:
            logger.info("[CACHE] Discount rule cache is DISABLED via config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except RedisError as e:
            logger.warning(f"[CACHE] Redis connection failed: {e}. Discount rules will be read from the database.")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        if not self._enabled or self.client is None:
            return False
        try:
            self.client.ping()
            return True
        except RedisError:
            return False

    def build_key(self, shop_id: int, module: str) -> str:
        return f"{self._prefix}:shop:{shop_id}:{module}"

    def get(self, shop_id: int, module: str) -> Optional[Any]:
        if not self.is_available():
            return None
        try:
            value = self.client.get(self.build_key(shop_id, module))
            return json.loads(value) if value is not None else None
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] Get error for shop {shop_id}/{module}: {e}")
            return None

    def set(self, shop_id: int, module: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a JSON-ready value (DiscountRule.to_dict output)."""
        if not self.is_available():
            return False
        try:
            self.client.setex(self.build_key(shop_id, module), ttl or self._default_ttl, json.dumps(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Set error for shop {shop_id}/{module}: {e}")
            return False

    def memoize(self, shop_id: int, module: str, loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value, or load it, store it and return it."""
        cached = self.get(shop_id, module)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(shop_id, module, value, ttl)
        return value

    def invalidate(self, shop_id: int, module: str) -> bool:
        if not self.is_available():
            return False
        try:
            deleted = self.client.delete(self.build_key(shop_id, module))
            if deleted:
                logger.info(f"[CACHE] INVALIDATE: {self.build_key(shop_id, module)}")
            return bool(deleted)
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate error for shop {shop_id}/{module}: {e}")
            return False


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask, client: Optional[redis.Redis] = None) -> CacheService:
    """Create the process-wide cache and register it on the app."""
    global _cache_service
    _cache_service = CacheService(app, client=client)
    app.extensions['cache'] = _cache_service
    return _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service
