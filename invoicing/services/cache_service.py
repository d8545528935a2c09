"""
Best-effort Redis cache.

Entries live under ``{prefix}:{namespace}:{module}:{key}``. The namespace is
``platform`` for cross-tenant data (admin metrics, health probe) or
``tenant:{id}`` for data owned by one tenant. Without Redis every read misses
and every write is dropped, so callers always have a loader to fall back on.
"""

import json
import logging
from decimal import Decimal
from datetime import date, datetime
from typing import Any, Callable, Optional

import redis
from flask import Flask, current_app
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

PLATFORM = 'platform'


def tenant_namespace(tenant_id: int) -> str:
    return f"tenant:{tenant_id}"


def _encode(value: Any) -> str:
    def fallback(obj):
        if isinstance(obj, Decimal):
            return {'__decimal__': str(obj)}
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        raise TypeError(f"{type(obj).__name__} cannot be cached")
    return json.dumps(value, default=fallback)


def _decode(raw: str) -> Any:
    def hook(obj):
        if set(obj) == {'__decimal__'}:
            return Decimal(obj['__decimal__'])
        return obj
    return json.loads(raw, object_hook=hook)


class CacheService:

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.prefix = 'invoicing'
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.prefix = app.config.get('CACHE_KEY_PREFIX', 'invoicing')
        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] disabled by configuration")
            return

        url = app.config.get('REDIS_URL', 'redis://localhost:6379/0')
        client = redis.from_url(url, decode_responses=True, socket_connect_timeout=3, socket_timeout=3)
        try:
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {url}, running uncached: {e}")
            return
        self.client = client
        logger.info(f"[CACHE] connected to {url}")

    def is_available(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def _key(self, namespace: str, module: str, key: str) -> str:
        return ':'.join((self.prefix, namespace, module, key))

    def get(self, namespace: str, module: str, key: str) -> Optional[Any]:
        if self.client is None:
            return None
        try:
            raw = self.client.get(self._key(namespace, module, key))
        except RedisError as e:
            logger.warning(f"[CACHE] read failed: {e}")
            return None
        if raw is None:
            return None
        try:
            return _decode(raw)
        except ValueError:
            logger.warning(f"[CACHE] dropping undecodable entry {namespace}:{module}:{key}")
            return None

    def set(self, namespace: str, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if self.client is None:
            return False
        if ttl is None:
            ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
        try:
            self.client.setex(self._key(namespace, module, key), ttl, _encode(value))
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] write failed: {e}")
            return False
        return True

    def memoize(self, namespace: str, module: str, key: str,
                loader: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value, or run ``loader`` and cache its result."""
        cached = self.get(namespace, module, key)
        if cached is not None:
            return cached
        value = loader()
        self.set(namespace, module, key, value, ttl)
        return value

    def invalidate(self, namespace: str, module: str) -> int:
        """Drop every key of ``module`` in ``namespace``; returns how many went."""
        if self.client is None:
            return 0
        removed = 0
        try:
            for batch_key in self.client.scan_iter(match=self._key(namespace, module, '*'), count=100):
                removed += self.client.delete(batch_key)
        except RedisError as e:
            logger.warning(f"[CACHE] invalidate failed: {e}")
        if removed:
            logger.info(f"[CACHE] invalidated {removed} key(s) in {namespace}:{module}")
        return removed

    def probe(self) -> str:
        """Round-trip a throwaway key: 'connected', 'unavailable' or 'error'."""
        if not self.is_available():
            return 'unavailable'
        self.set(PLATFORM, 'system', 'health_check', {'ok': True}, ttl=10)
        result = self.get(PLATFORM, 'system', 'health_check')
        return 'connected' if result == {'ok': True} else 'error'


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service
