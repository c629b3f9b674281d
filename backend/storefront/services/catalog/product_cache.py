from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, List, Optional

from redis.asyncio import Redis

from storefront.core.config import settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "products"
QUERY_KEY_PREFIX = f"{KEY_PREFIX}:query"


def stable_cache_key(prefix: str, payload: Dict[str, Any]) -> str:
    raw = json.dumps(payload, ensure_ascii=True, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


class ProductQueryCache:
    """Best-effort redis cache for executor results.

    Never raises: a missing, disabled or failing redis behaves like a miss.
    """

    def __init__(self, client: Optional[Redis] = None) -> None:
        self._client: Optional[Redis] = client

    @property
    def enabled(self) -> bool:
        return bool(getattr(settings, "PRODUCT_CACHE_ENABLED", False))

    @property
    def ttl_seconds(self) -> int:
        return int(getattr(settings, "PRODUCT_CACHE_TTL_SECONDS", 300))

    async def _ensure_client(self) -> Optional[Redis]:
        if not self.enabled:
            return None
        if self._client is not None:
            return self._client
        url = str(getattr(settings, "REDIS_URL", "") or "").strip()
        if not url:
            return None
        try:
            socket_timeout = float(getattr(settings, "PRODUCT_CACHE_SOCKET_TIMEOUT_SECONDS", 0.5))
            self._client = Redis.from_url(
                url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
            await self._client.ping()
            return self._client
        except Exception as exc:
            logger.warning("redis unavailable; continuing without product cache: %s", exc)
            self._client = None
            return None

    @staticmethod
    def query_key(payload: Dict[str, Any]) -> str:
        return stable_cache_key(QUERY_KEY_PREFIX, payload)

    async def get_json(self, key: str) -> Optional[List[Dict[str, Any]]]:
        client = await self._ensure_client()
        if client is None:
            return None
        try:
            raw = await client.get(key)
            if not raw:
                return None
            parsed = json.loads(raw)
            return parsed if isinstance(parsed, list) else None
        except Exception as exc:
            logger.warning("redis get_json failed for key=%s: %s", key, exc)
            return None

    async def set_json(
        self,
        key: str,
        payload: List[Dict[str, Any]],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        client = await self._ensure_client()
        if client is None:
            return
        try:
            ttl = max(1, int(ttl_seconds or self.ttl_seconds))
            await client.set(key, json.dumps(payload, ensure_ascii=True), ex=ttl)
        except Exception as exc:
            logger.warning("redis set_json failed for key=%s: %s", key, exc)

    async def invalidate(self) -> int:
        """Drop every cached product query. Returns the number of keys removed."""
        client = await self._ensure_client()
        if client is None:
            return 0
        removed = 0
        try:
            async for key in client.scan_iter(match=f"{KEY_PREFIX}:*"):
                removed += int(await client.delete(key) or 0)
        except Exception as exc:
            logger.warning("redis invalidate failed: %s", exc)
        if removed:
            logger.info(f"Invalidated {removed} cached product queries")
        return removed


product_query_cache = ProductQueryCache()
