"""
Per-user cache of rendered dashboard views, keyed by request path.

Views live in redis so every worker process sees the same entries, and
mutating actions call `invalidate(path)` so the next read of that path goes
back to the store.
"""

import json
import logging
from typing import Any, Dict, Optional

import redis

logger = logging.getLogger(__name__)

DASHBOARD_PATH = "/dashboard"
LOGIN_PATH = "/login"

# Keys
# view:{path}:{scope} -> JSON view payload, TTL = ttl_seconds
# viewidx:{path} -> set of view keys cached for path, dropped on invalidate
VIEW_KEY = "view:{path}:{scope}"
INDEX_KEY = "viewidx:{path}"

_pools: Dict[str, redis.Redis] = {}


def customer_path(customer_id: str) -> str:
    return f"{DASHBOARD_PATH}/customer/{customer_id}"


def get_redis(url: str) -> redis.Redis:
    if url not in _pools:
        _pools[url] = redis.from_url(url, decode_responses=True)  # type: ignore[arg-type]
    return _pools[url]


class ViewCache:
    def __init__(self, client: redis.Redis, ttl_seconds: int = 60):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def get(self, path: str, scope: str) -> Optional[Any]:
        try:
            data = self.client.get(VIEW_KEY.format(path=path, scope=scope))
        except redis.RedisError as e:
            logger.warning(f"⚠️ View cache read failed for {path}: {e}")
            return None
        if not data:
            return None
        return json.loads(data)

    def set(self, path: str, scope: str, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        key = VIEW_KEY.format(path=path, scope=scope)
        index = INDEX_KEY.format(path=path)
        try:
            pipe = self.client.pipeline()
            pipe.set(name=key, value=json.dumps(value), ex=self.ttl_seconds)
            pipe.sadd(index, key)
            pipe.expire(index, self.ttl_seconds)
            pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"⚠️ View cache write failed for {path}: {e}")

    def invalidate(self, path: str) -> None:
        """Drop every scope's cached view of path"""
        index = INDEX_KEY.format(path=path)
        try:
            keys = self.client.smembers(index)
            self.client.delete(index, *keys)
        except redis.RedisError as e:
            logger.error(f"❌ View cache invalidation failed for {path}: {e}")
            return
        logger.debug("revalidate", extra={"evt": "revalidate", "path": path, "entries": len(keys)})
