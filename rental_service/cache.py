import hashlib
import json

from redis.exceptions import RedisError

from . import redis_client as rc
from .config import CATALOG_CACHE_TTL_SECONDS


def catalog_cache_key(params: dict) -> str:
    """
    Identical catalog queries map to the same key regardless of parameter order.
    """
    normalized = json.dumps(
        {k: v for k, v in sorted(params.items()) if v is not None},
        default=str,
        separators=(",", ":"),
    )
    digest = hashlib.sha1(normalized.encode("utf-8")).hexdigest()
    return f"catalog:cars:{digest}"


async def get_cached_result(key: str):
    if rc.redis_client is None:
        return None
    try:
        return await rc.redis_client.get(key)
    except RedisError as e:
        print(f"[rental-service] catalog cache read failed: {e}")
        return None


async def set_cache(key: str, value: str, ttl_seconds: int = CATALOG_CACHE_TTL_SECONDS):
    if rc.redis_client is None:
        return
    try:
        await rc.redis_client.set(key, value, ex=ttl_seconds)
    except RedisError as e:
        print(f"[rental-service] catalog cache write failed: {e}")
