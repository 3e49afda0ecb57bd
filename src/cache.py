import redis
import logging
from typing import Callable, Optional, Type, TypeVar

from pydantic import BaseModel

from src.config import settings

logger = logging.getLogger("AnalyticsAPI.Cache")

ModelT = TypeVar("ModelT", bound=BaseModel)


def stats_cache_key(studio_id: str, days: int) -> str:
    return f"stats:{studio_id}:{days}d"


def revenue_cache_key(studio_id: str, days: int) -> str:
    return f"revenue:{studio_id}:{days}d"


def content_cache_key(studio_id: str, content_id: str, days: int) -> str:
    return f"content:{studio_id}:{content_id}:{days}d"


class ResponseCache:
    """
    Read-through cache of serialized aggregate responses, backed by Redis.
    Redis is best-effort: read and write errors are logged and never fail a request.
    """

    def __init__(self, client: Optional[redis.Redis] = None, enabled: bool = True):
        self.redis = client if client is not None else redis.from_url(settings.REDIS_URL, decode_responses=True)
        self.enabled = enabled

    def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        try:
            cached = self.redis.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis read error for {key}: {e}. Treating as a miss.")
            return None

        if cached is None:
            return None

        try:
            return model.model_validate_json(cached)
        except ValueError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    def put(self, key: str, value: BaseModel, ttl: int) -> None:
        try:
            self.redis.setex(key, ttl, value.model_dump_json(by_alias=True))
        except redis.RedisError as e:
            logger.error(f"Redis write error for {key}: {e}")

    def get_or_compute(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], ModelT],
        model: Type[ModelT],
    ) -> ModelT:
        """
        Returns the cached value for `key`, or computes, stores (for `ttl`
        seconds) and returns a fresh one.
        """
        if not self.enabled:
            return compute()

        cached = self.get(key, model)
        if cached is not None:
            logger.debug(f"Cache hit for {key}.")
            return cached

        logger.debug(f"Cache miss for {key}.")
        value = compute()
        self.put(key, value, ttl)
        return value


_cache_instance = {"cache": None}

def get_response_cache() -> ResponseCache:
    """FastAPI dependency returning the process-wide response cache."""
    if _cache_instance["cache"] is None:
        _cache_instance["cache"] = ResponseCache(enabled=settings.CACHE_ENABLED)
    return _cache_instance["cache"]
