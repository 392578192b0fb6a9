"""
缓存后端

功能：
1. MemoryCacheBackend: 进程内字典（默认，单实例部署和测试使用）
2. RedisCacheBackend: redis.asyncio（多实例共享缓存）

后端只负责原始字符串读写，过期判断、命名空间和容错都在 CacheStore 中完成。
所有后端错误统一包装为 CacheError。
"""
from __future__ import annotations

import fnmatch
import logging
from typing import Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from src.shared.exceptions import CacheError

logger = logging.getLogger(__name__)


class MemoryCacheBackend:
    """进程内缓存后端（过期由 CacheStore 在读取时判断）"""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = value

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    async def keys(self, pattern: str) -> List[str]:
        return [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]

    async def close(self) -> None:
        self._data.clear()


class RedisCacheBackend:
    """Redis 缓存后端"""

    def __init__(self, url: Optional[str] = None, client: Optional[redis.Redis] = None):
        if client is None:
            if not url:
                raise CacheError("Redis 缓存后端需要配置 cache.url")
            client = redis.Redis.from_url(url, decode_responses=True)
        self._client = client

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except RedisError as e:
            raise CacheError(f"Redis GET 失败: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.setex(key, ttl_seconds, value)
        except RedisError as e:
            raise CacheError(f"Redis SETEX 失败: {e}") from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self._client.delete(*keys)
        except RedisError as e:
            raise CacheError(f"Redis DEL 失败: {e}") from e

    async def keys(self, pattern: str) -> List[str]:
        try:
            return list(await self._client.keys(pattern))
        except RedisError as e:
            raise CacheError(f"Redis KEYS 失败: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")
