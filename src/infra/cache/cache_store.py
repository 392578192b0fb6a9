"""
缓存存储 (Cache Store)

功能：
1. 带 TTL 的键值存储，所有键自动加命名空间前缀
2. 读取时检查是否过期，过期或损坏的条目视为不存在并顺带删除
3. 前缀失效（手动刷新使用）
4. 统计信息（仅用于监控，不参与业务控制流）

注意：
- 缓存是"尽力而为"的优化，任何缓存错误都只记录日志，不会抛给调用方
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from src.infra.cache.backends import MemoryCacheBackend, RedisCacheBackend
from src.shared.config import CacheConfig

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def keys(self, pattern: str) -> List[str]: ...

    async def close(self) -> None: ...


class CacheStore:
    """
    命名空间化的 TTL 缓存

    存储格式（JSON）：
        {"data": <payload>, "written_at": <epoch 秒>, "ttl_ms": <毫秒>}
    """

    DEFAULT_TTL = 300  # 5 minutes

    def __init__(
        self,
        backend: CacheBackend,
        namespace: str = "football:",
        clock: Callable[[], float] = time.time,
    ):
        self._backend = backend
        self._namespace = namespace
        self._clock = clock

    def _full_key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    async def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL) -> None:
        """写入缓存（覆盖已有条目），失败只记日志"""
        full_key = self._full_key(key)
        entry = {
            "data": value,
            "written_at": self._clock(),
            "ttl_ms": int(ttl_seconds * 1000),
        }
        try:
            await self._backend.set(full_key, json.dumps(entry), ttl_seconds)
            logger.info(f"Cached: {full_key} (TTL: {ttl_seconds}s)")
        except Exception as e:
            logger.error(f"Cache set error for {full_key}: {e}")

    async def get(self, key: str) -> Optional[Any]:
        """读取缓存；不存在、过期、损坏均返回 None"""
        full_key = self._full_key(key)
        try:
            raw = await self._backend.get(full_key)
        except Exception as e:
            logger.warning(f"Cache get error for {full_key}: {e}")
            return None

        if raw is None:
            return None

        try:
            entry = json.loads(raw)
            data = entry["data"]
            written_at = float(entry["written_at"])
            ttl_ms = int(entry["ttl_ms"])
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Malformed cache entry for {full_key}, dropping: {e}")
            await self._delete(full_key)
            return None

        age_ms = (self._clock() - written_at) * 1000
        if age_ms > ttl_ms:
            logger.debug(f"Cache entry expired: {full_key} (age {age_ms:.0f}ms > {ttl_ms}ms)")
            await self._delete(full_key)
            return None

        return data

    async def _delete(self, *full_keys: str) -> None:
        try:
            await self._backend.delete(*full_keys)
        except Exception as e:
            logger.warning(f"Cache delete error for {full_keys}: {e}")

    async def invalidate(self, prefix: str) -> None:
        """删除所有以 prefix 开头的条目"""
        pattern = f"{self._full_key(prefix)}*"
        try:
            keys = await self._backend.keys(pattern)
            if keys:
                await self._backend.delete(*keys)
                logger.info(f"Invalidated {len(keys)} cache entries for pattern: {prefix}")
        except Exception as e:
            logger.error(f"Cache invalidation error for {prefix}: {e}")

    async def stats(self) -> Dict[str, Any]:
        """列出命名空间下的所有键"""
        try:
            keys = sorted(await self._backend.keys(f"{self._namespace}*"))
        except Exception as e:
            logger.error(f"Cache stats error: {e}")
            return {"keys": [], "count": 0}
        return {"keys": keys, "count": len(keys)}

    async def close(self) -> None:
        try:
            await self._backend.close()
        except Exception as e:
            logger.warning(f"Cache close error: {e}")


def create_cache_store(config: CacheConfig) -> CacheStore:
    """根据配置创建缓存存储"""
    if config.backend == "redis":
        backend: CacheBackend = RedisCacheBackend(url=config.url)
    else:
        backend = MemoryCacheBackend()
    logger.info(f"Cache store created: backend={config.backend}, namespace={config.namespace}")
    return CacheStore(backend, namespace=config.namespace)
