"""统一异常定义。

- UpstreamError: football-data.org 请求失败（非 2xx、超时、响应体异常）
- CacheError: 缓存后端不可用或数据损坏，只在缓存层内部抛出并被吞掉
- ConfigurationError: 缺少必要配置（如 API Key），快速失败
"""
from __future__ import annotations

from typing import Optional


class FootballDataError(Exception):
    """本项目所有自定义异常的基类"""


class UpstreamError(FootballDataError):
    """上游数据源请求失败"""

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"[{self.status_code}] {self.message}"


class CacheError(FootballDataError):
    """缓存后端错误（永远不会传播到缓存层之外）"""


class ConfigurationError(FootballDataError):
    """配置缺失或无效"""
