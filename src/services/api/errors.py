"""服务层异常 -> HTTP 错误的映射。"""
from __future__ import annotations

import logging

from fastapi import HTTPException

from src.shared.exceptions import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


def to_http_exception(error: Exception, league_code: str) -> HTTPException:
    """
    - 上游 429 -> 429（提示稍后重试）
    - 其他上游错误 -> 502
    - 配置错误 -> 500
    """
    if isinstance(error, UpstreamError):
        if error.is_rate_limited:
            return HTTPException(
                status_code=429,
                detail={"error": "Rate limit exceeded", "details": "Please try again later", "league": league_code},
            )
        return HTTPException(
            status_code=502,
            detail={"error": "Failed to fetch data", "details": str(error), "league": league_code},
        )
    if isinstance(error, ConfigurationError):
        return HTTPException(
            status_code=500,
            detail={"error": "API configuration error", "details": "Missing or invalid API key"},
        )
    logger.error(f"Unexpected error for {league_code}: {error}", exc_info=True)
    return HTTPException(
        status_code=500,
        detail={"error": "Internal error", "details": str(error), "league": league_code},
    )
