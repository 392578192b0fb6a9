"""
联赛缓存预热任务

特性：
1. 逐个联赛调用 refresh_league_data，保证缓存中是最新数据
2. 上游限流 (429) 时指数退避重试，其它错误直接记录并跳过
3. 联赛之间留出间隔，避免触发 API 限流
4. 结构化统计信息

LeagueDataManager 本身不做重试，重试策略由本任务负责。
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from src.services.league_data_manager import LeagueDataManager, LeagueSnapshot
from src.shared.exceptions import UpstreamError

logger = logging.getLogger(__name__)


def _is_rate_limited(error: BaseException) -> bool:
    return isinstance(error, UpstreamError) and error.is_rate_limited


class CacheWarmer:
    """联赛缓存预热器"""

    def __init__(
        self,
        manager: LeagueDataManager,
        max_attempts: int = 3,
        wait: Optional[wait_base] = None,
        delay_between_leagues: float = 3.0,
    ):
        self._manager = manager
        self._max_attempts = max_attempts
        self._wait = wait if wait is not None else wait_exponential(multiplier=1, min=2, max=10)
        self._delay = delay_between_leagues
        self.stats: Dict[str, Any] = {
            "refreshed": 0,
            "failed": 0,
            "retries": 0,
            "errors": {},
        }

    async def _refresh_with_retry(self, league_code: str) -> LeagueSnapshot:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_rate_limited),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self.stats["retries"] += 1
                    logger.warning(f"API 速率限制，第 {attempt.retry_state.attempt_number} 次重试 {league_code}...")
                return await self._manager.refresh_league_data(league_code)

    async def run(self, leagues: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        预热所有（或指定）联赛

        Args:
            leagues: 联赛代码列表，默认使用管理器中配置的联赛

        Returns:
            统计信息
        """
        if leagues is None:
            leagues = [league.code for league in self._manager.list_leagues()]

        logger.info(f"开始缓存预热，目标联赛: {leagues}")
        start_time = datetime.now()

        for index, league_code in enumerate(leagues):
            try:
                snapshot = await self._refresh_with_retry(league_code)
                self.stats["refreshed"] += 1
                logger.info(f"  - {league_code}: {len(snapshot.standings)} 支球队, 当前第 {snapshot.current_matchday} 轮")
            except Exception as e:
                self.stats["failed"] += 1
                self.stats["errors"][league_code] = str(e)
                logger.error(f"联赛 {league_code} 预热失败: {e}")

            if self._delay and index < len(leagues) - 1:
                await asyncio.sleep(self._delay)

        duration = (datetime.now() - start_time).total_seconds()
        logger.info("=" * 60)
        logger.info("缓存预热完成！统计信息：")
        logger.info(f"  - 成功: {self.stats['refreshed']} 个联赛")
        logger.info(f"  - 失败: {self.stats['failed']} 个联赛")
        logger.info(f"  - 重试: {self.stats['retries']} 次")
        logger.info(f"  - 耗时: {duration:.2f} 秒")
        logger.info("=" * 60)
        return self.stats
