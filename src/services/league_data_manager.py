"""
LeagueDataManager - 联赛数据管理服务层

职责：
1. "某联赛当前数据"的唯一入口：缓存优先，未命中时回源 football-data.org
2. 单飞 (single-flight)：同一联赛同一时刻最多只有一组上游请求（积分榜 + 赛程）
3. 归一化上游数据并推导当前轮次
4. 手动刷新、批量获取、缓存统计

注意：
- 进行中的请求表属于实例状态，不使用模块级单例
- 登记 pending 与判断未命中之间没有 await；移除在 finally 中完成，错误路径同样会清理
- 不做自动重试，重试/退避由调用方负责
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from src.data_pipeline.football_data_client import FootballDataClient
from src.data_pipeline.schemas import (
    ExternalApiResponse,
    ExternalMatch,
    ExternalStandingRow,
    ExternalStandingsResponse,
    ExternalTeam,
)
from src.infra.cache.cache_store import CacheStore, create_cache_store
from src.services.config import LeagueDataConfig, LeagueInfo, league_data_config
from src.shared.config import Settings
from src.shared.exceptions import UpstreamError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== 数据模型 ====================

class DataOrigin(str, Enum):
    """数据来源"""
    CACHE = "cache"
    UPSTREAM = "upstream"


class LeagueSnapshot(BaseModel):
    """联赛快照：缓存与返回的基本单位"""
    league_code: str
    standings: List[ExternalStandingRow]
    matches: List[ExternalMatch]
    current_matchday: int
    fetched_at: datetime
    origin: DataOrigin = DataOrigin.UPSTREAM


class LeagueBatchEntry(BaseModel):
    """批量获取中的单个联赛结果，失败时 error 非空且数据为空"""
    league_code: str
    standings: List[ExternalStandingRow] = Field(default_factory=list)
    matches: List[ExternalMatch] = Field(default_factory=list)
    current_matchday: int
    fetched_at: Optional[datetime] = None
    origin: Optional[DataOrigin] = None
    error: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snapshot: LeagueSnapshot) -> "LeagueBatchEntry":
        return cls(
            league_code=snapshot.league_code,
            standings=snapshot.standings,
            matches=snapshot.matches,
            current_matchday=snapshot.current_matchday,
            fetched_at=snapshot.fetched_at,
            origin=snapshot.origin,
        )


# ==================== 归一化工具 ====================

def select_upcoming_matches(
    matches: Iterable[ExternalMatch],
    now: datetime,
    statuses: Iterable[str] = league_data_config.UPCOMING_STATUSES,
) -> List[ExternalMatch]:
    """未开赛比赛：状态为 SCHEDULED/TIMED 且开球时间严格晚于 now"""
    statuses = frozenset(statuses)
    return [m for m in matches if m.status in statuses and m.utcDate > now]


def derive_current_matchday(
    league_code: str,
    upcoming: Iterable[ExternalMatch],
    config: LeagueDataConfig = league_data_config,
) -> int:
    """
    推导当前轮次

    取未开赛比赛中不低于下限的最小轮次；没有则返回下限本身。
    下限来自联赛策略表（如欧冠为 4，其余默认 1）。
    """
    floor = config.matchday_floor(league_code)
    candidates = [m.matchday for m in upcoming if m.matchday is not None and m.matchday >= floor]
    return min(candidates) if candidates else floor


# ==================== LeagueDataManager ====================

class LeagueDataManager:
    """
    联赛数据管理器

    提供：
    - get_league_data / get_standings / get_matches / get_current_matchday
    - refresh_league_data（失效后立即重新拉取）
    - get_all_leagues_data（并行获取，单个联赛失败不影响整体）
    - get_cache_stats
    """

    def __init__(
        self,
        cache: CacheStore,
        client: FootballDataClient,
        *,
        leagues: Optional[List[str]] = None,
        ttl_seconds: Optional[int] = None,
        team_display_names: Optional[Dict[str, str]] = None,
        config: LeagueDataConfig = league_data_config,
        now: Callable[[], datetime] = _utcnow,
    ):
        self._cache = cache
        self._client = client
        self._config = config
        self._leagues = leagues if leagues is not None else config.league_codes()
        self._ttl_seconds = ttl_seconds if ttl_seconds is not None else config.LEAGUE_TTL_SECONDS
        self._team_display_names = team_display_names or {}
        self._now = now
        # 缓存键 -> 进行中的拉取任务
        self._inflight: Dict[str, asyncio.Task] = {}

    def _cache_key(self, league_code: str) -> str:
        return f"{self._config.CACHE_KEY_PREFIX}{league_code}"

    # ==================== 核心读取 ====================

    async def get_league_data(self, league_code: str) -> LeagueSnapshot:
        """
        获取联赛快照（缓存优先）

        Returns:
            origin=cache 表示命中缓存，origin=upstream 表示本次（或并发的同一次）回源结果

        Raises:
            UpstreamError / ConfigurationError: 回源失败，所有等待者收到同一个异常
        """
        cache_key = self._cache_key(league_code)

        cached = await self._cache.get(cache_key)
        if cached is not None:
            snapshot = self._load_cached(cache_key, cached)
            if snapshot is not None:
                logger.debug(f"Cache hit for {league_code}")
                return snapshot.model_copy(update={"origin": DataOrigin.CACHE})

        # 以下直到登记 pending 之前不能出现 await
        pending = self._inflight.get(cache_key)
        if pending is None:
            logger.info(f"Cache miss for {league_code}, fetching from API...")
            pending = asyncio.ensure_future(self._fetch_and_store(league_code, cache_key))
            self._inflight[cache_key] = pending
        else:
            logger.debug(f"Joining in-flight fetch for {league_code}")

        # shield：某个等待者被取消不会取消共享的拉取
        return await asyncio.shield(pending)

    def _load_cached(self, cache_key: str, cached: object) -> Optional[LeagueSnapshot]:
        try:
            return LeagueSnapshot.model_validate(cached)
        except ValidationError as e:
            logger.warning(f"Cached snapshot for {cache_key} is malformed, treating as miss: {e}")
            return None

    async def _fetch_and_store(self, league_code: str, cache_key: str) -> LeagueSnapshot:
        try:
            standings_resp, matches_resp = await asyncio.gather(
                self._client.get_standings(league_code),
                self._client.get_matches(league_code),
            )
            snapshot = self._normalize(league_code, standings_resp, matches_resp)

            # 两个请求都成功后才写缓存，不会出现部分快照
            await self._cache.set(cache_key, snapshot.model_dump(mode="json"), self._ttl_seconds)
            logger.info(
                f"Fetched {league_code}: {len(snapshot.standings)} teams, "
                f"{len(snapshot.matches)} matches, matchday {snapshot.current_matchday}"
            )
            return snapshot
        except Exception as e:
            logger.error(f"API Error for {league_code}: {e}")
            raise
        finally:
            self._inflight.pop(cache_key, None)

    # ==================== 归一化 ====================

    def _normalize(
        self,
        league_code: str,
        standings_resp: ExternalStandingsResponse,
        matches_resp: ExternalApiResponse,
    ) -> LeagueSnapshot:
        if not standings_resp.standings:
            raise UpstreamError(None, f"No standings table returned for {league_code}")

        # 联赛只取第一张表（主表）
        standings = [
            row.model_copy(update={"team": self._display_team(row.team)})
            for row in standings_resp.standings[0].table
        ]
        matches = [
            match.model_copy(update={
                "homeTeam": self._display_team(match.homeTeam),
                "awayTeam": self._display_team(match.awayTeam),
            })
            for match in matches_resp.matches
        ]

        now = self._now()
        upcoming = select_upcoming_matches(matches, now, self._config.UPCOMING_STATUSES)
        current_matchday = derive_current_matchday(league_code, upcoming, self._config)

        return LeagueSnapshot(
            league_code=league_code,
            standings=standings,
            matches=matches,
            current_matchday=current_matchday,
            fetched_at=now,
            origin=DataOrigin.UPSTREAM,
        )

    def _display_team(self, team: ExternalTeam) -> ExternalTeam:
        display_name = self._team_display_names.get(team.name)
        if display_name is None:
            return team
        return team.model_copy(update={"name": display_name})

    # ==================== 派生查询 ====================

    async def get_matches(self, league_code: str, matchday: Optional[int] = None) -> List[ExternalMatch]:
        """全部比赛，可按轮次精确过滤"""
        data = await self.get_league_data(league_code)
        if matchday is not None:
            return [m for m in data.matches if m.matchday == matchday]
        return data.matches

    async def get_upcoming_matches(
        self,
        league_code: str,
        matchday: Optional[int] = None,
    ) -> List[ExternalMatch]:
        """未开赛比赛，可按轮次精确过滤"""
        matches = await self.get_matches(league_code, matchday)
        return select_upcoming_matches(matches, self._now(), self._config.UPCOMING_STATUSES)

    async def get_standings(self, league_code: str) -> List[ExternalStandingRow]:
        data = await self.get_league_data(league_code)
        return data.standings

    async def get_current_matchday(self, league_code: str) -> int:
        data = await self.get_league_data(league_code)
        return data.current_matchday

    # ==================== 刷新 / 批量 / 统计 ====================

    async def refresh_league_data(self, league_code: str) -> LeagueSnapshot:
        """失效缓存后立即重新拉取，返回时新数据已写入缓存"""
        logger.info(f"Manually refreshing {league_code} data...")
        await self._cache.invalidate(self._cache_key(league_code))
        return await self.get_league_data(league_code)

    async def get_all_leagues_data(self) -> List[LeagueBatchEntry]:
        """并行获取所有联赛，单个联赛失败返回带 error 的空条目"""

        async def _fetch_one(league_code: str) -> LeagueBatchEntry:
            try:
                snapshot = await self.get_league_data(league_code)
                return LeagueBatchEntry.from_snapshot(snapshot)
            except Exception as e:
                logger.error(f"Failed to load {league_code} in batch: {e}")
                return LeagueBatchEntry(
                    league_code=league_code,
                    current_matchday=self.matchday_floor(league_code),
                    error=str(e),
                )

        return list(await asyncio.gather(*(_fetch_one(code) for code in self._leagues)))

    async def get_cache_stats(self) -> Dict[str, object]:
        return await self._cache.stats()

    def list_leagues(self) -> List[LeagueInfo]:
        """已配置联赛的元数据"""
        leagues = []
        for code in self._leagues:
            info = self._config.get_league(code)
            leagues.append(info if info is not None else LeagueInfo(code=code, name=code, country=""))
        return leagues

    def matchday_floor(self, league_code: str) -> int:
        return self._config.matchday_floor(league_code)

    def is_supported(self, league_code: str) -> bool:
        return league_code in self._leagues

    async def aclose(self) -> None:
        """关闭上游连接和缓存连接（应用关闭时调用）"""
        await self._client.aclose()
        await self._cache.close()


def create_league_data_manager(settings: Settings) -> LeagueDataManager:
    """根据配置创建联赛数据管理器（上游客户端 + 缓存存储）"""
    source = settings.service.data_source.football_data_org
    client = FootballDataClient(
        api_key=settings.api_key,
        base_url=source.base_url,
        timeout=source.timeout_seconds,
        enabled=source.enabled,
    )
    cache = create_cache_store(settings.service.cache)
    return LeagueDataManager(
        cache,
        client,
        ttl_seconds=settings.service.cache.league_ttl_seconds,
        team_display_names=settings.service.team_display_names,
    )
