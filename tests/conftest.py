"""
Pytest 配置文件

提供测试固件和通用配置：
1. 可控时钟 + 内存缓存
2. football-data.org 示例数据（积分榜 / 赛程）
3. Mock 上游客户端与 LeagueDataManager
4. HTTP 客户端固件
"""
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# 设置测试环境
os.environ.setdefault("PREDICTOR_ENVIRONMENT", "test")
os.environ.setdefault("PREDICTOR_FOOTBALL_DATA_API_KEY", "test-key")

from src.data_pipeline.football_data_client import FootballDataClient
from src.data_pipeline.schemas import ExternalApiResponse, ExternalStandingsResponse
from src.infra.cache.backends import MemoryCacheBackend
from src.infra.cache.cache_store import CacheStore
from src.services.league_data_manager import LeagueDataManager

# 固定的"当前时间"，所有比赛时间都相对它生成
NOW = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)

ARSENAL, CHELSEA, LIVERPOOL, MAN_UNITED = 57, 61, 64, 66

TEAM_NAMES = {
    ARSENAL: ("Arsenal FC", "Arsenal", "ARS"),
    CHELSEA: ("Chelsea FC", "Chelsea", "CHE"),
    LIVERPOOL: ("Liverpool FC", "Liverpool", "LIV"),
    MAN_UNITED: ("Manchester United FC", "Man United", "MUN"),
}


class FakeClock:
    """可手动推进的时钟（epoch 秒）"""

    def __init__(self, start: float = 1_759_320_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============ 缓存相关 ============

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_backend() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest.fixture
def cache_store(memory_backend, clock) -> CacheStore:
    return CacheStore(memory_backend, namespace="football:", clock=clock)


# ============ 测试数据 ============

@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_team() -> Callable[..., dict]:
    """示例球队数据"""
    def _make(team_id: int, name: Optional[str] = None) -> dict:
        full_name, short_name, tla = TEAM_NAMES.get(team_id, (f"Team {team_id}", f"T{team_id}", f"T{team_id}"))
        return {
            "id": team_id,
            "name": name or full_name,
            "shortName": short_name,
            "tla": tla,
        }
    return _make


@pytest.fixture
def make_row(make_team) -> Callable[..., dict]:
    """示例积分榜行（积分和净胜球由胜平负和进失球推出）"""
    def _make(
        team_id: int,
        position: int = 1,
        won: int = 0,
        draw: int = 0,
        lost: int = 0,
        goals_for: int = 0,
        goals_against: int = 0,
        name: Optional[str] = None,
    ) -> dict:
        return {
            "position": position,
            "team": make_team(team_id, name),
            "playedGames": won + draw + lost,
            "won": won,
            "draw": draw,
            "lost": lost,
            "goalsFor": goals_for,
            "goalsAgainst": goals_against,
            "goalDifference": goals_for - goals_against,
            "points": won * 3 + draw,
        }
    return _make


@pytest.fixture
def make_match(make_team) -> Callable[..., dict]:
    """示例比赛数据"""
    def _make(
        match_id: int,
        home_id: int,
        away_id: int,
        matchday: Optional[int] = 1,
        status: str = "SCHEDULED",
        kickoff: Optional[datetime] = None,
        home_goals: Optional[int] = None,
        away_goals: Optional[int] = None,
    ) -> dict:
        kickoff = kickoff or NOW + timedelta(days=1)
        return {
            "id": match_id,
            "utcDate": kickoff.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "status": status,
            "matchday": matchday,
            "stage": "REGULAR_SEASON",
            "group": None,
            "homeTeam": make_team(home_id),
            "awayTeam": make_team(away_id),
            "score": {
                "winner": None,
                "duration": "REGULAR",
                "fullTime": {"home": home_goals, "away": away_goals},
            },
        }
    return _make


@pytest.fixture
def standings_payload(make_row) -> dict:
    """
    两轮过后的积分榜（与 matches_payload 中已完赛比赛一致）

    第1轮: Arsenal 3-1 Chelsea, Liverpool 2-1 Man United
    第2轮: Arsenal 2-0 Man United, Chelsea 1-1 Liverpool
    """
    return {
        "competition": {"code": "PL", "name": "Premier League"},
        "standings": [
            {
                "stage": "REGULAR_SEASON",
                "type": "TOTAL",
                "group": None,
                "table": [
                    make_row(ARSENAL, 1, won=2, goals_for=5, goals_against=1),
                    make_row(LIVERPOOL, 2, won=1, draw=1, goals_for=3, goals_against=2),
                    make_row(CHELSEA, 3, draw=1, lost=1, goals_for=2, goals_against=4),
                    make_row(MAN_UNITED, 4, lost=2, goals_for=1, goals_against=4),
                ],
            },
            {
                "stage": "REGULAR_SEASON",
                "type": "HOME",
                "group": None,
                "table": [],
            },
        ],
    }


@pytest.fixture
def matches_payload(make_match) -> dict:
    """两轮已完赛 + 两轮未开赛"""
    past = NOW - timedelta(days=14)
    return {
        "matches": [
            make_match(1001, ARSENAL, CHELSEA, 1, "FINISHED", past, 3, 1),
            make_match(1002, LIVERPOOL, MAN_UNITED, 1, "FINISHED", past, 2, 1),
            make_match(1003, ARSENAL, MAN_UNITED, 2, "FINISHED", past + timedelta(days=7), 2, 0),
            make_match(1004, CHELSEA, LIVERPOOL, 2, "FINISHED", past + timedelta(days=7), 1, 1),
            make_match(1005, ARSENAL, LIVERPOOL, 3, "TIMED", NOW + timedelta(days=2)),
            make_match(1006, CHELSEA, MAN_UNITED, 3, "SCHEDULED", NOW + timedelta(days=2)),
            make_match(1007, LIVERPOOL, CHELSEA, 4, "SCHEDULED", NOW + timedelta(days=9)),
            make_match(1008, MAN_UNITED, ARSENAL, 4, "SCHEDULED", NOW + timedelta(days=9)),
        ]
    }


# ============ 上游客户端 / 数据管理器 ============

@pytest.fixture
def upstream_client(standings_payload, matches_payload) -> MagicMock:
    """
    Mock 上游客户端

    避免测试时调用真实 football-data.org API
    """
    client = MagicMock(spec=FootballDataClient)
    client.get_standings = AsyncMock(return_value=ExternalStandingsResponse(**standings_payload))
    client.get_matches = AsyncMock(return_value=ExternalApiResponse(**matches_payload))
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def manager(cache_store, upstream_client) -> LeagueDataManager:
    return LeagueDataManager(cache_store, upstream_client, now=lambda: NOW)


# ============ HTTP 客户端 ============

@pytest_asyncio.fixture
async def client(manager) -> AsyncGenerator:
    """
    FastAPI 测试客户端

    使用 httpx.AsyncClient 进行 API 测试，LeagueDataManager 替换为测试实例
    """
    from httpx import ASGITransport, AsyncClient
    from src.services.api.dependencies import get_league_data_manager
    from src.services.api.main import app

    app.dependency_overrides[get_league_data_manager] = lambda: manager
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
