"""联赛数据 / 积分榜模拟 API 的 Schema 定义。"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.data_pipeline.schemas import ExternalMatch, ExternalStandingRow
from src.services.league_data_manager import DataOrigin, LeagueBatchEntry
from src.services.standings_calculator import Prediction


class LeagueInfoResponse(BaseModel):
    code: str
    name: str
    country: str
    max_matchday: int
    matchday_floor: int


class LeagueDataResponse(BaseModel):
    """单联赛快照"""
    league_code: str
    standings: List[ExternalStandingRow]
    matches: List[ExternalMatch]
    current_matchday: int
    fetched_at: datetime
    source: DataOrigin


class AllLeaguesResponse(BaseModel):
    leagues: List[LeagueBatchEntry]
    failed: List[str] = Field(default_factory=list)


class StandingsResponse(BaseModel):
    league_code: str
    standings: List[ExternalStandingRow]


class MatchesResponse(BaseModel):
    league_code: str
    matchday: Optional[int] = None
    matches: List[ExternalMatch]


class MatchdayResponse(BaseModel):
    league_code: str
    current_matchday: int


class SimulationRequest(BaseModel):
    """一轮（或多轮）预测；standings 为空时使用当前真实积分榜"""
    predictions: List[Prediction] = Field(default_factory=list)
    standings: Optional[List[ExternalStandingRow]] = Field(
        default=None,
        description="上一轮预测后的积分榜，用于连续模拟多轮",
    )


class SimulationResponse(BaseModel):
    league_code: str
    standings: List[ExternalStandingRow]
    applied_predictions: int


class RefreshResponse(BaseModel):
    success: bool
    message: str
    league: str
    timestamp: datetime
    current_matchday: int


class CacheStatusResponse(BaseModel):
    cache: Dict[str, Any]
    timestamp: datetime
    status: str
