"""联赛数据 / 积分榜模拟 API 的路由定义。"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.services.api.dependencies import get_league_data_manager
from src.services.api.errors import to_http_exception
from src.services.api.schemas.football import (
    AllLeaguesResponse,
    LeagueDataResponse,
    LeagueInfoResponse,
    MatchdayResponse,
    MatchesResponse,
    SimulationRequest,
    SimulationResponse,
    StandingsResponse,
)
from src.services.league_data_manager import LeagueDataManager
from src.services.standings_calculator import apply_predictions, recompute_from_matches
from src.shared.exceptions import FootballDataError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/football", tags=["Football"])


def _ensure_supported(league_code: str, manager: LeagueDataManager) -> None:
    if not manager.is_supported(league_code):
        raise HTTPException(status_code=404, detail=f"Unknown league code: {league_code}")


@router.get("/leagues", response_model=List[LeagueInfoResponse])
async def list_leagues(
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> List[LeagueInfoResponse]:
    """列出支持的联赛"""
    return [
        LeagueInfoResponse(
            code=league.code,
            name=league.name,
            country=league.country,
            max_matchday=league.max_matchday,
            matchday_floor=manager.matchday_floor(league.code),
        )
        for league in manager.list_leagues()
    ]


@router.get("", response_model=AllLeaguesResponse)
async def get_all_leagues(
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> AllLeaguesResponse:
    """
    并行获取所有联赛数据

    单个联赛失败不会导致整个请求失败，失败的联赛带 error 字段返回。
    """
    entries = await manager.get_all_leagues_data()
    return AllLeaguesResponse(
        leagues=entries,
        failed=[entry.league_code for entry in entries if entry.error],
    )


@router.get("/{league_code}", response_model=LeagueDataResponse)
async def get_league_data(
    league_code: str,
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> LeagueDataResponse:
    """积分榜 + 赛程 + 当前轮次"""
    _ensure_supported(league_code, manager)
    try:
        snapshot = await manager.get_league_data(league_code)
    except FootballDataError as e:
        raise to_http_exception(e, league_code)
    return LeagueDataResponse(
        league_code=snapshot.league_code,
        standings=snapshot.standings,
        matches=snapshot.matches,
        current_matchday=snapshot.current_matchday,
        fetched_at=snapshot.fetched_at,
        source=snapshot.origin,
    )


@router.get("/{league_code}/standings", response_model=StandingsResponse)
async def get_standings(
    league_code: str,
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> StandingsResponse:
    _ensure_supported(league_code, manager)
    try:
        standings = await manager.get_standings(league_code)
    except FootballDataError as e:
        raise to_http_exception(e, league_code)
    return StandingsResponse(league_code=league_code, standings=standings)


@router.get("/{league_code}/matches", response_model=MatchesResponse)
async def get_matches(
    league_code: str,
    matchday: Optional[int] = Query(default=None, ge=1, description="按轮次过滤"),
    upcoming: bool = Query(default=False, description="只返回未开赛比赛"),
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> MatchesResponse:
    _ensure_supported(league_code, manager)
    try:
        if upcoming:
            matches = await manager.get_upcoming_matches(league_code, matchday)
        else:
            matches = await manager.get_matches(league_code, matchday)
    except FootballDataError as e:
        raise to_http_exception(e, league_code)
    return MatchesResponse(league_code=league_code, matchday=matchday, matches=matches)


@router.get("/{league_code}/matchday", response_model=MatchdayResponse)
async def get_current_matchday(
    league_code: str,
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> MatchdayResponse:
    _ensure_supported(league_code, manager)
    try:
        current_matchday = await manager.get_current_matchday(league_code)
    except FootballDataError as e:
        raise to_http_exception(e, league_code)
    return MatchdayResponse(league_code=league_code, current_matchday=current_matchday)


@router.post("/{league_code}/simulate", response_model=SimulationResponse)
async def simulate_standings(
    league_code: str,
    payload: SimulationRequest,
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> SimulationResponse:
    """
    根据用户预测计算预测积分榜（不持久化）

    **使用示例：**
    ```bash
    POST /api/v1/football/PL/simulate
    {
      "predictions": [
        {"match_id": 537785, "outcome": "home"},
        {"match_id": 537786, "outcome": "custom", "home_goals": 2, "away_goals": 2}
      ]
    }
    ```
    """
    _ensure_supported(league_code, manager)
    try:
        snapshot = await manager.get_league_data(league_code)
    except FootballDataError as e:
        raise to_http_exception(e, league_code)

    base = payload.standings if payload.standings is not None else snapshot.standings
    match_ids = {match.id for match in snapshot.matches}
    # 同一场比赛的多条预测只生效最后一条
    predicted_ids = {p.match_id for p in payload.predictions}
    standings = apply_predictions(base, snapshot.matches, payload.predictions)
    return SimulationResponse(
        league_code=league_code,
        standings=standings,
        applied_predictions=len(predicted_ids & match_ids),
    )


@router.get("/{league_code}/recompute", response_model=StandingsResponse)
async def recompute_standings(
    league_code: str,
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> StandingsResponse:
    """用已完赛比赛从零重算积分榜"""
    _ensure_supported(league_code, manager)
    try:
        snapshot = await manager.get_league_data(league_code)
    except FootballDataError as e:
        raise to_http_exception(e, league_code)
    return StandingsResponse(
        league_code=league_code,
        standings=recompute_from_matches(snapshot.standings, snapshot.matches),
    )
