"""缓存管理 API：手动刷新与状态查询。"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from src.services.api.dependencies import get_league_data_manager
from src.services.api.errors import to_http_exception
from src.services.api.schemas.football import CacheStatusResponse, RefreshResponse
from src.services.league_data_manager import LeagueDataManager
from src.shared.exceptions import FootballDataError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/cache", tags=["Cache"])


@router.post("/refresh/{league}", response_model=RefreshResponse)
async def refresh_league(
    league: str,
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> RefreshResponse:
    """失效并立即重新拉取某联赛数据"""
    if not manager.is_supported(league):
        raise HTTPException(status_code=404, detail=f"Unknown league code: {league}")

    logger.info(f"Manual cache refresh requested for {league}")
    try:
        snapshot = await manager.refresh_league_data(league)
    except FootballDataError as e:
        logger.error(f"Cache refresh failed for {league}: {e}")
        raise to_http_exception(e, league)

    return RefreshResponse(
        success=True,
        message=f"Refreshed {league} data",
        league=league,
        timestamp=datetime.now(timezone.utc),
        current_matchday=snapshot.current_matchday,
    )


@router.get("/status", response_model=CacheStatusResponse)
async def cache_status(
    manager: LeagueDataManager = Depends(get_league_data_manager),
) -> CacheStatusResponse:
    """缓存键列表（仅用于监控）"""
    stats = await manager.get_cache_stats()
    return CacheStatusResponse(
        cache=stats,
        timestamp=datetime.now(timezone.utc),
        status="healthy",
    )
