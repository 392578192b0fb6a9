"""FastAPI 依赖注入：管理服务实例的生命周期。"""
from __future__ import annotations

from functools import lru_cache

from src.services.league_data_manager import LeagueDataManager, create_league_data_manager
from src.shared.config import get_settings


@lru_cache(maxsize=1)
def get_league_data_manager() -> LeagueDataManager:
    """
    获取联赛数据管理器

    进程内共享同一个实例，保证单飞表和缓存连接在所有请求之间共享
    """
    return create_league_data_manager(get_settings())
