"""
服务层配置

统一管理所有服务层的配置参数，避免硬编码
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional


@dataclass(frozen=True)
class LeagueInfo:
    """联赛元数据"""
    code: str
    name: str
    country: str
    competition_id: Optional[int] = None  # football-data.org competition id
    max_matchday: int = 38


@dataclass
class LeagueDataConfig:
    """联赛数据管理配置"""

    # 缓存键前缀（命名空间由 CacheStore 统一追加）
    CACHE_KEY_PREFIX: str = "league_"

    # 联赛快照缓存时间（秒）
    LEAGUE_TTL_SECONDS: int = 600

    # 视为"未开赛"的比赛状态
    UPCOMING_STATUSES: FrozenSet[str] = frozenset({"SCHEDULED", "TIMED"})

    # 比赛轮次下限策略表：联赛代码 -> 最小"当前轮次"
    # 欧冠联赛阶段前 3 轮已结束，不能再被当作当前轮次
    MATCHDAY_FLOORS: Dict[str, int] = field(default_factory=lambda: {"CL": 4})
    DEFAULT_MATCHDAY_FLOOR: int = 1

    # 支持的联赛（顺序即 get_all_leagues_data 的返回顺序）
    LEAGUES: List[LeagueInfo] = field(default_factory=lambda: [
        LeagueInfo("PL", "Premier League", "England", competition_id=2021, max_matchday=38),
        LeagueInfo("BL1", "Bundesliga", "Germany", competition_id=2002, max_matchday=34),
        LeagueInfo("FL1", "Ligue 1", "France", competition_id=2015, max_matchday=34),
        LeagueInfo("SA", "Serie A", "Italy", competition_id=2019, max_matchday=38),
        LeagueInfo("PD", "LaLiga", "Spain", competition_id=2014, max_matchday=38),
        LeagueInfo("CL", "UEFA Champions League", "Europe", competition_id=2001,
                   max_matchday=8),
    ])

    def matchday_floor(self, league_code: str) -> int:
        return self.MATCHDAY_FLOORS.get(league_code, self.DEFAULT_MATCHDAY_FLOOR)

    def league_codes(self) -> List[str]:
        return [league.code for league in self.LEAGUES]

    def get_league(self, league_code: str) -> Optional[LeagueInfo]:
        for league in self.LEAGUES:
            if league.code == league_code:
                return league
        return None


@dataclass
class StandingsConfig:
    """积分榜计算配置"""

    # 积分计算
    POINTS_PER_WIN: int = 3
    POINTS_PER_DRAW: int = 1
    POINTS_PER_LOSS: int = 0

    # 胜/负预测使用的约定净胜球（非真实比分，仅用于积分榜记账）
    PREDICTED_WIN_MARGIN: int = 3

    # 视为已完赛的比赛状态
    FINISHED_STATUSES: FrozenSet[str] = frozenset({"FINISHED"})


# 全局配置实例
league_data_config = LeagueDataConfig()
standings_config = StandingsConfig()
