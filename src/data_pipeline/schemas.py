"""定义外部 API (football-data.org) 的数据结构。"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

class ExternalTeam(BaseModel):
    id: int
    name: str
    shortName: Optional[str] = None
    tla: Optional[str] = None # e.g. 'MUN'
    crest: Optional[str] = None

class ExternalScoreFullTime(BaseModel):
    home: Optional[int] = None
    away: Optional[int] = None

class ExternalScore(BaseModel):
    winner: Optional[str] = None
    duration: Optional[str] = None
    fullTime: ExternalScoreFullTime = Field(default_factory=ExternalScoreFullTime)

class ExternalMatch(BaseModel):
    id: int
    utcDate: datetime
    status: str
    matchday: Optional[int] = None
    stage: Optional[str] = None
    group: Optional[str] = None
    homeTeam: ExternalTeam
    awayTeam: ExternalTeam
    score: Optional[ExternalScore] = None

    @property
    def full_time_score(self) -> Optional[tuple]:
        """(home, away)，任一方缺失返回 None"""
        if self.score is None:
            return None
        full_time = self.score.fullTime
        if full_time.home is None or full_time.away is None:
            return None
        return full_time.home, full_time.away

class ExternalStandingRow(BaseModel):
    position: int
    team: ExternalTeam
    playedGames: int = 0
    won: int = 0
    draw: int = 0
    lost: int = 0
    goalsFor: int = 0
    goalsAgainst: int = 0
    goalDifference: int = 0
    points: int = 0

class ExternalStandingGroup(BaseModel):
    stage: Optional[str] = None
    type: Optional[str] = None # TOTAL / HOME / AWAY
    group: Optional[str] = None
    table: List[ExternalStandingRow]

class ExternalStandingsResponse(BaseModel):
    standings: List[ExternalStandingGroup]

class ExternalApiResponse(BaseModel):
    matches: List[ExternalMatch]
