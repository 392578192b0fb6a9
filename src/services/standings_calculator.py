"""
StandingsCalculator - 积分榜重算

职责：
1. 单场假设结果：应用一场比赛结果后重新排名
2. 历史回放：从全零开始回放所有已完赛比赛后排名
3. 用户预测 -> 比赛结果映射

注意：
- 纯函数，不修改入参
- 两种模式共用同一个排序规则：积分 > 净胜球 > 胜场，稳定排序，名次从 1 开始
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, model_validator

from src.data_pipeline.schemas import ExternalMatch, ExternalStandingRow
from src.services.config import standings_config

logger = logging.getLogger(__name__)


# ==================== 数据类定义 ====================

class PredictionOutcome(str, Enum):
    HOME = "home"
    AWAY = "away"
    DRAW = "draw"
    CUSTOM = "custom"


class Prediction(BaseModel):
    """用户对单场比赛的预测（不持久化）"""
    match_id: int
    outcome: PredictionOutcome
    home_goals: Optional[int] = Field(default=None, ge=0)
    away_goals: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _goals_only_for_custom(self) -> "Prediction":
        if self.outcome != PredictionOutcome.CUSTOM and (
            self.home_goals is not None or self.away_goals is not None
        ):
            raise ValueError("home_goals/away_goals 仅在 outcome=custom 时有效")
        return self


class ResultKind(str, Enum):
    WIN = "win"
    DRAW = "draw"
    LOSS = "loss"


@dataclass(frozen=True)
class MatchResult:
    """一场比赛中某一方的结果"""
    team_id: int
    result: ResultKind
    goals_for: int = 0
    goals_against: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against


# ==================== 排名 ====================

def _sort_key(row: ExternalStandingRow) -> Tuple[int, int, int]:
    return (-row.points, -row.goalDifference, -row.won)


def rank_standings(rows: Iterable[ExternalStandingRow]) -> List[ExternalStandingRow]:
    """
    按 积分 > 净胜球 > 胜场 降序稳定排序，并重新分配名次

    完全相同的记录保持原有相对顺序。
    """
    ordered = sorted(rows, key=_sort_key)
    return [row.model_copy(update={"position": index}) for index, row in enumerate(ordered, start=1)]


# ==================== 预测映射 ====================

def results_from_score(
    home_team_id: int,
    away_team_id: int,
    home_goals: int,
    away_goals: int,
) -> Tuple[MatchResult, MatchResult]:
    """真实比分 -> 双方结果"""
    if home_goals > away_goals:
        home_kind, away_kind = ResultKind.WIN, ResultKind.LOSS
    elif home_goals < away_goals:
        home_kind, away_kind = ResultKind.LOSS, ResultKind.WIN
    else:
        home_kind = away_kind = ResultKind.DRAW
    return (
        MatchResult(home_team_id, home_kind, goals_for=home_goals, goals_against=away_goals),
        MatchResult(away_team_id, away_kind, goals_for=away_goals, goals_against=home_goals),
    )


def prediction_to_results(
    prediction: Prediction,
    home_team_id: int,
    away_team_id: int,
) -> Tuple[MatchResult, MatchResult]:
    """
    用户预测 -> 双方结果

    - home/away：胜方按约定净胜球（默认 3:0）记账，不代表真实比分
    - draw：0:0
    - custom：使用给定比分；比分缺失按平局处理
    """
    margin = standings_config.PREDICTED_WIN_MARGIN

    if prediction.outcome == PredictionOutcome.HOME:
        return results_from_score(home_team_id, away_team_id, margin, 0)
    if prediction.outcome == PredictionOutcome.AWAY:
        return results_from_score(home_team_id, away_team_id, 0, margin)
    if (
        prediction.outcome == PredictionOutcome.CUSTOM
        and prediction.home_goals is not None
        and prediction.away_goals is not None
    ):
        return results_from_score(home_team_id, away_team_id, prediction.home_goals, prediction.away_goals)
    return results_from_score(home_team_id, away_team_id, 0, 0)


# ==================== 记账 ====================

def _points_for(result: ResultKind) -> int:
    if result == ResultKind.WIN:
        return standings_config.POINTS_PER_WIN
    if result == ResultKind.DRAW:
        return standings_config.POINTS_PER_DRAW
    return standings_config.POINTS_PER_LOSS


def _accumulate(row: ExternalStandingRow, result: MatchResult) -> ExternalStandingRow:
    return row.model_copy(update={
        "playedGames": row.playedGames + 1,
        "won": row.won + (1 if result.result == ResultKind.WIN else 0),
        "draw": row.draw + (1 if result.result == ResultKind.DRAW else 0),
        "lost": row.lost + (1 if result.result == ResultKind.LOSS else 0),
        "goalsFor": row.goalsFor + result.goals_for,
        "goalsAgainst": row.goalsAgainst + result.goals_against,
        "goalDifference": row.goalDifference + result.goal_difference,
        "points": row.points + _points_for(result.result),
    })


def _apply_unranked(
    rows: List[ExternalStandingRow],
    index_by_team: Dict[int, int],
    home_result: MatchResult,
    away_result: MatchResult,
) -> None:
    for result in (home_result, away_result):
        index = index_by_team.get(result.team_id)
        if index is None:
            logger.warning(f"Team {result.team_id} not found in standings, result skipped")
            continue
        rows[index] = _accumulate(rows[index], result)


def _index_by_team(rows: Sequence[ExternalStandingRow]) -> Dict[int, int]:
    return {row.team.id: index for index, row in enumerate(rows)}


def apply_result(
    standings: Sequence[ExternalStandingRow],
    home_result: MatchResult,
    away_result: MatchResult,
) -> List[ExternalStandingRow]:
    """应用一场假设结果并重新排名"""
    rows = list(standings)
    _apply_unranked(rows, _index_by_team(rows), home_result, away_result)
    return rank_standings(rows)


def apply_predictions(
    standings: Sequence[ExternalStandingRow],
    matches: Iterable[ExternalMatch],
    predictions: Iterable[Prediction],
) -> List[ExternalStandingRow]:
    """
    应用一轮预测

    按 match_id 对应比赛；没有预测的比赛跳过，找不到比赛的预测忽略。
    """
    by_match_id = {p.match_id: p for p in predictions}
    rows = list(standings)
    index_by_team = _index_by_team(rows)
    applied = 0

    for match in matches:
        prediction = by_match_id.pop(match.id, None)
        if prediction is None:
            continue
        home_result, away_result = prediction_to_results(prediction, match.homeTeam.id, match.awayTeam.id)
        _apply_unranked(rows, index_by_team, home_result, away_result)
        applied += 1

    if by_match_id:
        logger.warning(f"Ignored predictions for unknown matches: {sorted(by_match_id)}")

    logger.info(f"Applied {applied} predictions to standings of {len(rows)} teams")
    return rank_standings(rows)


def reset_standings(base_standings: Iterable[ExternalStandingRow]) -> List[ExternalStandingRow]:
    """所有球队清零（保留球队身份）"""
    return [
        ExternalStandingRow(position=0, team=row.team)
        for row in base_standings
    ]


def recompute_from_matches(
    base_standings: Iterable[ExternalStandingRow],
    matches: Iterable[ExternalMatch],
) -> List[ExternalStandingRow]:
    """
    从全零开始回放所有已完赛比赛

    每场比赛只影响两支球队，回放顺序不影响结果；
    总是先清零，所以重复调用不会重复累计。
    """
    rows = reset_standings(base_standings)
    index_by_team = _index_by_team(rows)
    replayed = 0

    for match in matches:
        if match.status not in standings_config.FINISHED_STATUSES:
            continue
        score = match.full_time_score
        if score is None:
            continue
        home_result, away_result = results_from_score(match.homeTeam.id, match.awayTeam.id, *score)
        _apply_unranked(rows, index_by_team, home_result, away_result)
        replayed += 1

    logger.info(f"Replayed {replayed} finished matches for {len(rows)} teams")
    return rank_standings(rows)
