"""FIFA-style points formula.

points = base(result) * importance * opponent_strength * confederation_factor,
rounded half-up to 2 decimals. Pure functions, no I/O.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Union

from fifarank.errors import InvalidResultError

# Importance presets by match type
MATCH_IMPORTANCE = {
    "friendly": 1.0,
    "qualification": 2.5,
    "continental": 3.0,
    "world_cup": 4.0,
}

MIN_IMPORTANCE = 1.0
MAX_IMPORTANCE = 4.0

MIN_OPPONENT_STRENGTH = 0.5
MAX_OPPONENT_STRENGTH = 2.0

SAME_CONFEDERATION_FACTOR = 1.0
CROSS_CONFEDERATION_FACTOR = 1.05

_CENT = Decimal("0.01")


class MatchResult(str, Enum):
    """Outcome of a match from one side's perspective."""

    WIN = "win"
    DRAW = "draw"
    LOSS = "loss"

    @property
    def base_points(self) -> int:
        return _BASE_POINTS[self]

    @property
    def symbol(self) -> str:
        """Single-letter form symbol (W/D/L)."""
        return _SYMBOLS[self]

    @property
    def standings_points(self) -> int:
        """Competition table points (3/1/0)."""
        return _BASE_POINTS[self]

    @classmethod
    def parse(cls, value: Union["MatchResult", str]) -> "MatchResult":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidResultError(value) from None


_BASE_POINTS = {MatchResult.WIN: 3, MatchResult.DRAW: 1, MatchResult.LOSS: 0}
_SYMBOLS = {MatchResult.WIN: "W", MatchResult.DRAW: "D", MatchResult.LOSS: "L"}


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def opponent_strength(rank_a: int, rank_b: int) -> float:
    """(200 - |rank_a - rank_b|) / 100, clamped to [0.5, 2.0]."""
    factor = (200 - abs(rank_a - rank_b)) / 100
    return max(MIN_OPPONENT_STRENGTH, min(MAX_OPPONENT_STRENGTH, factor))


def confederation_factor(confed_a: str, confed_b: str) -> float:
    return SAME_CONFEDERATION_FACTOR if confed_a == confed_b else CROSS_CONFEDERATION_FACTOR


def points_gained(
    result: Union[MatchResult, str],
    importance: float,
    strength: float,
    confed_factor: float,
) -> Decimal:
    """Points earned by one side of a finished match.

    Raises:
        InvalidResultError: result is not win/draw/loss
    """
    outcome = MatchResult.parse(result)
    if outcome.base_points == 0:
        return Decimal("0.00")

    points = (
        Decimal(outcome.base_points)
        * _to_decimal(importance)
        * _to_decimal(strength)
        * _to_decimal(confed_factor)
    )
    return points.quantize(_CENT, rounding=ROUND_HALF_UP)


def classify_result(goals_for: int, goals_against: int) -> MatchResult:
    if goals_for > goals_against:
        return MatchResult.WIN
    if goals_for < goals_against:
        return MatchResult.LOSS
    return MatchResult.DRAW


@dataclass(frozen=True)
class PointsDelta:
    """Per-side results and points of one finished match."""

    home_result: MatchResult
    away_result: MatchResult
    home_points: Decimal
    away_points: Decimal


def points_after_match(
    home_rank: int,
    away_rank: int,
    home_confederation: str,
    away_confederation: str,
    score_home: int,
    score_away: int,
    importance: float,
) -> PointsDelta:
    """Classify both sides and compute each side's points independently."""
    home_result = classify_result(score_home, score_away)
    away_result = classify_result(score_away, score_home)

    confed = confederation_factor(home_confederation, away_confederation)
    home_strength = opponent_strength(home_rank, away_rank)
    away_strength = opponent_strength(away_rank, home_rank)

    return PointsDelta(
        home_result=home_result,
        away_result=away_result,
        home_points=points_gained(home_result, importance, home_strength, confed),
        away_points=points_gained(away_result, importance, away_strength, confed),
    )
