"""Probabilistic match outcome simulator.

Two stages:
1. estimate_probability(): blend five weighted signals into p_home, derive
   p_draw (peaks for even matches) and p_away. Each is clamped to [0, 1]
   independently; the three are NOT renormalised and may not sum to 1.
2. simulate_score(): draw an outcome bucket, generate Poisson-like goal
   counts (capped at 5) and correct them so the score agrees with the bucket.

The RNG is injected so callers (and tests) can pin outcomes.
"""

import logging
import math
import random
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Signal weights (sum to 1.0)
WEIGHT_POINTS = 0.40
WEIGHT_VENUE = 0.15
WEIGHT_FORM = 0.25
WEIGHT_CONFED_RANK = 0.10
WEIGHT_HEAD_TO_HEAD = 0.10

HOME_ADVANTAGE = 0.65
NEUTRAL_VENUE = 0.5
# Head-to-head is not wired to match history yet
HEAD_TO_HEAD_SHARE = 0.5

DEFAULT_WIN_PERCENTAGE = 50.0
DEFAULT_CONFED_RANK = 50

BASE_DRAW = 0.25
DRAW_EVENNESS_BONUS = 0.05

WINNER_STRENGTH = 1.5
LOSER_STRENGTH = 0.8
EXPECTED_GOALS_SCALE = 3
MAX_POISSON_DRAWS = 6
MAX_GOALS = 5
MAX_DRAW_GOALS = 3

Number = Union[int, float, Decimal]


class Outcome(str, Enum):
    HOME_WIN = "home_win"
    DRAW = "draw"
    AWAY_WIN = "away_win"


@dataclass(frozen=True)
class SideProfile:
    """The inputs one side contributes to the probability estimate."""

    points: Number
    win_percentage: Optional[float] = None
    confederation_rank: Optional[int] = None


@dataclass(frozen=True)
class MatchProbability:
    home: float
    draw: float
    away: float

    def as_dict(self) -> dict:
        return {"home": self.home, "draw": self.draw, "away": self.away}


@dataclass(frozen=True)
class SimulatedScore:
    score_home: int
    score_away: int
    outcome: Outcome
    probability: MatchProbability


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _share(numerator: float, total: float) -> float:
    return numerator / total if total > 0 else 0.5


def estimate_probability(
    home: SideProfile,
    away: SideProfile,
    is_neutral_venue: bool = False,
) -> MatchProbability:
    """Estimate home/draw/away probabilities from team strength signals."""
    home_points = float(home.points or 0)
    away_points = float(away.points or 0)
    points_share = _share(home_points, home_points + away_points)

    venue_share = NEUTRAL_VENUE if is_neutral_venue else HOME_ADVANTAGE

    home_form = home.win_percentage if home.win_percentage is not None else DEFAULT_WIN_PERCENTAGE
    away_form = away.win_percentage if away.win_percentage is not None else DEFAULT_WIN_PERCENTAGE
    form_share = _share(home_form, home_form + away_form)

    # Lower numeric rank is stronger, so the share is inverted
    home_confed = home.confederation_rank or DEFAULT_CONFED_RANK
    away_confed = away.confederation_rank or DEFAULT_CONFED_RANK
    confed_share = _share(away_confed, home_confed + away_confed)

    p_home = (
        points_share * WEIGHT_POINTS
        + venue_share * WEIGHT_VENUE
        + form_share * WEIGHT_FORM
        + confed_share * WEIGHT_CONFED_RANK
        + HEAD_TO_HEAD_SHARE * WEIGHT_HEAD_TO_HEAD
    )
    p_draw = BASE_DRAW + DRAW_EVENNESS_BONUS * (1 - 2 * abs(p_home - 0.5))
    p_away = 1 - p_home - p_draw

    return MatchProbability(
        home=_clamp01(p_home),
        draw=_clamp01(p_draw),
        away=_clamp01(p_away),
    )


class OutcomeSimulator:
    """Draws simulated scores from a MatchProbability."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng if rng is not None else random.Random()

    @classmethod
    def seeded(cls, seed: Optional[int]) -> "OutcomeSimulator":
        return cls(random.Random(seed))

    def draw_outcome(self, probability: MatchProbability) -> Outcome:
        roll = self._rng.random()
        if roll < probability.home:
            return Outcome.HOME_WIN
        if roll < probability.home + probability.draw:
            return Outcome.DRAW
        return Outcome.AWAY_WIN

    def generate_goals(self, probability: float, is_winner: bool) -> int:
        """Poisson-like goal count with lambda = strength * 3, capped at 5."""
        strength = probability * (WINNER_STRENGTH if is_winner else LOSER_STRENGTH)
        threshold = math.exp(-strength * EXPECTED_GOALS_SCALE)

        goals = 0
        product = 1.0
        for draw in range(1, MAX_POISSON_DRAWS + 1):
            product *= self._rng.random()
            if product <= threshold:
                break
            goals = draw
        return min(goals, MAX_GOALS)

    def simulate_score(self, probability: MatchProbability) -> SimulatedScore:
        outcome = self.draw_outcome(probability)

        if outcome is Outcome.DRAW:
            goals = self._rng.randint(0, MAX_DRAW_GOALS)
            score_home = score_away = goals
        elif outcome is Outcome.HOME_WIN:
            score_home = self.generate_goals(probability.home, is_winner=True)
            score_away = self.generate_goals(probability.away, is_winner=False)
            if score_home <= score_away:
                score_home = score_away + self._rng.randint(1, 2)
        else:
            score_home = self.generate_goals(probability.home, is_winner=False)
            score_away = self.generate_goals(probability.away, is_winner=True)
            if score_away <= score_home:
                score_away = score_home + self._rng.randint(1, 2)

        logger.debug(
            "[SIMULATOR] p=(%.3f, %.3f, %.3f) outcome=%s score=%d-%d",
            probability.home, probability.draw, probability.away,
            outcome.value, score_home, score_away,
        )
        return SimulatedScore(
            score_home=score_home,
            score_away=score_away,
            outcome=outcome,
            probability=probability,
        )

    def simulate(
        self,
        home: SideProfile,
        away: SideProfile,
        is_neutral_venue: bool = False,
    ) -> SimulatedScore:
        return self.simulate_score(estimate_probability(home, away, is_neutral_venue))
