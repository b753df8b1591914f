"""
Match result processing and ranking engine.

Usage:
    from fifarank.ranking import ResultProcessor, OutcomeSimulator

    processor = ResultProcessor(AsyncSessionLocal, simulator=OutcomeSimulator.seeded(42))
    finished = await processor.simulate_match(match_id)
"""

from fifarank.ranking.form import FORM_CAPACITY, FormRecord, FormTracker
from fifarank.ranking.points import (
    MatchResult,
    PointsDelta,
    classify_result,
    confederation_factor,
    opponent_strength,
    points_after_match,
    points_gained,
)
from fifarank.ranking.processor import (
    FinishedMatch,
    ProcessingState,
    ResultProcessor,
    SideOutcome,
    refresh_rankings,
)
from fifarank.ranking.recompute import RankAssignment, TeamRating, recompute_ranks
from fifarank.ranking.repository import RankingRepository, SqlRankingRepository
from fifarank.ranking.simulator import (
    MatchProbability,
    Outcome,
    OutcomeSimulator,
    SideProfile,
    SimulatedScore,
    estimate_probability,
)
from fifarank.ranking.standings import StandingsDelta

__all__ = [
    "FORM_CAPACITY",
    "FormRecord",
    "FormTracker",
    "MatchResult",
    "PointsDelta",
    "classify_result",
    "confederation_factor",
    "opponent_strength",
    "points_after_match",
    "points_gained",
    "FinishedMatch",
    "ProcessingState",
    "ResultProcessor",
    "SideOutcome",
    "refresh_rankings",
    "RankAssignment",
    "TeamRating",
    "recompute_ranks",
    "RankingRepository",
    "SqlRankingRepository",
    "MatchProbability",
    "Outcome",
    "OutcomeSimulator",
    "SideProfile",
    "SimulatedScore",
    "estimate_probability",
    "StandingsDelta",
]
