"""Additive competition standings deltas."""

from dataclasses import dataclass

from fifarank.ranking.points import MatchResult


@dataclass(frozen=True)
class StandingsDelta:
    """What one finished match adds to one team's standings row."""

    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    points: int
    played: int = 1

    @classmethod
    def for_result(cls, result: MatchResult, goals_for: int, goals_against: int) -> "StandingsDelta":
        return cls(
            won=1 if result is MatchResult.WIN else 0,
            drawn=1 if result is MatchResult.DRAW else 0,
            lost=1 if result is MatchResult.LOSS else 0,
            goals_for=goals_for,
            goals_against=goals_against,
            points=result.standings_points,
        )


def apply_delta(row, delta: StandingsDelta) -> None:
    """Add delta to a standings row in place.

    goal_difference is recomputed from the totals, never accumulated.
    """
    row.played += delta.played
    row.won += delta.won
    row.drawn += delta.drawn
    row.lost += delta.lost
    row.goals_for += delta.goals_for
    row.goals_against += delta.goals_against
    row.goal_difference = row.goals_for - row.goals_against
    row.points += delta.points
