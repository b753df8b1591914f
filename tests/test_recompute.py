"""Global rank recomputation and standings deltas."""

from decimal import Decimal
from types import SimpleNamespace

from fifarank.ranking.points import MatchResult
from fifarank.ranking.recompute import TeamRating, changed_assignments, recompute_ranks
from fifarank.ranking.standings import StandingsDelta, apply_delta


def team(team_id, points, confederation="UEFA", **kwargs):
    return TeamRating(id=team_id, points=Decimal(points), confederation=confederation, **kwargs)


class TestRecomputeRanks:
    def test_orders_by_points_descending(self):
        ranks = recompute_ranks([team(1, "1400"), team(2, "1600"), team(3, "1500")])
        assert [(a.team_id, a.world_rank) for a in ranks] == [(2, 1), (3, 2), (1, 3)]

    def test_ties_broken_by_id_and_stay_dense(self):
        """Equal points never produce duplicate or skipped ranks."""
        ranks = recompute_ranks([team(9, "1500"), team(4, "1500"), team(6, "1500"), team(1, "1200")])
        assert [a.team_id for a in ranks] == [4, 6, 9, 1]
        assert [a.world_rank for a in ranks] == [1, 2, 3, 4]

    def test_confederation_ranks_are_dense_per_confederation(self):
        ranks = recompute_ranks([
            team(1, "1800", "CONMEBOL"),
            team(2, "1750", "UEFA"),
            team(3, "1700", "CONMEBOL"),
            team(4, "1650", "CAF"),
            team(5, "1600", "UEFA"),
        ])
        by_id = {a.team_id: a.confederation_rank for a in ranks}
        assert by_id == {1: 1, 2: 1, 3: 2, 4: 1, 5: 2}

    def test_inactive_teams_are_excluded(self):
        ranks = recompute_ranks([team(1, "1900", is_active=False), team(2, "1500"), team(3, "1400")])
        assert [a.team_id for a in ranks] == [2, 3]
        assert [a.world_rank for a in ranks] == [1, 2]

    def test_empty(self):
        assert recompute_ranks([]) == []

    def test_changed_assignments(self):
        teams = [
            team(1, "1600", world_rank=2, confederation_rank=2),
            team(2, "1500", world_rank=1, confederation_rank=1),
            team(3, "1400", world_rank=3, confederation_rank=3),
        ]
        moved = changed_assignments(teams, recompute_ranks(teams))
        assert sorted(a.team_id for a in moved) == [1, 2]


class TestStandingsDelta:
    def test_for_win(self):
        delta = StandingsDelta.for_result(MatchResult.WIN, 3, 1)
        assert (delta.played, delta.won, delta.drawn, delta.lost, delta.points) == (1, 1, 0, 0, 3)

    def test_apply_recomputes_goal_difference(self):
        row = SimpleNamespace(
            played=2, won=1, drawn=1, lost=0, goals_for=4, goals_against=2,
            goal_difference=99, points=4,
        )
        apply_delta(row, StandingsDelta.for_result(MatchResult.LOSS, 0, 3))
        assert (row.played, row.lost, row.points) == (3, 1, 4)
        assert row.goal_difference == row.goals_for - row.goals_against == -1
