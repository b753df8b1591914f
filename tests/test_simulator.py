"""
Outcome simulator: probability estimate and score generation.

Uses a scripted RNG where exact draws matter and a seeded one for
reproducibility checks.
"""

import pytest

from fifarank.ranking.simulator import (
    MAX_DRAW_GOALS,
    MAX_GOALS,
    MatchProbability,
    Outcome,
    OutcomeSimulator,
    SideProfile,
    estimate_probability,
)


class ScriptedRandom:
    """Stand-in for random.Random returning queued values."""

    def __init__(self, floats=(), ints=()):
        self._floats = list(floats)
        self._ints = list(ints)
        self.randint_calls = []

    def random(self):
        return self._floats.pop(0)

    def randint(self, a, b):
        self.randint_calls.append((a, b))
        return self._ints.pop(0)


class TestEstimateProbability:
    """Weighted strength signals -> clamped home/draw/away."""

    def test_equal_sides_at_home(self):
        side = SideProfile(points=1500, win_percentage=50, confederation_rank=5)
        p = estimate_probability(side, side, is_neutral_venue=False)
        # 0.4*0.5 + 0.15*0.65 + 0.25*0.5 + 0.1*0.5 + 0.1*0.5
        assert p.home == pytest.approx(0.5225)
        assert p.draw == pytest.approx(0.25 + 0.05 * (1 - 2 * 0.0225))
        assert p.away == pytest.approx(1 - 0.5225 - p.draw)

    def test_equal_sides_on_neutral_ground(self):
        side = SideProfile(points=1500, win_percentage=50, confederation_rank=5)
        p = estimate_probability(side, side, is_neutral_venue=True)
        assert p.home == pytest.approx(0.5)
        assert p.draw == pytest.approx(0.30)
        assert p.away == pytest.approx(0.20)

    def test_missing_form_defaults_to_fifty_percent(self):
        explicit = estimate_probability(
            SideProfile(points=1600, win_percentage=50), SideProfile(points=1400, win_percentage=50)
        )
        defaulted = estimate_probability(SideProfile(points=1600), SideProfile(points=1400))
        assert defaulted == explicit

    def test_recorded_zero_win_percentage_is_not_defaulted(self):
        """A team that has results but no wins keeps its 0%; only a missing record means 50%."""
        winless = SideProfile(points=1500, win_percentage=0.0, confederation_rank=5)
        unknown = SideProfile(points=1500, confederation_rank=5)
        average = SideProfile(points=1500, win_percentage=50, confederation_rank=5)

        p_winless = estimate_probability(winless, average, is_neutral_venue=True)
        p_unknown = estimate_probability(unknown, average, is_neutral_venue=True)

        # 0.4*0.5 + 0.15*0.5 + 0.25*0.0 + 0.1*0.5 + 0.1*0.5
        assert p_winless.home == pytest.approx(0.375)
        assert p_unknown.home == pytest.approx(0.5)

    def test_both_winless_split_form_evenly(self):
        winless = SideProfile(points=1500, win_percentage=0.0, confederation_rank=5)
        assert estimate_probability(winless, winless, is_neutral_venue=True).home == pytest.approx(0.5)

    def test_zero_points_on_both_sides_is_even(self):
        p = estimate_probability(SideProfile(points=0), SideProfile(points=0), is_neutral_venue=True)
        assert p.home == pytest.approx(0.5)

    def test_probabilities_are_clamped_not_renormalised(self):
        """A lopsided match pushes away below zero; it is clamped and the sum exceeds 1."""
        strong = SideProfile(points=1800, win_percentage=100, confederation_rank=1)
        weak = SideProfile(points=0, win_percentage=0, confederation_rank=50)
        p = estimate_probability(strong, weak, is_neutral_venue=False)
        assert p.away == 0.0
        assert 0.0 <= p.home <= 1.0
        assert p.home + p.draw + p.away > 1.0

    def test_stronger_side_is_favoured(self):
        p = estimate_probability(
            SideProfile(points=1800, win_percentage=80, confederation_rank=1),
            SideProfile(points=1200, win_percentage=20, confederation_rank=30),
            is_neutral_venue=True,
        )
        assert p.home > p.away


class TestDrawOutcome:
    PROBABILITY = MatchProbability(home=0.5, draw=0.3, away=0.2)

    @pytest.mark.parametrize("roll,expected", [
        (0.0, Outcome.HOME_WIN),
        (0.49, Outcome.HOME_WIN),
        (0.5, Outcome.DRAW),
        (0.79, Outcome.DRAW),
        (0.8, Outcome.AWAY_WIN),
        (0.99, Outcome.AWAY_WIN),
    ])
    def test_roll_bands(self, roll, expected):
        simulator = OutcomeSimulator(ScriptedRandom(floats=[roll]))
        assert simulator.draw_outcome(self.PROBABILITY) is expected


class TestGenerateGoals:
    def test_first_draw_below_threshold_scores_nothing(self):
        simulator = OutcomeSimulator(ScriptedRandom(floats=[0.0]))
        assert simulator.generate_goals(0.5, is_winner=True) == 0

    def test_goals_capped_at_five(self):
        simulator = OutcomeSimulator(ScriptedRandom(floats=[0.9999] * 6))
        assert simulator.generate_goals(1.0, is_winner=True) == MAX_GOALS

    def test_seeded_goals_stay_in_range(self):
        simulator = OutcomeSimulator.seeded(123)
        for _ in range(500):
            assert 0 <= simulator.generate_goals(0.9, is_winner=True) <= MAX_GOALS


class TestSimulateScore:
    def test_winner_correction_forces_home_win(self):
        """Both sides draw zero goals; the home winner gets 1-2 extra goals."""
        rng = ScriptedRandom(floats=[0.1, 0.0, 0.0], ints=[2])
        score = OutcomeSimulator(rng).simulate_score(MatchProbability(0.5, 0.3, 0.2))
        assert score.outcome is Outcome.HOME_WIN
        assert (score.score_home, score.score_away) == (2, 0)
        assert rng.randint_calls == [(1, 2)]

    def test_winner_correction_forces_away_win(self):
        rng = ScriptedRandom(floats=[0.95, 0.0, 0.0], ints=[1])
        score = OutcomeSimulator(rng).simulate_score(MatchProbability(0.5, 0.3, 0.2))
        assert score.outcome is Outcome.AWAY_WIN
        assert (score.score_home, score.score_away) == (0, 1)

    def test_draw_is_level_between_zero_and_three(self):
        rng = ScriptedRandom(floats=[0.6], ints=[3])
        score = OutcomeSimulator(rng).simulate_score(MatchProbability(0.5, 0.3, 0.2))
        assert score.outcome is Outcome.DRAW
        assert score.score_home == score.score_away == 3
        assert rng.randint_calls == [(0, MAX_DRAW_GOALS)]

    def test_score_always_matches_outcome(self):
        simulator = OutcomeSimulator.seeded(2024)
        home = SideProfile(points=1550, win_percentage=60, confederation_rank=4)
        away = SideProfile(points=1490, win_percentage=40, confederation_rank=9)
        for _ in range(300):
            score = simulator.simulate(home, away)
            if score.outcome is Outcome.HOME_WIN:
                assert score.score_home > score.score_away
            elif score.outcome is Outcome.AWAY_WIN:
                assert score.score_away > score.score_home
            else:
                assert score.score_home == score.score_away

    def test_same_seed_same_scores(self):
        home = SideProfile(points=1600)
        away = SideProfile(points=1500)
        first = OutcomeSimulator.seeded(42)
        second = OutcomeSimulator.seeded(42)
        for _ in range(20):
            a = first.simulate(home, away)
            b = second.simulate(home, away)
            assert (a.score_home, a.score_away) == (b.score_home, b.score_away)
