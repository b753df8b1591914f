"""Match result processing: the pipeline that finalizes a match.

State machine per match:

    pending -> simulating | scoring -> finalizing -> finished

Steps 1-3 (resolve teams, obtain scores, classify) run outside the critical
section. Everything from the point delta to the status flip runs in ONE
transaction while holding the ranking lock, because the rank recompute
rewrites every active team's rank: two interleaved finalizations would
otherwise corrupt the dense ordering. The match status is re-checked inside
the lock so racing finalizations of the same match yield exactly one
success; the loser gets MatchAlreadyFinishedError. Any failure rolls the
whole transaction back and the match stays retryable.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional, Tuple

from fifarank.errors import FifaRankError, MatchAlreadyFinishedError, NotFoundError, ValidationError
from fifarank.models import Match, MatchStatus
from fifarank.ranking.form import FormRecord, FormTracker
from fifarank.ranking.points import MatchResult, points_after_match
from fifarank.ranking.recompute import RankAssignment, TeamRating, changed_assignments, recompute_ranks
from fifarank.ranking.repository import Penalties, RankingRepository, SqlRankingRepository
from fifarank.ranking.simulator import MatchProbability, OutcomeSimulator, SideProfile
from fifarank.ranking.standings import StandingsDelta
from fifarank.telemetry.metrics import (
    observe_ranking_recompute,
    record_result_processed,
    record_result_rejected,
)

logger = logging.getLogger("fifarank.results")

OPEN_STATUSES = (MatchStatus.SCHEDULED.value, MatchStatus.LIVE.value)


class ProcessingState(str, Enum):
    PENDING = "pending"
    SIMULATING = "simulating"
    SCORING = "scoring"
    FINALIZING = "finalizing"
    FINISHED = "finished"


_TRANSITIONS = {
    ProcessingState.PENDING: {ProcessingState.SIMULATING, ProcessingState.SCORING},
    ProcessingState.SIMULATING: {ProcessingState.FINALIZING},
    ProcessingState.SCORING: {ProcessingState.FINALIZING},
    ProcessingState.FINALIZING: {ProcessingState.FINISHED},
    ProcessingState.FINISHED: set(),
}


class ResultRun:
    """Tracks one match through the processing states."""

    def __init__(self, match_id: int):
        self.match_id = match_id
        self.state = ProcessingState.PENDING
        self.history: List[ProcessingState] = [ProcessingState.PENDING]

    def advance(self, new_state: ProcessingState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"illegal transition {self.state.value} -> {new_state.value} "
                f"for match {self.match_id}"
            )
        logger.debug("[RESULT] match=%s %s -> %s", self.match_id, self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)


@dataclass(frozen=True)
class SideOutcome:
    team_id: int
    result: MatchResult
    points_gained: Decimal
    points_total: Decimal
    world_rank: Optional[int]
    confederation_rank: Optional[int]
    form: str


@dataclass(frozen=True)
class FinishedMatch:
    match_id: int
    competition_id: Optional[int]
    score_home: int
    score_away: int
    penalties_home: Optional[int]
    penalties_away: Optional[int]
    importance: float
    simulated: bool
    home: SideOutcome
    away: SideOutcome
    probability: Optional[MatchProbability] = None
    states: Tuple[ProcessingState, ...] = ()


async def refresh_rankings(
    repository: RankingRepository, match_id: Optional[int] = None
) -> List[RankAssignment]:
    """Recompute every active team's ranks, persist them and snapshot history.

    Must run inside a ranking transaction.
    """
    started = time.perf_counter()
    teams = await repository.list_active_teams()
    assignments = recompute_ranks(teams)
    await repository.write_ranks(assignments)
    await repository.append_ranking_snapshots(assignments, match_id=match_id)
    elapsed = time.perf_counter() - started
    observe_ranking_recompute(elapsed)
    logger.info(
        "[RANKING] Recomputed %d teams (%d moved) in %.1fms",
        len(assignments), len(changed_assignments(teams, assignments)), elapsed * 1000,
    )
    return assignments


def _validate_score(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _validate_penalties(penalties: Penalties) -> Penalties:
    if penalties is None:
        return None
    if len(penalties) != 2:
        raise ValidationError("penalties must give both sides or neither")
    return (
        _validate_score("penalties_home", penalties[0]),
        _validate_score("penalties_away", penalties[1]),
    )


def _rejection_reason(exc: FifaRankError) -> str:
    if isinstance(exc, MatchAlreadyFinishedError):
        return "already_finished"
    if isinstance(exc, NotFoundError):
        return "not_found"
    return "invalid"


def _ensure_open(match: Match) -> None:
    if match.status == MatchStatus.FINISHED.value:
        raise MatchAlreadyFinishedError(match.id)
    if match.status not in OPEN_STATUSES:
        raise ValidationError(f"Match {match.id} has unknown status {match.status!r}")


class ResultProcessor:
    """Finalizes matches (simulated or manual) as one atomic unit of work."""

    def __init__(
        self,
        session_factory: Callable,
        simulator: Optional[OutcomeSimulator] = None,
        lock: Optional[asyncio.Lock] = None,
        lock_key: Optional[int] = None,
        repository_factory: Callable = SqlRankingRepository,
    ):
        self._session_factory = session_factory
        self._simulator = simulator if simulator is not None else OutcomeSimulator()
        self._lock = lock if lock is not None else asyncio.Lock()
        self._lock_key = lock_key
        self._repository_factory = repository_factory

    @asynccontextmanager
    async def ranking_transaction(self) -> AsyncIterator[RankingRepository]:
        """Critical section for anything that rewrites points or ranks.

        Commits on clean exit, rolls back on any exception.
        """
        async with self._lock:
            async with self._session_factory() as session:
                async with session.begin():
                    repository = self._repository_factory(session, lock_key=self._lock_key)
                    await repository.acquire_ranking_lock()
                    yield repository

    async def simulate_match(self, match_id: int) -> FinishedMatch:
        run = ResultRun(match_id)
        try:
            match, home, away, home_form, away_form = await self._resolve(match_id)

            run.advance(ProcessingState.SIMULATING)
            simulated = self._simulator.simulate(
                SideProfile(
                    points=home.points,
                    win_percentage=home_form.win_percentage if home_form else None,
                    confederation_rank=home.confederation_rank,
                ),
                SideProfile(
                    points=away.points,
                    win_percentage=away_form.win_percentage if away_form else None,
                    confederation_rank=away.confederation_rank,
                ),
                is_neutral_venue=match.is_neutral_venue,
            )
            finished = await self._finalize(
                run, simulated.score_home, simulated.score_away,
                penalties=None, simulated=True, probability=simulated.probability,
            )
        except FifaRankError as exc:
            record_result_rejected(_rejection_reason(exc))
            raise
        record_result_processed("simulated")
        return finished

    async def record_match_result(
        self,
        match_id: int,
        score_home: int,
        score_away: int,
        penalties: Penalties = None,
    ) -> FinishedMatch:
        score_home = _validate_score("score_home", score_home)
        score_away = _validate_score("score_away", score_away)
        penalties = _validate_penalties(penalties)

        run = ResultRun(match_id)
        try:
            await self._resolve(match_id)
            run.advance(ProcessingState.SCORING)
            finished = await self._finalize(
                run, score_home, score_away, penalties=penalties, simulated=False,
            )
        except FifaRankError as exc:
            record_result_rejected(_rejection_reason(exc))
            raise
        record_result_processed("manual")
        return finished

    async def _resolve(
        self, match_id: int
    ) -> Tuple[Match, TeamRating, TeamRating, Optional[FormRecord], Optional[FormRecord]]:
        """Validation reads outside the critical section."""
        async with self._session_factory() as session:
            repository = self._repository_factory(session, lock_key=self._lock_key)
            match = await repository.get_match(match_id)
            _ensure_open(match)
            home = await repository.get_team(match.country_home_id)
            away = await repository.get_team(match.country_away_id)
            home_form = await repository.get_form_record(home.id)
            away_form = await repository.get_form_record(away.id)
        # An empty record means no recorded win percentage
        return match, home, away, home_form or None, away_form or None

    async def _finalize(
        self,
        run: ResultRun,
        score_home: int,
        score_away: int,
        penalties: Penalties,
        simulated: bool,
        probability: Optional[MatchProbability] = None,
    ) -> FinishedMatch:
        run.advance(ProcessingState.FINALIZING)

        async with self.ranking_transaction() as repository:
            match = await repository.get_match(run.match_id, for_update=True)
            _ensure_open(match)

            home = await repository.get_team(match.country_home_id)
            away = await repository.get_team(match.country_away_id)
            if match.competition_id is not None:
                importance = await repository.get_competition_importance(match.competition_id)
            else:
                importance = match.match_importance_factor

            unranked = len(await repository.list_active_teams()) + 1
            delta = points_after_match(
                home_rank=home.world_rank or unranked,
                away_rank=away.world_rank or unranked,
                home_confederation=home.confederation,
                away_confederation=away.confederation,
                score_home=score_home,
                score_away=score_away,
                importance=importance,
            )

            home_total = await repository.apply_points_delta(home.id, delta.home_points)
            away_total = await repository.apply_points_delta(away.id, delta.away_points)

            assignments = await refresh_rankings(repository, match_id=match.id)
            ranks = {a.team_id: a for a in assignments}

            tracker = FormTracker(repository)
            home_form = await tracker.append_result(home.id, delta.home_result.symbol)
            away_form = await tracker.append_result(away.id, delta.away_result.symbol)

            if match.competition_id is not None:
                await repository.apply_standings_delta(
                    match.competition_id, home.id,
                    StandingsDelta.for_result(delta.home_result, score_home, score_away),
                )
                await repository.apply_standings_delta(
                    match.competition_id, away.id,
                    StandingsDelta.for_result(delta.away_result, score_away, score_home),
                )

            await repository.mark_match_finished(
                match.id, score_home, score_away, penalties=penalties, simulated=simulated,
            )

        run.advance(ProcessingState.FINISHED)
        logger.info(
            "[RESULT] match=%s finished %d-%d (%s) home+%s away+%s importance=%.2f",
            run.match_id, score_home, score_away,
            "simulated" if simulated else "manual",
            delta.home_points, delta.away_points, importance,
        )

        def side(team: TeamRating, result: MatchResult, gained: Decimal, total: Decimal, form: FormRecord):
            rank = ranks.get(team.id)
            return SideOutcome(
                team_id=team.id,
                result=result,
                points_gained=gained,
                points_total=total,
                world_rank=rank.world_rank if rank else None,
                confederation_rank=rank.confederation_rank if rank else None,
                form=form.as_string(),
            )

        return FinishedMatch(
            match_id=run.match_id,
            competition_id=match.competition_id,
            score_home=score_home,
            score_away=score_away,
            penalties_home=penalties[0] if penalties else None,
            penalties_away=penalties[1] if penalties else None,
            importance=importance,
            simulated=simulated,
            home=side(home, delta.home_result, delta.home_points, home_total, home_form),
            away=side(away, delta.away_result, delta.away_points, away_total, away_form),
            probability=probability,
            states=tuple(run.history),
        )
