"""Persistence boundary for the ranking engine.

RankingRepository is the contract the engine depends on.
SqlRankingRepository implements it over one AsyncSession; the caller owns
the transaction (commit/rollback), the repository only flushes.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from fifarank.errors import NotFoundError
from fifarank.models import (
    Competition,
    CompetitionParticipant,
    Country,
    Match,
    MatchStatus,
    RankingHistory,
    RecentForm,
)
from fifarank.ranking.form import FormRecord
from fifarank.ranking.recompute import RankAssignment, TeamRating
from fifarank.ranking.standings import StandingsDelta, apply_delta

logger = logging.getLogger(__name__)

Penalties = Optional[Tuple[int, int]]


class RankingRepository(Protocol):
    async def get_match(self, match_id: int, for_update: bool = False) -> Match: ...

    async def get_team(self, team_id: int) -> TeamRating: ...

    async def list_active_teams(self) -> List[TeamRating]: ...

    async def apply_points_delta(self, team_id: int, delta: Decimal) -> Decimal: ...

    async def write_ranks(self, assignments: Sequence[RankAssignment]) -> None: ...

    async def append_ranking_snapshots(
        self, assignments: Sequence[RankAssignment], match_id: Optional[int] = None
    ) -> int: ...

    async def get_form_record(self, team_id: int) -> Optional[FormRecord]: ...

    async def write_form_record(self, team_id: int, record: FormRecord) -> None: ...

    async def get_competition_importance(self, competition_id: int) -> float: ...

    async def apply_standings_delta(
        self, competition_id: int, team_id: int, delta: StandingsDelta
    ) -> CompetitionParticipant: ...

    async def mark_match_finished(
        self,
        match_id: int,
        score_home: int,
        score_away: int,
        penalties: Penalties = None,
        simulated: bool = False,
    ) -> Match: ...

    async def acquire_ranking_lock(self) -> None: ...


def _rating(country: Country) -> TeamRating:
    return TeamRating(
        id=country.id,
        points=Decimal(country.fifa_points or 0),
        confederation=country.confederation,
        world_rank=country.world_ranking,
        confederation_rank=country.confederation_ranking,
        is_active=country.is_active,
    )


class SqlRankingRepository:
    """RankingRepository backed by SQLModel tables."""

    def __init__(self, session: AsyncSession, lock_key: Optional[int] = None):
        self.session = session
        self.lock_key = lock_key

    @property
    def dialect_name(self) -> str:
        bind = self.session.bind
        return bind.dialect.name if bind is not None else ""

    async def _get_country(self, team_id: int) -> Country:
        country = await self.session.get(Country, team_id)
        if country is None:
            raise NotFoundError("Team", team_id)
        return country

    async def get_match(self, match_id: int, for_update: bool = False) -> Match:
        stmt = select(Match).where(Match.id == match_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        match = result.scalar_one_or_none()
        if match is None:
            raise NotFoundError("Match", match_id)
        return match

    async def get_team(self, team_id: int) -> TeamRating:
        return _rating(await self._get_country(team_id))

    async def list_active_teams(self) -> List[TeamRating]:
        result = await self.session.execute(
            select(Country).where(Country.is_active == True)  # noqa: E712
        )
        return [_rating(c) for c in result.scalars().all()]

    async def apply_points_delta(self, team_id: int, delta: Decimal) -> Decimal:
        country = await self._get_country(team_id)
        new_total = Decimal(country.fifa_points or 0) + delta
        if new_total < 0:
            raise ValueError(f"points for team {team_id} would become negative ({new_total})")
        country.fifa_points = new_total
        country.updated_at = datetime.utcnow()
        await self.session.flush()
        return new_total

    async def write_ranks(self, assignments: Sequence[RankAssignment]) -> None:
        by_id = {a.team_id: a for a in assignments}
        if by_id:
            result = await self.session.execute(
                select(Country).where(Country.id.in_(list(by_id)))
            )
            for country in result.scalars().all():
                assignment = by_id[country.id]
                country.world_ranking = assignment.world_rank
                country.confederation_ranking = assignment.confederation_rank

        # Inactive teams hold no rank
        stale = await self.session.execute(
            select(Country).where(
                Country.is_active == False,  # noqa: E712
                Country.world_ranking.is_not(None),
            )
        )
        for country in stale.scalars().all():
            country.world_ranking = None
            country.confederation_ranking = None
        await self.session.flush()

    async def append_ranking_snapshots(
        self, assignments: Sequence[RankAssignment], match_id: Optional[int] = None
    ) -> int:
        recorded_at = datetime.utcnow()
        for assignment in assignments:
            self.session.add(
                RankingHistory(
                    country_id=assignment.team_id,
                    world_ranking=assignment.world_rank,
                    confederation_ranking=assignment.confederation_rank,
                    fifa_points=assignment.points,
                    match_id=match_id,
                    recorded_at=recorded_at,
                )
            )
        await self.session.flush()
        return len(assignments)

    async def get_form_record(self, team_id: int) -> Optional[FormRecord]:
        row = await self.session.get(RecentForm, team_id)
        if row is None:
            return None
        return FormRecord.from_string(row.last_10_matches)

    async def write_form_record(self, team_id: int, record: FormRecord) -> None:
        row = await self.session.get(RecentForm, team_id)
        if row is None:
            row = RecentForm(country_id=team_id)
            self.session.add(row)
        row.last_10_matches = record.as_string()
        row.wins = record.wins
        row.draws = record.draws
        row.losses = record.losses
        row.win_percentage = record.win_percentage
        row.updated_at = datetime.utcnow()
        await self.session.flush()

    async def get_competition_importance(self, competition_id: int) -> float:
        competition = await self.session.get(Competition, competition_id)
        if competition is None:
            raise NotFoundError("Competition", competition_id)
        return competition.match_importance_factor

    async def apply_standings_delta(
        self, competition_id: int, team_id: int, delta: StandingsDelta
    ) -> CompetitionParticipant:
        result = await self.session.execute(
            select(CompetitionParticipant).where(
                CompetitionParticipant.competition_id == competition_id,
                CompetitionParticipant.country_id == team_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            logger.warning(
                "[STANDINGS] team=%s has no row in competition=%s, creating it",
                team_id, competition_id,
            )
            row = CompetitionParticipant(competition_id=competition_id, country_id=team_id)
            self.session.add(row)

        apply_delta(row, delta)
        await self.session.flush()
        return row

    async def mark_match_finished(
        self,
        match_id: int,
        score_home: int,
        score_away: int,
        penalties: Penalties = None,
        simulated: bool = False,
    ) -> Match:
        match = await self.get_match(match_id)
        match.score_home = score_home
        match.score_away = score_away
        match.penalties_home, match.penalties_away = penalties if penalties else (None, None)
        match.status = MatchStatus.FINISHED.value
        match.is_simulated = simulated
        match.finished_at = datetime.utcnow()
        await self.session.flush()
        return match

    async def acquire_ranking_lock(self) -> None:
        """Take a transaction-scoped advisory lock on Postgres (released on commit/rollback)."""
        if self.lock_key is None or self.dialect_name != "postgresql":
            return
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"), {"key": self.lock_key}
        )
