"""Competition service: CRUD, participants and standings tables."""

import logging
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fifarank.errors import ConflictError, NotFoundError, ValidationError
from fifarank.models import (
    COMPETITION_CONFEDERATIONS,
    Competition,
    CompetitionFormat,
    CompetitionParticipant,
    CompetitionStatus,
    CompetitionType,
    Country,
    Match,
    MatchStatus,
)
from fifarank.ranking.points import MATCH_IMPORTANCE, MAX_IMPORTANCE, MIN_IMPORTANCE
from fifarank.services.common import paginate
from fifarank.services.matches import MatchService

logger = logging.getLogger(__name__)

DEFAULT_IMPORTANCE = {
    CompetitionType.WORLD.value: MATCH_IMPORTANCE["world_cup"],
    CompetitionType.CONTINENTAL.value: MATCH_IMPORTANCE["continental"],
}
DEFAULT_GROUP = "Overall"

UPDATABLE_FIELDS = (
    "name", "year", "type", "confederation", "format", "host_country_id",
    "match_importance_factor", "status", "start_date", "end_date",
)


def _check_choice(field: str, value: Optional[str], choices) -> None:
    if value is not None and value not in choices:
        raise ValidationError(f"Invalid {field}: {value!r}")


def _validate(data: dict[str, Any]) -> None:
    _check_choice("type", data.get("type"), [t.value for t in CompetitionType])
    _check_choice("format", data.get("format"), [f.value for f in CompetitionFormat])
    _check_choice("status", data.get("status"), [s.value for s in CompetitionStatus])
    _check_choice("confederation", data.get("confederation"), COMPETITION_CONFEDERATIONS)
    importance = data.get("match_importance_factor")
    if importance is not None and not MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE:
        raise ValidationError(
            f"match_importance_factor must be between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}"
        )


def standings_order_key(entry: dict[str, Any]):
    return (-entry["points"], -entry["goal_difference"], -entry["goals_for"], entry["country_name"])


class CompetitionService:
    """Service for competitions and their participant tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_competitions(
        self,
        type: Optional[str] = None,
        confederation: Optional[str] = None,
        status: Optional[str] = None,
        year: Optional[int] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        stmt = select(Competition)
        if type:
            stmt = stmt.where(Competition.type == type)
        if confederation:
            stmt = stmt.where(Competition.confederation == confederation)
        if status:
            stmt = stmt.where(Competition.status == status)
        if year:
            stmt = stmt.where(Competition.year == year)
        stmt = stmt.order_by(Competition.year.desc(), Competition.created_at.desc())
        return await paginate(self.session, stmt, page, limit)

    async def get_competition(self, competition_id: int) -> Competition:
        competition = await self.session.get(Competition, competition_id)
        if competition is None:
            raise NotFoundError("Competition", competition_id)
        return competition

    async def get_competition_detail(self, competition_id: int) -> dict[str, Any]:
        competition = await self.get_competition(competition_id)
        participants = (
            await self.session.execute(
                select(func.count())
                .select_from(CompetitionParticipant)
                .where(CompetitionParticipant.competition_id == competition_id)
            )
        ).scalar_one()
        return {**competition.model_dump(), "participant_count": participants}

    async def create_competition(self, data: dict[str, Any]) -> Competition:
        _validate(data)
        if data.get("host_country_id") is not None:
            await self._require_country(data["host_country_id"])

        importance = data.get("match_importance_factor") or DEFAULT_IMPORTANCE[data["type"]]
        competition = Competition(
            name=data["name"],
            year=data["year"],
            type=data["type"],
            confederation=data.get("confederation"),
            format=data.get("format") or CompetitionFormat.GROUP.value,
            host_country_id=data.get("host_country_id"),
            match_importance_factor=importance,
            status=data.get("status") or CompetitionStatus.UPCOMING.value,
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
        )
        self.session.add(competition)
        await self.session.commit()
        await self.session.refresh(competition)
        logger.info(f"Created competition {competition.name} (id={competition.id}, importance={importance})")
        return competition

    async def update_competition(self, competition_id: int, data: dict[str, Any]) -> Competition:
        changes = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}
        _validate(changes)
        competition = await self.get_competition(competition_id)
        if "host_country_id" in changes:
            await self._require_country(changes["host_country_id"])
        for field, value in changes.items():
            setattr(competition, field, value)
        await self.session.commit()
        await self.session.refresh(competition)
        return competition

    async def delete_competition(self, competition_id: int) -> None:
        competition = await self.get_competition(competition_id)
        finished = await self.session.execute(
            select(Match.id).where(
                Match.competition_id == competition_id,
                Match.status == MatchStatus.FINISHED.value,
            )
        )
        if finished.first() is not None:
            raise ConflictError("Cannot delete competition with finished matches")

        participants = await self.session.execute(
            select(CompetitionParticipant).where(CompetitionParticipant.competition_id == competition_id)
        )
        for row in participants.scalars().all():
            await self.session.delete(row)
        pending = await self.session.execute(select(Match).where(Match.competition_id == competition_id))
        for match in pending.scalars().all():
            match.competition_id = None
        await self.session.delete(competition)
        await self.session.commit()

    async def _require_country(self, country_id: int) -> Country:
        country = await self.session.get(Country, country_id)
        if country is None:
            raise NotFoundError("Country", country_id)
        return country

    async def add_participants(
        self,
        competition_id: int,
        country_ids: list[int],
        groups: Optional[dict[int, str]] = None,
    ) -> list[dict[str, Any]]:
        """Add teams to a competition; all-or-nothing."""
        groups = groups or {}
        await self.get_competition(competition_id)

        if len(set(country_ids)) != len(country_ids):
            raise ConflictError("Duplicate country in participant list")

        existing = await self.session.execute(
            select(CompetitionParticipant.country_id).where(
                CompetitionParticipant.competition_id == competition_id,
                CompetitionParticipant.country_id.in_(country_ids),
            )
        )
        duplicates = sorted(existing.scalars().all())
        if duplicates:
            raise ConflictError(f"Countries already participating: {duplicates}")

        try:
            for country_id in country_ids:
                await self._require_country(country_id)
                self.session.add(
                    CompetitionParticipant(
                        competition_id=competition_id,
                        country_id=country_id,
                        group_name=groups.get(country_id),
                    )
                )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        return await self.get_participants(competition_id)

    async def remove_participant(self, competition_id: int, country_id: int) -> None:
        result = await self.session.execute(
            select(CompetitionParticipant).where(
                CompetitionParticipant.competition_id == competition_id,
                CompetitionParticipant.country_id == country_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("Participant", f"{country_id} in competition {competition_id}")
        await self.session.delete(row)
        await self.session.commit()

    async def get_participants(
        self, competition_id: int, group_name: Optional[str] = None
    ) -> list[dict[str, Any]]:
        stmt = (
            select(CompetitionParticipant, Country)
            .join(Country, Country.id == CompetitionParticipant.country_id)
            .where(CompetitionParticipant.competition_id == competition_id)
        )
        if group_name:
            stmt = stmt.where(CompetitionParticipant.group_name == group_name)
        rows = (await self.session.execute(stmt)).all()

        entries = [
            {
                **participant.model_dump(),
                "country_name": country.name,
                "country_code": country.code,
                "flag_url": country.flag_url,
                "fifa_points": country.fifa_points,
                "world_ranking": country.world_ranking,
                "confederation": country.confederation,
            }
            for participant, country in rows
        ]
        entries.sort(key=lambda e: (e["group_name"] or "", *standings_order_key(e)))
        return entries

    async def get_standings(self, competition_id: int) -> dict[str, list[dict[str, Any]]]:
        """Standings grouped by group name, each ordered pts > gd > gf > name."""
        await self.get_competition(competition_id)
        grouped: dict[str, list[dict[str, Any]]] = {}
        for entry in await self.get_participants(competition_id):
            grouped.setdefault(entry["group_name"] or DEFAULT_GROUP, []).append(entry)
        for rows in grouped.values():
            rows.sort(key=standings_order_key)
        return grouped

    async def get_matches(
        self, competition_id: int, status: Optional[str] = None, match_stage: Optional[str] = None
    ) -> list[dict[str, Any]]:
        await self.get_competition(competition_id)
        return await MatchService(self.session).competition_matches(
            competition_id, status=status, match_stage=match_stage
        )

    async def get_statistics(self, competition_id: int) -> dict[str, Any]:
        """Match, goal and team counts. Goals only count finished matches."""
        await self.get_competition(competition_id)
        goals = Match.score_home + Match.score_away
        total, finished, total_goals, avg_goals = (
            await self.session.execute(
                select(
                    func.count(Match.id),
                    func.count(Match.id).filter(Match.status == MatchStatus.FINISHED.value),
                    func.coalesce(func.sum(goals), 0),
                    func.avg(goals),
                ).where(Match.competition_id == competition_id)
            )
        ).one()
        teams = (
            await self.session.execute(
                select(func.count())
                .select_from(CompetitionParticipant)
                .where(CompetitionParticipant.competition_id == competition_id)
            )
        ).scalar_one()
        return {
            "competition_id": competition_id,
            "total_matches": total,
            "finished_matches": finished,
            "total_goals": int(total_goals),
            "avg_goals_per_match": round(float(avg_goals or 0), 2),
            "total_teams": teams,
        }
