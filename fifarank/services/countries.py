"""Country (national team) service.

Writes that touch points, confederation or the active flag run inside the
processor's ranking transaction so they serialize with match finalization.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fifarank.errors import ConflictError, NotFoundError, ValidationError
from fifarank.models import (
    TEAM_CONFEDERATIONS,
    Competition,
    CompetitionParticipant,
    CompetitionStatus,
    Country,
    Match,
    MatchStatus,
    RecentForm,
)
from fifarank.ranking.form import FormRecord
from fifarank.ranking.processor import ResultProcessor, refresh_rankings
from fifarank.services.common import paginate

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "world_ranking": Country.world_ranking,
    "fifa_points": Country.fifa_points,
    "name": Country.name,
    "confederation_ranking": Country.confederation_ranking,
}

# Fields whose change invalidates the rank table
RANKING_FIELDS = ("fifa_points", "confederation", "is_active")

UPDATABLE_FIELDS = ("name", "code", "confederation", "flag_url", "fifa_points", "is_active")


def _validate_confederation(confederation: str) -> str:
    if confederation not in TEAM_CONFEDERATIONS:
        raise ValidationError(f"Invalid confederation: {confederation!r}")
    return confederation


def _validate_points(points) -> Decimal:
    value = Decimal(str(points))
    if value < 0:
        raise ValidationError("fifa_points must be non-negative")
    return value


def form_payload(form: Optional[RecentForm]) -> dict[str, Any]:
    if form is None:
        return {"last_10_matches": "", "wins": 0, "draws": 0, "losses": 0, "win_percentage": 0.0}
    return {
        "last_10_matches": form.last_10_matches,
        "wins": form.wins,
        "draws": form.draws,
        "losses": form.losses,
        "win_percentage": form.win_percentage,
    }


class CountryService:
    """Reads on the request session, ranking writes through the processor."""

    def __init__(self, session: AsyncSession, processor: Optional[ResultProcessor] = None):
        self.session = session
        self.processor = processor

    def _require_processor(self) -> ResultProcessor:
        if self.processor is None:
            raise RuntimeError("CountryService writes require a ResultProcessor")
        return self.processor

    async def list_countries(
        self,
        confederation: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "world_ranking",
        sort_order: str = "asc",
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        stmt = select(Country)
        if confederation:
            stmt = stmt.where(Country.confederation == confederation)
        if is_active is not None:
            stmt = stmt.where(Country.is_active == is_active)
        if search:
            term = f"%{search}%"
            stmt = stmt.where(or_(Country.name.ilike(term), Country.code.ilike(term)))

        column = SORT_FIELDS.get(sort_by, Country.world_ranking)
        order = column.desc() if sort_order.lower() == "desc" else column.asc()
        stmt = stmt.order_by(order, Country.id)

        return await paginate(self.session, stmt, page, limit)

    async def get_country(self, country_id: int) -> Country:
        country = await self.session.get(Country, country_id)
        if country is None:
            raise NotFoundError("Country", country_id)
        return country

    async def get_country_detail(self, country_id: int) -> dict[str, Any]:
        country = await self.get_country(country_id)
        form = await self.session.get(RecentForm, country_id)
        return {**country.model_dump(), "recent_form": form_payload(form)}

    async def get_by_code(self, code: str) -> Country:
        result = await self.session.execute(select(Country).where(Country.code == code.upper()))
        country = result.scalar_one_or_none()
        if country is None:
            raise NotFoundError("Country", code)
        return country

    async def _ensure_unique(self, session: AsyncSession, name: str, code: str, exclude_id: Optional[int] = None):
        stmt = select(Country).where(or_(Country.name == name, Country.code == code))
        if exclude_id is not None:
            stmt = stmt.where(Country.id != exclude_id)
        clash = (await session.execute(stmt)).scalars().first()
        if clash is not None:
            raise ConflictError(f"Country with name {name!r} or code {code!r} already exists")

    async def create_country(self, data: dict[str, Any]) -> Country:
        name = data["name"].strip()
        code = (data.get("code") or name[:3]).upper()
        confederation = _validate_confederation(data["confederation"])
        points = _validate_points(data.get("fifa_points") or 0)

        async with self._require_processor().ranking_transaction() as repository:
            session = repository.session
            await self._ensure_unique(session, name, code)

            country = Country(
                name=name,
                code=code,
                confederation=confederation,
                flag_url=data.get("flag_url"),
                fifa_points=points,
            )
            session.add(country)
            await session.flush()

            await repository.write_form_record(country.id, FormRecord())
            await refresh_rankings(repository)
            country_id = country.id

        logger.info(f"Created country {code} (id={country_id})")
        return await self._fresh(country_id)

    async def update_country(self, country_id: int, data: dict[str, Any]) -> Country:
        changes = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}
        if not changes:
            return await self.get_country(country_id)

        if "confederation" in changes:
            _validate_confederation(changes["confederation"])
        if "fifa_points" in changes:
            changes["fifa_points"] = _validate_points(changes["fifa_points"])
        if "code" in changes:
            changes["code"] = changes["code"].upper()

        async with self._require_processor().ranking_transaction() as repository:
            session = repository.session
            country = await session.get(Country, country_id)
            if country is None:
                raise NotFoundError("Country", country_id)

            if "name" in changes or "code" in changes:
                await self._ensure_unique(
                    session, changes.get("name", country.name), changes.get("code", country.code),
                    exclude_id=country_id,
                )
            if changes.get("is_active") is False and country.is_active:
                await self._ensure_removable(session, country_id)

            rerank = any(
                field in changes and changes[field] != getattr(country, field)
                for field in RANKING_FIELDS
            )
            for field, value in changes.items():
                setattr(country, field, value)
            country.updated_at = datetime.utcnow()
            await session.flush()

            if rerank:
                await refresh_rankings(repository)

        return await self._fresh(country_id)

    async def deactivate_country(self, country_id: int) -> Country:
        """Soft delete: the team keeps its history but leaves the rank table."""
        return await self.update_country(country_id, {"is_active": False})

    async def _ensure_removable(self, session: AsyncSession, country_id: int) -> None:
        active_comps = await session.execute(
            select(CompetitionParticipant.id)
            .join(Competition, Competition.id == CompetitionParticipant.competition_id)
            .where(
                CompetitionParticipant.country_id == country_id,
                Competition.status.in_(
                    [CompetitionStatus.UPCOMING.value, CompetitionStatus.ONGOING.value]
                ),
            )
        )
        if active_comps.first() is not None:
            raise ConflictError("Cannot delete country that is participating in active competitions")

        open_matches = await session.execute(
            select(Match.id).where(
                or_(Match.country_home_id == country_id, Match.country_away_id == country_id),
                Match.status != MatchStatus.FINISHED.value,
            )
        )
        if open_matches.first() is not None:
            raise ConflictError("Cannot delete country that has unfinished matches")

    async def _fresh(self, country_id: int) -> Country:
        result = await self.session.execute(
            select(Country)
            .where(Country.id == country_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def world_ranking(self, limit: int = 50) -> list[Country]:
        result = await self.session.execute(
            select(Country)
            .where(Country.is_active == True)  # noqa: E712
            .order_by(Country.world_ranking.asc(), Country.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def confederation_ranking(self, confederation: str) -> list[Country]:
        _validate_confederation(confederation)
        result = await self.session.execute(
            select(Country)
            .where(Country.is_active == True, Country.confederation == confederation)  # noqa: E712
            .order_by(Country.confederation_ranking.asc(), Country.id)
        )
        return list(result.scalars().all())

    async def compare(self, country_id_1: int, country_id_2: int) -> dict[str, Any]:
        """Side-by-side points, ranks and form; differences are first minus second."""
        sides = []
        for country_id in (country_id_1, country_id_2):
            country = await self.get_country(country_id)
            form = form_payload(await self.session.get(RecentForm, country_id))
            sides.append({
                "id": country.id,
                "name": country.name,
                "code": country.code,
                "flag_url": country.flag_url,
                "fifa_points": country.fifa_points,
                "world_ranking": country.world_ranking,
                "confederation_ranking": country.confederation_ranking,
                "recent_form": form["last_10_matches"],
                "win_percentage": form["win_percentage"],
            })
        first, second = sides

        if first["world_ranking"] is None or second["world_ranking"] is None:
            rank_diff = None
        else:
            rank_diff = first["world_ranking"] - second["world_ranking"]
        return {
            "country1": first,
            "country2": second,
            "differences": {
                "fifa_points_diff": first["fifa_points"] - second["fifa_points"],
                "world_ranking_diff": rank_diff,
                "win_percentage_diff": round(first["win_percentage"] - second["win_percentage"], 2),
            },
        }
