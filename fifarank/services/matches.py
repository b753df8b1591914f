"""Match service: fixtures, events, head-to-head.

Finishing a match is NOT done here; see fifarank.ranking.processor.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from fifarank.errors import ConflictError, NotFoundError, ValidationError
from fifarank.models import (
    Competition,
    Country,
    Match,
    MatchEvent,
    MatchEventType,
    MatchStatus,
)
from fifarank.ranking.points import MATCH_IMPORTANCE, MAX_IMPORTANCE, MIN_IMPORTANCE
from fifarank.services.common import paginate

logger = logging.getLogger(__name__)

DEFAULT_IMPORTANCE = MATCH_IMPORTANCE["friendly"]
MAX_EVENT_MINUTE = 120

Home = aliased(Country)
Away = aliased(Country)


def _summary(match: Match, home: Country, away: Country, competition: Optional[Competition]) -> dict[str, Any]:
    return {
        **match.model_dump(),
        "home_name": home.name,
        "home_code": home.code,
        "home_flag": home.flag_url,
        "away_name": away.name,
        "away_code": away.code,
        "away_flag": away.flag_url,
        "competition_name": competition.name if competition else None,
    }


def _joined():
    return (
        select(Match, Home, Away, Competition)
        .join(Home, Home.id == Match.country_home_id)
        .join(Away, Away.id == Match.country_away_id)
        .outerjoin(Competition, Competition.id == Match.competition_id)
    )


class MatchService:
    """Service for match records that carry no derived computation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _rows(self, stmt) -> list[dict[str, Any]]:
        rows = (await self.session.execute(stmt)).all()
        return [_summary(*row) for row in rows]

    async def list_matches(
        self,
        competition_id: Optional[int] = None,
        country_id: Optional[int] = None,
        status: Optional[str] = None,
        match_stage: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        stmt = select(Match)
        if competition_id:
            stmt = stmt.where(Match.competition_id == competition_id)
        if country_id:
            stmt = stmt.where(or_(Match.country_home_id == country_id, Match.country_away_id == country_id))
        if status:
            stmt = stmt.where(Match.status == status)
        if match_stage:
            stmt = stmt.where(Match.match_stage == match_stage)
        if date_from:
            stmt = stmt.where(Match.match_date >= date_from)
        if date_to:
            stmt = stmt.where(Match.match_date <= date_to)
        stmt = stmt.order_by(Match.match_date.desc(), Match.id.desc())
        return await paginate(self.session, stmt, page, limit)

    async def competition_matches(
        self, competition_id: int, status: Optional[str] = None, match_stage: Optional[str] = None
    ) -> list[dict[str, Any]]:
        stmt = _joined().where(Match.competition_id == competition_id)
        if status:
            stmt = stmt.where(Match.status == status)
        if match_stage:
            stmt = stmt.where(Match.match_stage == match_stage)
        return await self._rows(stmt.order_by(Match.match_date.desc(), Match.id.desc()))

    async def get_match(self, match_id: int) -> Match:
        match = await self.session.get(Match, match_id)
        if match is None:
            raise NotFoundError("Match", match_id)
        return match

    async def get_match_detail(self, match_id: int) -> dict[str, Any]:
        rows = await self._rows(_joined().where(Match.id == match_id))
        if not rows:
            raise NotFoundError("Match", match_id)
        return {**rows[0], "events": await self.list_events(match_id)}

    async def create_match(self, data: dict[str, Any]) -> Match:
        home_id = data["country_home_id"]
        away_id = data["country_away_id"]
        if home_id == away_id:
            raise ValidationError("A match needs two distinct teams")

        home = await self.session.get(Country, home_id)
        away = await self.session.get(Country, away_id)
        if home is None or away is None:
            raise NotFoundError("Country", home_id if home is None else away_id)

        importance = data.get("match_importance_factor")
        competition_id = data.get("competition_id")
        if competition_id is not None:
            competition = await self.session.get(Competition, competition_id)
            if competition is None:
                raise NotFoundError("Competition", competition_id)
            if importance is None:
                importance = competition.match_importance_factor
        if importance is None:
            importance = DEFAULT_IMPORTANCE
        if not MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE:
            raise ValidationError(
                f"match_importance_factor must be between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}"
            )

        status = data.get("status") or MatchStatus.SCHEDULED.value
        if status not in (MatchStatus.SCHEDULED.value, MatchStatus.LIVE.value):
            raise ValidationError("New matches must be scheduled or live")

        match = Match(
            competition_id=competition_id,
            country_home_id=home_id,
            country_away_id=away_id,
            match_date=data["match_date"],
            match_stage=data.get("match_stage"),
            is_neutral_venue=bool(data.get("is_neutral_venue")),
            venue=data.get("venue"),
            match_importance_factor=importance,
            status=status,
        )
        self.session.add(match)
        await self.session.commit()
        await self.session.refresh(match)
        logger.info(f"Created match {match.id}: {home.code} vs {away.code}")
        return match

    async def delete_match(self, match_id: int) -> None:
        match = await self.get_match(match_id)
        if match.status == MatchStatus.FINISHED.value:
            raise ConflictError(
                "Cannot delete finished match. This would affect FIFA points and rankings."
            )
        events = await self.session.execute(select(MatchEvent).where(MatchEvent.match_id == match_id))
        for event in events.scalars().all():
            await self.session.delete(event)
        await self.session.delete(match)
        await self.session.commit()

    async def head_to_head(self, country_id_1: int, country_id_2: int, limit: int = 10) -> dict[str, Any]:
        country_1 = await self.session.get(Country, country_id_1)
        country_2 = await self.session.get(Country, country_id_2)
        if country_1 is None or country_2 is None:
            raise NotFoundError("Country", country_id_1 if country_1 is None else country_id_2)

        stmt = (
            _joined()
            .where(
                Match.status == MatchStatus.FINISHED.value,
                or_(
                    and_(Match.country_home_id == country_id_1, Match.country_away_id == country_id_2),
                    and_(Match.country_home_id == country_id_2, Match.country_away_id == country_id_1),
                ),
            )
            .order_by(Match.match_date.desc())
            .limit(limit)
        )
        matches = await self._rows(stmt)

        wins_1 = wins_2 = draws = 0
        for m in matches:
            if m["country_home_id"] == country_id_1:
                goals_1, goals_2 = m["score_home"], m["score_away"]
            else:
                goals_1, goals_2 = m["score_away"], m["score_home"]
            if goals_1 > goals_2:
                wins_1 += 1
            elif goals_1 < goals_2:
                wins_2 += 1
            else:
                draws += 1

        return {
            "country1": {"id": country_1.id, "name": country_1.name, "flag_url": country_1.flag_url},
            "country2": {"id": country_2.id, "name": country_2.name, "flag_url": country_2.flag_url},
            "matches": matches,
            "statistics": {
                "total": len(matches),
                "country1_wins": wins_1,
                "country2_wins": wins_2,
                "draws": draws,
            },
        }

    async def upcoming(self, limit: int = 10, now: Optional[datetime] = None) -> list[dict[str, Any]]:
        now = now or datetime.utcnow()
        stmt = (
            _joined()
            .where(
                Match.status.in_([MatchStatus.SCHEDULED.value, MatchStatus.LIVE.value]),
                Match.match_date >= now,
            )
            .order_by(Match.match_date.asc())
            .limit(limit)
        )
        return await self._rows(stmt)

    async def recent(self, limit: int = 10) -> list[dict[str, Any]]:
        stmt = (
            _joined()
            .where(Match.status == MatchStatus.FINISHED.value)
            .order_by(Match.match_date.desc())
            .limit(limit)
        )
        return await self._rows(stmt)

    async def add_event(self, match_id: int, data: dict[str, Any]) -> MatchEvent:
        match = await self.get_match(match_id)
        if data["country_id"] not in (match.country_home_id, match.country_away_id):
            raise ValidationError("Country is not participating in this match")
        if data["event_type"] not in [e.value for e in MatchEventType]:
            raise ValidationError(f"Invalid event type: {data['event_type']!r}")
        if not 0 <= data["minute"] <= MAX_EVENT_MINUTE:
            raise ValidationError(f"minute must be between 0 and {MAX_EVENT_MINUTE}")

        event = MatchEvent(
            match_id=match_id,
            country_id=data["country_id"],
            player_name=data.get("player_name"),
            event_type=data["event_type"],
            minute=data["minute"],
            additional_time=data.get("additional_time") or 0,
        )
        self.session.add(event)
        await self.session.commit()
        await self.session.refresh(event)
        return event

    async def list_events(self, match_id: int) -> list[dict[str, Any]]:
        await self.get_match(match_id)
        rows = (
            await self.session.execute(
                select(MatchEvent, Country)
                .join(Country, Country.id == MatchEvent.country_id)
                .where(MatchEvent.match_id == match_id)
                .order_by(MatchEvent.minute.asc(), MatchEvent.additional_time.asc())
            )
        ).all()
        return [
            {**event.model_dump(), "country_name": country.name, "flag_url": country.flag_url}
            for event, country in rows
        ]
