"""Row builders for database-backed tests."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fifarank.models import Competition, CompetitionParticipant, Country, Match


async def make_country(
    session,
    name: str,
    code: str,
    confederation: str = "UEFA",
    points: str = "0",
    world_ranking: Optional[int] = None,
    confederation_ranking: Optional[int] = None,
    is_active: bool = True,
) -> Country:
    country = Country(
        name=name,
        code=code,
        confederation=confederation,
        fifa_points=Decimal(points),
        world_ranking=world_ranking,
        confederation_ranking=confederation_ranking,
        is_active=is_active,
    )
    session.add(country)
    await session.commit()
    await session.refresh(country)
    return country


async def make_competition(session, importance: float = 3.0, **kwargs) -> Competition:
    competition = Competition(
        name=kwargs.pop("name", "EURO"),
        year=kwargs.pop("year", 2024),
        type=kwargs.pop("type", "continental"),
        confederation=kwargs.pop("confederation", "UEFA"),
        match_importance_factor=importance,
        **kwargs,
    )
    session.add(competition)
    await session.commit()
    await session.refresh(competition)
    return competition


async def add_participant(session, competition_id: int, country_id: int, group_name=None):
    row = CompetitionParticipant(
        competition_id=competition_id, country_id=country_id, group_name=group_name
    )
    session.add(row)
    await session.commit()
    return row


async def make_match(session, home: Country, away: Country, **kwargs) -> Match:
    match = Match(
        country_home_id=home.id,
        country_away_id=away.id,
        match_date=kwargs.pop("match_date", datetime(2024, 6, 14, 21, 0)),
        **kwargs,
    )
    session.add(match)
    await session.commit()
    await session.refresh(match)
    return match
