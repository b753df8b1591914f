"""Database models using SQLModel."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


TEAM_CONFEDERATIONS = ("UEFA", "AFC", "CAF", "CONCACAF", "CONMEBOL", "OFC")
COMPETITION_CONFEDERATIONS = ("FIFA",) + TEAM_CONFEDERATIONS


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"


class CompetitionType(str, Enum):
    WORLD = "world"
    CONTINENTAL = "continental"


class CompetitionFormat(str, Enum):
    GROUP = "group"
    KNOCKOUT = "knockout"
    LEAGUE = "league"
    GROUP_KNOCKOUT = "group_knockout"


class CompetitionStatus(str, Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class MatchEventType(str, Enum):
    GOAL = "goal"
    OWN_GOAL = "own_goal"
    PENALTY = "penalty"
    YELLOW_CARD = "yellow_card"
    RED_CARD = "red_card"
    SUBSTITUTION = "substitution"


class Country(SQLModel, table=True):
    """National team with its current FIFA points and rank positions."""

    __tablename__ = "countries"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100, unique=True, index=True)
    code: str = Field(max_length=3, unique=True, index=True, description="FIFA trigram")
    confederation: str = Field(max_length=20, index=True)
    flag_url: Optional[str] = Field(default=None, max_length=500)

    fifa_points: Decimal = Field(
        default=Decimal("0"), max_digits=10, decimal_places=2, description="Current FIFA points (>= 0)"
    )
    world_ranking: Optional[int] = Field(
        default=None, index=True, description="Dense 1..N among active teams"
    )
    confederation_ranking: Optional[int] = Field(
        default=None, description="Dense 1..M within the confederation"
    )
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Competition(SQLModel, table=True):
    """Tournament whose matches feed participant standings."""

    __tablename__ = "competitions"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=200)
    year: int = Field(index=True)
    type: str = Field(max_length=20, description="'world' or 'continental'")
    confederation: Optional[str] = Field(default=None, max_length=20)
    format: str = Field(default=CompetitionFormat.GROUP.value, max_length=20)
    host_country_id: Optional[int] = Field(default=None, foreign_key="countries.id")
    match_importance_factor: float = Field(default=3.0, description="1.0 - 4.0")
    status: str = Field(default=CompetitionStatus.UPCOMING.value, max_length=20, index=True)
    start_date: Optional[datetime] = Field(default=None)
    end_date: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)


class CompetitionParticipant(SQLModel, table=True):
    """Aggregate standings row for one team in one competition."""

    __tablename__ = "competition_participants"
    __table_args__ = (
        UniqueConstraint("competition_id", "country_id", name="uq_competition_country"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    competition_id: int = Field(foreign_key="competitions.id", index=True)
    country_id: int = Field(foreign_key="countries.id", index=True)
    group_name: Optional[str] = Field(default=None, max_length=10)

    played: int = Field(default=0)
    won: int = Field(default=0)
    drawn: int = Field(default=0)
    lost: int = Field(default=0)
    goals_for: int = Field(default=0)
    goals_against: int = Field(default=0)
    goal_difference: int = Field(default=0, description="Always goals_for - goals_against")
    points: int = Field(default=0)


class Match(SQLModel, table=True):
    """Fixture between two national teams."""

    __tablename__ = "matches"

    id: Optional[int] = Field(default=None, primary_key=True)
    competition_id: Optional[int] = Field(default=None, foreign_key="competitions.id", index=True)
    country_home_id: int = Field(foreign_key="countries.id", index=True)
    country_away_id: int = Field(foreign_key="countries.id", index=True)

    match_date: datetime = Field(index=True)
    match_stage: Optional[str] = Field(default=None, max_length=50)
    is_neutral_venue: bool = Field(default=False)
    venue: Optional[str] = Field(default=None, max_length=200)
    match_importance_factor: float = Field(default=1.0, description="1.0 (friendly) - 4.0 (world cup)")

    status: str = Field(
        default=MatchStatus.SCHEDULED.value, max_length=20, index=True,
        description="scheduled, live, finished",
    )
    score_home: Optional[int] = Field(default=None, description="NULL until finished")
    score_away: Optional[int] = Field(default=None, description="NULL until finished")
    penalties_home: Optional[int] = Field(default=None)
    penalties_away: Optional[int] = Field(default=None)
    is_simulated: bool = Field(default=False)

    finished_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class MatchEvent(SQLModel, table=True):
    """Goal, card or substitution inside a match."""

    __tablename__ = "match_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="matches.id", index=True)
    country_id: int = Field(foreign_key="countries.id")
    player_name: Optional[str] = Field(default=None, max_length=100)
    event_type: str = Field(max_length=20)
    minute: int = Field(description="0-120")
    additional_time: int = Field(default=0)


class RecentForm(SQLModel, table=True):
    """Rolling last-10 results per team, most recent first."""

    __tablename__ = "recent_forms"

    country_id: int = Field(foreign_key="countries.id", primary_key=True)
    last_10_matches: str = Field(default="", max_length=10, description="e.g. 'WWDLW'")
    wins: int = Field(default=0)
    draws: int = Field(default=0)
    losses: int = Field(default=0)
    win_percentage: float = Field(default=0.0)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class RankingHistory(SQLModel, table=True):
    """Immutable point-in-time copy of a team's rank and points."""

    __tablename__ = "ranking_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    country_id: int = Field(foreign_key="countries.id", index=True)
    world_ranking: int
    confederation_ranking: int
    fifa_points: Decimal = Field(max_digits=10, decimal_places=2)
    match_id: Optional[int] = Field(default=None, foreign_key="matches.id")
    recorded_at: datetime = Field(default_factory=datetime.utcnow, index=True)
