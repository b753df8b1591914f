"""Match routes: fixtures, events, and finalization (simulate / record result).

Finalization delegates to the process-wide ResultProcessor; see
fifarank.ranking.processor for the transaction and locking rules.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, model_validator

from fifarank.config import get_settings
from fifarank.dependencies import get_match_service, get_result_processor
from fifarank.ranking.points import MAX_IMPORTANCE, MIN_IMPORTANCE
from fifarank.ranking.processor import FinishedMatch, ResultProcessor, SideOutcome
from fifarank.security import limiter, verify_api_key
from fifarank.services import MatchService

router = APIRouter(prefix="/matches", tags=["matches"])

logger = logging.getLogger(__name__)
settings = get_settings()

MAX_SCORE = 20


class MatchCreate(BaseModel):
    competition_id: Optional[int] = None
    country_home_id: int
    country_away_id: int
    match_date: datetime
    match_stage: Optional[str] = Field(default=None, max_length=50)
    is_neutral_venue: bool = False
    venue: Optional[str] = Field(default=None, max_length=200)
    match_importance_factor: Optional[float] = Field(default=None, ge=MIN_IMPORTANCE, le=MAX_IMPORTANCE)
    status: Optional[str] = None


class ResultSubmit(BaseModel):
    score_home: int = Field(ge=0, le=MAX_SCORE)
    score_away: int = Field(ge=0, le=MAX_SCORE)
    penalties_home: Optional[int] = Field(default=None, ge=0, le=MAX_SCORE)
    penalties_away: Optional[int] = Field(default=None, ge=0, le=MAX_SCORE)

    @model_validator(mode="after")
    def check_penalties_pair(self):
        if (self.penalties_home is None) != (self.penalties_away is None):
            raise ValueError("penalties must be given for both sides or neither")
        return self

    @property
    def penalties(self):
        if self.penalties_home is None:
            return None
        return (self.penalties_home, self.penalties_away)


class EventCreate(BaseModel):
    country_id: int
    event_type: str
    minute: int = Field(ge=0, le=120)
    additional_time: int = Field(default=0, ge=0, le=30)
    player_name: Optional[str] = Field(default=None, max_length=100)


def _side_payload(side: SideOutcome) -> dict:
    return {
        "country_id": side.team_id,
        "result": side.result.value,
        "points_gained": side.points_gained,
        "fifa_points": side.points_total,
        "world_ranking": side.world_rank,
        "confederation_ranking": side.confederation_rank,
        "recent_form": side.form,
    }


def finished_payload(finished: FinishedMatch) -> dict:
    return {
        "match_id": finished.match_id,
        "competition_id": finished.competition_id,
        "status": "finished",
        "score_home": finished.score_home,
        "score_away": finished.score_away,
        "penalties_home": finished.penalties_home,
        "penalties_away": finished.penalties_away,
        "match_importance_factor": finished.importance,
        "is_simulated": finished.simulated,
        "probability": finished.probability.as_dict() if finished.probability else None,
        "home": _side_payload(finished.home),
        "away": _side_payload(finished.away),
    }


@router.get("")
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def list_matches(
    request: Request,
    competition_id: Optional[int] = None,
    country_id: Optional[int] = None,
    status: Optional[str] = None,
    match_stage: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: MatchService = Depends(get_match_service),
):
    return await service.list_matches(
        competition_id=competition_id,
        country_id=country_id,
        status=status,
        match_stage=match_stage,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )


@router.get("/upcoming")
async def upcoming_matches(
    limit: int = Query(10, ge=1, le=100),
    service: MatchService = Depends(get_match_service),
):
    return await service.upcoming(limit=limit)


@router.get("/recent")
async def recent_matches(
    limit: int = Query(10, ge=1, le=100),
    service: MatchService = Depends(get_match_service),
):
    return await service.recent(limit=limit)


@router.get("/head-to-head/{country_id_1}/{country_id_2}")
async def head_to_head(
    country_id_1: int,
    country_id_2: int,
    limit: int = Query(10, ge=1, le=100),
    service: MatchService = Depends(get_match_service),
):
    return await service.head_to_head(country_id_1, country_id_2, limit=limit)


@router.get("/{match_id}")
async def get_match(match_id: int, service: MatchService = Depends(get_match_service)):
    return await service.get_match_detail(match_id)


@router.post("", status_code=201)
async def create_match(
    body: MatchCreate,
    service: MatchService = Depends(get_match_service),
    _: bool = Depends(verify_api_key),
):
    return await service.create_match(body.model_dump())


@router.delete("/{match_id}", status_code=204)
async def delete_match(
    match_id: int,
    service: MatchService = Depends(get_match_service),
    _: bool = Depends(verify_api_key),
):
    await service.delete_match(match_id)


@router.post("/{match_id}/simulate")
@limiter.limit("30/minute")
async def simulate_match(
    request: Request,
    match_id: int,
    processor: ResultProcessor = Depends(get_result_processor),
    _: bool = Depends(verify_api_key),
):
    finished = await processor.simulate_match(match_id)
    return finished_payload(finished)


@router.post("/{match_id}/result")
@limiter.limit("30/minute")
async def record_result(
    request: Request,
    match_id: int,
    body: ResultSubmit,
    processor: ResultProcessor = Depends(get_result_processor),
    _: bool = Depends(verify_api_key),
):
    finished = await processor.record_match_result(
        match_id, body.score_home, body.score_away, penalties=body.penalties,
    )
    return finished_payload(finished)


@router.get("/{match_id}/events")
async def list_events(match_id: int, service: MatchService = Depends(get_match_service)):
    return await service.list_events(match_id)


@router.post("/{match_id}/events", status_code=201)
async def add_event(
    match_id: int,
    body: EventCreate,
    service: MatchService = Depends(get_match_service),
    _: bool = Depends(verify_api_key),
):
    return await service.add_event(match_id, body.model_dump())
