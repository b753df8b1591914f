"""Competition routes: CRUD, participants and standings."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from fifarank.config import get_settings
from fifarank.dependencies import get_competition_service
from fifarank.ranking.points import MAX_IMPORTANCE, MIN_IMPORTANCE
from fifarank.security import limiter, verify_api_key
from fifarank.services import CompetitionService

router = APIRouter(prefix="/competitions", tags=["competitions"])
settings = get_settings()


class CompetitionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    year: int = Field(ge=1872, le=2100)
    type: str
    confederation: Optional[str] = None
    format: Optional[str] = None
    host_country_id: Optional[int] = None
    match_importance_factor: Optional[float] = Field(default=None, ge=MIN_IMPORTANCE, le=MAX_IMPORTANCE)
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class CompetitionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    year: Optional[int] = Field(default=None, ge=1872, le=2100)
    type: Optional[str] = None
    confederation: Optional[str] = None
    format: Optional[str] = None
    host_country_id: Optional[int] = None
    match_importance_factor: Optional[float] = Field(default=None, ge=MIN_IMPORTANCE, le=MAX_IMPORTANCE)
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ParticipantEntry(BaseModel):
    country_id: int
    group_name: Optional[str] = Field(default=None, max_length=10)


class ParticipantsAdd(BaseModel):
    participants: list[ParticipantEntry] = Field(min_length=1)


@router.get("")
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def list_competitions(
    request: Request,
    type: Optional[str] = None,
    confederation: Optional[str] = None,
    status: Optional[str] = None,
    year: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: CompetitionService = Depends(get_competition_service),
):
    return await service.list_competitions(
        type=type, confederation=confederation, status=status, year=year, page=page, limit=limit,
    )


@router.get("/{competition_id}")
async def get_competition(
    competition_id: int, service: CompetitionService = Depends(get_competition_service)
):
    return await service.get_competition_detail(competition_id)


@router.get("/{competition_id}/statistics")
async def get_statistics(
    competition_id: int, service: CompetitionService = Depends(get_competition_service)
):
    return await service.get_statistics(competition_id)


@router.get("/{competition_id}/matches")
async def get_competition_matches(
    competition_id: int,
    status: Optional[str] = None,
    match_stage: Optional[str] = None,
    service: CompetitionService = Depends(get_competition_service),
):
    return await service.get_matches(competition_id, status=status, match_stage=match_stage)


@router.post("", status_code=201)
async def create_competition(
    body: CompetitionCreate,
    service: CompetitionService = Depends(get_competition_service),
    _: bool = Depends(verify_api_key),
):
    return await service.create_competition(body.model_dump())


@router.put("/{competition_id}")
async def update_competition(
    competition_id: int,
    body: CompetitionUpdate,
    service: CompetitionService = Depends(get_competition_service),
    _: bool = Depends(verify_api_key),
):
    return await service.update_competition(competition_id, body.model_dump(exclude_unset=True))


@router.delete("/{competition_id}", status_code=204)
async def delete_competition(
    competition_id: int,
    service: CompetitionService = Depends(get_competition_service),
    _: bool = Depends(verify_api_key),
):
    await service.delete_competition(competition_id)


@router.get("/{competition_id}/participants")
async def get_participants(
    competition_id: int,
    group_name: Optional[str] = None,
    service: CompetitionService = Depends(get_competition_service),
):
    await service.get_competition(competition_id)
    return await service.get_participants(competition_id, group_name=group_name)


@router.post("/{competition_id}/participants", status_code=201)
async def add_participants(
    competition_id: int,
    body: ParticipantsAdd,
    service: CompetitionService = Depends(get_competition_service),
    _: bool = Depends(verify_api_key),
):
    return await service.add_participants(
        competition_id,
        [p.country_id for p in body.participants],
        groups={p.country_id: p.group_name for p in body.participants if p.group_name},
    )


@router.delete("/{competition_id}/participants/{country_id}", status_code=204)
async def remove_participant(
    competition_id: int,
    country_id: int,
    service: CompetitionService = Depends(get_competition_service),
    _: bool = Depends(verify_api_key),
):
    await service.remove_participant(competition_id, country_id)


@router.get("/{competition_id}/standings")
async def get_standings(
    competition_id: int, service: CompetitionService = Depends(get_competition_service)
):
    return await service.get_standings(competition_id)
