"""Country routes: team CRUD, rankings, form and ranking history.

Reads are public; writes require the API key.
"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from fifarank.config import get_settings
from fifarank.dependencies import get_country_service, get_ranking_service
from fifarank.security import limiter, verify_api_key
from fifarank.services import CountryService, RankingService

router = APIRouter(prefix="/countries", tags=["countries"])

logger = logging.getLogger(__name__)
settings = get_settings()


class CountryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, min_length=3, max_length=3)
    confederation: str
    flag_url: Optional[str] = Field(default=None, max_length=500)
    fifa_points: Decimal = Field(default=Decimal("0"), ge=0)


class CountryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, min_length=3, max_length=3)
    confederation: Optional[str] = None
    flag_url: Optional[str] = Field(default=None, max_length=500)
    fifa_points: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


@router.get("")
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def list_countries(
    request: Request,
    confederation: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: str = "world_ranking",
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: CountryService = Depends(get_country_service),
):
    return await service.list_countries(
        confederation=confederation,
        is_active=is_active,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


@router.get("/rankings/world")
async def world_ranking(
    limit: int = Query(50, ge=1, le=300),
    service: CountryService = Depends(get_country_service),
):
    return await service.world_ranking(limit)


@router.get("/rankings/confederation/{confederation}")
async def confederation_ranking(
    confederation: str,
    service: CountryService = Depends(get_country_service),
):
    return await service.confederation_ranking(confederation.upper())


@router.get("/rankings/latest")
async def latest_rankings(service: RankingService = Depends(get_ranking_service)):
    """The most recent ranking snapshot table."""
    return await service.latest_snapshot()


@router.get("/rankings/movers")
async def biggest_movers(
    days: int = Query(30, ge=1, le=3650),
    limit: int = Query(10, ge=1, le=100),
    service: RankingService = Depends(get_ranking_service),
):
    return await service.biggest_movers(days=days, limit=limit)


@router.post("/rankings/prune")
async def prune_ranking_history(
    retention_days: Optional[int] = Query(None, ge=1),
    service: RankingService = Depends(get_ranking_service),
    _: bool = Depends(verify_api_key),
):
    deleted = await service.prune_history(retention_days)
    return {"deleted": deleted}


@router.get("/form/top")
async def top_form(
    limit: int = Query(10, ge=1, le=100),
    service: RankingService = Depends(get_ranking_service),
):
    """Teams in the best recent form (at least TOP_FORM_MIN_MATCHES results)."""
    return await service.top_form(limit=limit)


@router.post("/form/recalculate")
async def recalculate_forms(
    service: RankingService = Depends(get_ranking_service),
    _: bool = Depends(verify_api_key),
):
    updated = await service.recalculate_forms()
    return {"updated": updated}


@router.get("/code/{code}")
async def get_country_by_code(code: str, service: CountryService = Depends(get_country_service)):
    return await service.get_by_code(code)


@router.get("/compare/{country_id_1}/{country_id_2}")
async def compare_countries(
    country_id_1: int,
    country_id_2: int,
    service: CountryService = Depends(get_country_service),
):
    return await service.compare(country_id_1, country_id_2)


@router.get("/{country_id}")
async def get_country(country_id: int, service: CountryService = Depends(get_country_service)):
    return await service.get_country_detail(country_id)


@router.post("", status_code=201)
async def create_country(
    body: CountryCreate,
    service: CountryService = Depends(get_country_service),
    _: bool = Depends(verify_api_key),
):
    return await service.create_country(body.model_dump())


@router.put("/{country_id}")
async def update_country(
    country_id: int,
    body: CountryUpdate,
    service: CountryService = Depends(get_country_service),
    _: bool = Depends(verify_api_key),
):
    return await service.update_country(country_id, body.model_dump(exclude_unset=True))


@router.delete("/{country_id}")
async def delete_country(
    country_id: int,
    service: CountryService = Depends(get_country_service),
    _: bool = Depends(verify_api_key),
):
    """Soft delete: the team is deactivated and leaves the rank table."""
    country = await service.deactivate_country(country_id)
    return {"id": country.id, "is_active": country.is_active}


@router.get("/{country_id}/form")
async def get_form(country_id: int, service: RankingService = Depends(get_ranking_service)):
    return await service.get_form(country_id)


@router.post("/{country_id}/form/reset")
async def reset_form(
    country_id: int,
    service: RankingService = Depends(get_ranking_service),
    _: bool = Depends(verify_api_key),
):
    await service.reset_form(country_id)
    return await service.get_form(country_id)


@router.get("/{country_id}/ranking-history")
async def ranking_history(
    country_id: int,
    limit: int = Query(30, ge=1, le=365),
    service: RankingService = Depends(get_ranking_service),
):
    return await service.team_history(country_id, limit=limit)
