"""FastAPI dependencies shared by the routers."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fifarank.database import get_async_session
from fifarank.ranking.processor import ResultProcessor
from fifarank.services import CompetitionService, CountryService, MatchService, RankingService


def get_result_processor(request: Request) -> ResultProcessor:
    """The process-wide processor created in the app lifespan."""
    return request.app.state.result_processor


def get_country_service(
    session: AsyncSession = Depends(get_async_session),
    processor: ResultProcessor = Depends(get_result_processor),
) -> CountryService:
    return CountryService(session, processor)


def get_ranking_service(
    session: AsyncSession = Depends(get_async_session),
    processor: ResultProcessor = Depends(get_result_processor),
) -> RankingService:
    return RankingService(session, processor)


def get_competition_service(
    session: AsyncSession = Depends(get_async_session),
) -> CompetitionService:
    return CompetitionService(session)


def get_match_service(
    session: AsyncSession = Depends(get_async_session),
) -> MatchService:
    return MatchService(session)
