"""
Service layer: query and write operations behind the HTTP routes.
"""

from fifarank.services.common import paginate
from fifarank.services.competitions import CompetitionService
from fifarank.services.countries import CountryService
from fifarank.services.matches import MatchService
from fifarank.services.rankings import RankingService

__all__ = [
    "paginate",
    "CompetitionService",
    "CountryService",
    "MatchService",
    "RankingService",
]
