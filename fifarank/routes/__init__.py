"""HTTP routers."""

from fifarank.routes.competitions import router as competitions_router
from fifarank.routes.core import router as core_router
from fifarank.routes.countries import router as countries_router
from fifarank.routes.matches import router as matches_router

__all__ = [
    "competitions_router",
    "core_router",
    "countries_router",
    "matches_router",
]
