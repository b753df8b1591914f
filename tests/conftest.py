"""Shared fixtures: a throwaway SQLite database per test."""

import pytest
import pytest_asyncio

from fifarank.database import build_engine, build_session_factory, create_all
from fifarank.ranking import OutcomeSimulator, ResultProcessor


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'fifarank.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def processor(session_factory):
    return ResultProcessor(session_factory, simulator=OutcomeSimulator.seeded(7))
