"""
Pytest fixtures for progression core tests.
"""

from datetime import date, datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mastery_core.ai.evaluator import StubEssayEvaluator
from mastery_core.ai.lesson_generator import StubLessonGenerator
from mastery_core.config import Settings
from mastery_core.database import create_engine_for, init_db
from mastery_core.engines.progression.certificate_issuer import CertificateIssuer
from mastery_core.engines.progression.level_registry import LevelRegistry
from mastery_core.engines.progression.models import Learner, MasteryLevel, SubjectProgress
from mastery_core.engines.progression.progress_store import InMemoryProgressStore, ProgressStore
from mastery_core.orchestration.progression_engine import ProgressionEngine


TODAY = date(2026, 3, 2)
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Settable clock for exam timing."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, openai_api_key="", database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def registry() -> LevelRegistry:
    return LevelRegistry()


@pytest.fixture
def store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def issuer() -> CertificateIssuer:
    return CertificateIssuer(today=lambda: TODAY)


@pytest.fixture
def engine(store, registry, issuer, settings, clock) -> ProgressionEngine:
    return ProgressionEngine(
        store,
        StubLessonGenerator(),
        StubEssayEvaluator(),
        registry=registry,
        issuer=issuer,
        settings=settings,
        clock=clock,
        today=lambda: TODAY,
    )


@pytest_asyncio.fixture
async def learner(engine: ProgressionEngine) -> Learner:
    return await engine.create_learner(Learner(name="Ada Lovelace", age=12))


@pytest.fixture
def place(store: ProgressStore):
    """Write a progress record directly, bypassing the engine."""

    async def _place(
        learner: Learner,
        subject_id: str,
        level: MasteryLevel,
        lesson_index: int = 1,
        **fields,
    ) -> SubjectProgress:
        return await store.save_progress(
            SubjectProgress(
                learner_id=learner.id,
                subject_id=subject_id,
                level=level,
                lesson_index=lesson_index,
                **fields,
            )
        )

    return _place


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine with all tables created."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'mastery_test.db'}")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(db_session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with db_session_maker() as session:
        yield session
        await session.rollback()
